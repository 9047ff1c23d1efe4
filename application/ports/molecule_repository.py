"""Port interface for molecule instance persistence."""

from typing import Callable, Iterable, List, Optional, Protocol
from uuid import UUID

from application.models import MoleculeInstance

MoleculePredicate = Callable[[MoleculeInstance], bool]


class MoleculeRepository(Protocol):
    """Repository protocol for scheduled molecule instances.

    Mutations are staged in memory and only persisted by ``commit()``.
    A commit is all-or-nothing and reports failure instead of raising.
    """

    def fetch(self, predicate: Optional[MoleculePredicate] = None) -> List[MoleculeInstance]:
        """Return instances matching ``predicate`` ordered by scheduled date."""
        ...

    def get(self, instance_id: UUID) -> Optional[MoleculeInstance]:
        """Return one instance, or None if it does not exist."""
        ...

    def add(self, instance: MoleculeInstance) -> None:
        ...

    def delete(self, instances: Iterable[MoleculeInstance]) -> int:
        """Stage instances for deletion. Returns how many were known."""
        ...

    def mark_dirty(self, instance: MoleculeInstance) -> None:
        """Flag an already-added instance as changed since the last commit."""
        ...

    def commit(self) -> bool:
        """Persist staged changes. Returns False if the save failed."""
        ...
