"""Supabase implementation of MoleculeRepository."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from supabase import Client

from application.models import MoleculeInstance
from application.ports.molecule_repository import MoleculePredicate

logger = logging.getLogger(__name__)

_COMPUTED = {"is_completed", "progress"}


def _to_row(instance: MoleculeInstance) -> Dict[str, Any]:
    row = instance.model_dump(
        mode="json",
        exclude={*_COMPUTED, "atoms"},
    )
    row["atoms"] = [atom.model_dump(mode="json", exclude=_COMPUTED) for atom in instance.atoms]
    return row


class SupabaseMoleculeRepository:
    """Supabase-backed molecule instance repository.

    Atoms are stored inline as a JSON column on the instance row. Loaded
    instances are kept in an identity map, so repeated ``get``/``fetch`` calls
    within one unit of work return the same objects. Changes are staged and
    written by ``commit``.
    """

    TABLE = "molecule_instances"
    COMMIT_FUNCTION = "commit_molecule_instances"

    def __init__(self, client: Client) -> None:
        self._client = client
        self._identity: Dict[UUID, MoleculeInstance] = {}
        self._dirty: Set[UUID] = set()
        self._deleted: Set[UUID] = set()

    def _track(self, row: Dict[str, Any]) -> MoleculeInstance:
        instance_id = UUID(str(row["id"]))
        known = self._identity.get(instance_id)
        if known is not None:
            return known
        instance = MoleculeInstance.model_validate(row)
        self._identity[instance.id] = instance
        return instance

    def fetch(self, predicate: Optional[MoleculePredicate] = None) -> List[MoleculeInstance]:
        result = (
            self._client.table(self.TABLE)
            .select("*")
            .order("scheduled_date")
            .execute()
        )
        instances = [
            self._track(row)
            for row in (result.data or [])
            if UUID(str(row["id"])) not in self._deleted
        ]
        # Staged additions are not in the table yet.
        seen = {i.id for i in instances}
        instances.extend(
            i for i in self._identity.values() if i.id in self._dirty and i.id not in seen
        )
        if predicate is not None:
            instances = [i for i in instances if predicate(i)]
        return sorted(instances, key=lambda i: i.scheduled_date)

    def get(self, instance_id: UUID) -> Optional[MoleculeInstance]:
        if instance_id in self._deleted:
            return None
        if instance_id in self._identity:
            return self._identity[instance_id]
        result = (
            self._client.table(self.TABLE)
            .select("*")
            .eq("id", str(instance_id))
            .limit(1)
            .execute()
        )
        return self._track(result.data[0]) if result.data else None

    def add(self, instance: MoleculeInstance) -> None:
        self._identity[instance.id] = instance
        self._dirty.add(instance.id)
        self._deleted.discard(instance.id)

    def delete(self, instances: Iterable[MoleculeInstance]) -> int:
        count = 0
        for instance in instances:
            if instance.id in self._deleted:
                continue
            self._identity.pop(instance.id, None)
            self._dirty.discard(instance.id)
            self._deleted.add(instance.id)
            count += 1
        return count

    def mark_dirty(self, instance: MoleculeInstance) -> None:
        self._identity.setdefault(instance.id, instance)
        self._dirty.add(instance.id)

    def commit(self) -> bool:
        """Write staged upserts and deletes. Returns False if the write failed.

        Both go through the ``commit_molecule_instances`` database function,
        which runs as a single transaction: either every row is written or
        none is. On failure the staged state is kept, and retrying sends the
        same idempotent payload.
        """
        if not self._dirty and not self._deleted:
            return True

        rows = [_to_row(self._identity[i]) for i in self._dirty if i in self._identity]
        deleted = [str(i) for i in self._deleted]
        try:
            self._client.rpc(
                self.COMMIT_FUNCTION,
                {"p_upserts": rows, "p_delete_ids": deleted},
            ).execute()
        except Exception as e:
            logger.error(
                "Failed to commit %d upsert(s) and %d delete(s) to %s: %s",
                len(rows),
                len(deleted),
                self.TABLE,
                e,
            )
            return False

        self._dirty.clear()
        self._deleted.clear()
        return True
