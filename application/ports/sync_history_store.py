"""Port interface for sync history persistence."""

from typing import List, Protocol

from application.models import SyncHistoryEntry


class SyncHistoryStore(Protocol):
    """Durable backing for the sync history ledger."""

    def load(self) -> List[SyncHistoryEntry]:
        """Return stored entries, newest first. Missing or corrupt data yields []."""
        ...

    def save(self, entries: List[SyncHistoryEntry]) -> None:
        """Replace the stored entries atomically."""
        ...
