"""Bounded, thread-safe ledger of sync attempts.

Keeps the most recent entries newest first. The ledger is created by the app
factory and shared through a dependency provider; persistence is optional and
goes through a SyncHistoryStore.
"""

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple

from application.models import SyncAction, SyncHistoryEntry, SyncResult
from application.ports.sync_history_store import SyncHistoryStore
from backend.observability.metrics import HabitMetrics

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100


def _sort_key(entry: SyncHistoryEntry) -> datetime:
    ts = entry.timestamp
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class SyncHistoryLedger:
    """Thread-safe in-memory sync history with optional durable backing."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        store: Optional[SyncHistoryStore] = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._store = store
        self._entries: Deque[SyncHistoryEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        # Snapshots are numbered under _lock and written in order under _save_lock.
        self._version = 0
        self._saved_version = 0
        self._save_lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def load(self) -> int:
        """Replace in-memory entries with the store's contents. Returns the count loaded."""
        if self._store is None:
            return 0
        try:
            loaded = self._store.load()
        except Exception as e:
            logger.warning("Failed to load sync history, starting empty: %s", e)
            loaded = []

        with self._lock:
            self._entries = deque(
                sorted(loaded, key=_sort_key, reverse=True)[: self._max_entries],
                maxlen=self._max_entries,
            )
            count = len(self._entries)
        logger.info("Loaded %d sync history entries", count)
        return count

    def append(self, entry: SyncHistoryEntry) -> None:
        """Insert ``entry`` as the newest record, evicting the oldest beyond capacity."""
        with self._lock:
            evicted = len(self._entries) == self._max_entries
            # Bounded deque drops the oldest entry from the right.
            self._entries.appendleft(entry)
            snapshot, version = self._snapshot()

        HabitMetrics.sync_history_entries_total().add(1, {"status": entry.status.value})
        if evicted:
            logger.debug("Sync history at capacity, evicted oldest entry")
        self._persist(snapshot, version)

    def record(
        self,
        action: SyncAction,
        status: SyncResult,
        records_uploaded: int = 0,
        records_downloaded: int = 0,
        duration: float = 0.0,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        details: str = "",
    ) -> SyncHistoryEntry:
        """Build an entry from a sync outcome and append it.

        Args:
            duration: Elapsed time in seconds; stored as whole milliseconds.
        """
        entry = SyncHistoryEntry(
            action=action,
            status=status,
            records_uploaded=records_uploaded,
            records_downloaded=records_downloaded,
            duration_ms=int(duration * 1000),
            error_code=error_code,
            error_message=error_message,
            details=details,
        )
        self.append(entry)
        logger.info(
            "Recorded %s: %s (up=%d, down=%d, %dms)",
            action.value,
            status.value,
            records_uploaded,
            records_downloaded,
            entry.duration_ms,
        )
        return entry

    def clear(self) -> None:
        """Remove every entry. Not reversible."""
        with self._lock:
            self._entries.clear()
            snapshot, version = self._snapshot()
        logger.info("Sync history cleared")
        self._persist(snapshot, version)

    @property
    def entries(self) -> List[SyncHistoryEntry]:
        """Copy of the current entries, newest first."""
        with self._lock:
            return list(self._entries)

    def entries_matching(self, status: SyncResult) -> List[SyncHistoryEntry]:
        return [e for e in self.entries if e.status == status]

    @property
    def last_sync(self) -> Optional[SyncHistoryEntry]:
        with self._lock:
            return self._entries[0] if self._entries else None

    @property
    def last_successful_sync(self) -> Optional[SyncHistoryEntry]:
        return next((e for e in self.entries if e.status == SyncResult.success), None)

    def export_snapshot(self) -> List[Dict[str, Any]]:
        """Serializable entries ordered by timestamp, newest first."""
        entries = sorted(self.entries, key=_sort_key, reverse=True)
        return [e.to_export() for e in entries]

    def export_json(self) -> str:
        return json.dumps(self.export_snapshot(), indent=2, sort_keys=True)

    def _snapshot(self) -> Tuple[List[SyncHistoryEntry], int]:
        # Caller holds _lock.
        self._version += 1
        return list(self._entries), self._version

    def _persist(self, entries: List[SyncHistoryEntry], version: int) -> None:
        """Save a snapshot unless a newer one has already been written."""
        if self._store is None:
            return
        with self._save_lock:
            if version < self._saved_version:
                logger.debug("Skipping stale sync history snapshot %d", version)
                return
            self._saved_version = version
            try:
                self._store.save(entries)
            except Exception as e:
                logger.error("Failed to persist sync history: %s", e)
