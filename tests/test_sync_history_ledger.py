"""Tests for SyncHistoryLedger."""

import json
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from application.models import SyncAction, SyncHistoryEntry, SyncResult
from backend.services.sync_history_ledger import SyncHistoryLedger

EXPORT_FIELDS = {
    "id",
    "timestamp",
    "action",
    "status",
    "details",
    "recordsUploaded",
    "recordsDownloaded",
    "durationMs",
    "errorCode",
    "errorMessage",
}


def entry(status=SyncResult.success, **kwargs) -> SyncHistoryEntry:
    return SyncHistoryEntry(action=SyncAction.full_sync, status=status, **kwargs)


class SlowStore:
    """Store whose first save stalls, so a later snapshot can race it."""

    def __init__(self, delay: float = 0.2):
        self.delay = delay
        self.saved = None
        self.save_calls = 0
        self.first_save_started = threading.Event()

    def load(self):
        return []

    def save(self, entries):
        self.save_calls += 1
        if self.save_calls == 1:
            self.first_save_started.set()
            time.sleep(self.delay)
        self.saved = list(entries)


class TestAppend:
    @pytest.mark.unit
    def test_newest_first(self):
        ledger = SyncHistoryLedger()
        first, second = entry(), entry()
        ledger.append(first)
        ledger.append(second)
        assert [e.id for e in ledger.entries] == [second.id, first.id]
        assert ledger.last_sync == second

    @pytest.mark.unit
    def test_default_capacity_evicts_oldest(self):
        ledger = SyncHistoryLedger()
        appended = [entry() for _ in range(101)]
        for e in appended:
            ledger.append(e)

        ids = [e.id for e in ledger.entries]
        assert len(ids) == 100
        assert appended[0].id not in ids
        assert ids[0] == appended[-1].id

    @pytest.mark.unit
    def test_custom_capacity(self):
        ledger = SyncHistoryLedger(max_entries=3)
        for _ in range(10):
            ledger.append(entry())
        assert len(ledger.entries) == 3

    @pytest.mark.unit
    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SyncHistoryLedger(max_entries=0)

    @pytest.mark.unit
    def test_negative_counts_stored_as_is(self):
        ledger = SyncHistoryLedger()
        ledger.append(entry(records_uploaded=-3, records_downloaded=-1))
        assert ledger.last_sync.records_uploaded == -3
        assert ledger.export_snapshot()[0]["recordsDownloaded"] == -1

    @pytest.mark.unit
    def test_concurrent_appends(self):
        """Appends from many threads are neither lost nor duplicated."""
        ledger = SyncHistoryLedger(max_entries=1000)

        def worker():
            for _ in range(50):
                ledger.append(entry())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [e.id for e in ledger.entries]
        assert len(ids) == 400
        assert len(set(ids)) == 400

    @pytest.mark.unit
    def test_concurrent_appends_respect_capacity(self):
        ledger = SyncHistoryLedger(max_entries=100)
        threads = [
            threading.Thread(target=lambda: [ledger.append(entry()) for _ in range(50)])
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(ledger.entries) == 100


class TestRecord:
    @pytest.mark.unit
    def test_record_builds_entry(self):
        ledger = SyncHistoryLedger()
        recorded = ledger.record(
            SyncAction.manual_sync,
            SyncResult.partial_success,
            records_uploaded=4,
            records_downloaded=12,
            duration=1.5,
            details="3 conflicts",
        )
        assert ledger.last_sync == recorded
        assert recorded.duration_ms == 1500
        assert recorded.records_downloaded == 12
        assert recorded.timestamp.tzinfo is not None

    @pytest.mark.unit
    def test_record_failure(self):
        ledger = SyncHistoryLedger()
        recorded = ledger.record(
            SyncAction.background_sync,
            SyncResult.failed,
            error_code="NETWORK",
            error_message="offline",
        )
        assert recorded.error_code == "NETWORK"
        assert ledger.last_successful_sync is None


class TestQueries:
    @pytest.mark.unit
    def test_entries_matching_and_last_success(self):
        ledger = SyncHistoryLedger()
        ok = entry(SyncResult.success)
        ledger.append(ok)
        ledger.append(entry(SyncResult.failed))
        ledger.append(entry(SyncResult.skipped))

        assert [e.status for e in ledger.entries_matching(SyncResult.failed)] == [SyncResult.failed]
        assert ledger.last_successful_sync == ok
        assert ledger.last_sync.status is SyncResult.skipped

    @pytest.mark.unit
    def test_entries_is_a_copy(self):
        ledger = SyncHistoryLedger()
        ledger.append(entry())
        ledger.entries.clear()
        assert len(ledger.entries) == 1

    @pytest.mark.unit
    def test_clear(self):
        ledger = SyncHistoryLedger()
        ledger.append(entry())
        ledger.clear()
        assert ledger.entries == []
        assert ledger.last_sync is None
        assert ledger.export_snapshot() == []


class TestExport:
    @pytest.mark.unit
    def test_empty_export(self):
        ledger = SyncHistoryLedger()
        assert ledger.export_snapshot() == []
        assert json.loads(ledger.export_json()) == []

    @pytest.mark.unit
    def test_field_names(self):
        ledger = SyncHistoryLedger()
        ledger.append(entry(details=""))
        exported = ledger.export_snapshot()[0]
        assert set(exported) == EXPORT_FIELDS
        assert exported["action"] == "fullSync"
        assert exported["details"] == ""

    @pytest.mark.unit
    def test_sorted_by_timestamp_descending(self):
        """A late-arriving older entry is exported after newer ones."""
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        ledger = SyncHistoryLedger()
        newer = entry(timestamp=now)
        older = entry(timestamp=now - timedelta(hours=1))
        ledger.append(newer)
        ledger.append(older)

        assert ledger.entries[0] == older
        assert [e["id"] for e in ledger.export_snapshot()] == [str(newer.id), str(older.id)]

    @pytest.mark.unit
    def test_export_does_not_mutate(self):
        ledger = SyncHistoryLedger()
        for _ in range(3):
            ledger.append(entry())
        before = ledger.entries
        ledger.export_snapshot()
        ledger.export_json()
        assert ledger.entries == before

    @pytest.mark.unit
    def test_json_matches_snapshot(self):
        ledger = SyncHistoryLedger()
        ledger.record(SyncAction.conflict_resolution, SyncResult.cancelled)
        assert json.loads(ledger.export_json()) == ledger.export_snapshot()


class TestStore:
    @pytest.mark.unit
    def test_append_and_clear_save(self):
        store = MagicMock()
        ledger = SyncHistoryLedger(store=store)
        first = entry()
        ledger.append(first)
        store.save.assert_called_with([first])

        ledger.clear()
        store.save.assert_called_with([])

    @pytest.mark.unit
    def test_save_failure_does_not_raise(self):
        store = MagicMock()
        store.save.side_effect = OSError("disk full")
        ledger = SyncHistoryLedger(store=store)

        ledger.append(entry())

        assert len(ledger.entries) == 1

    @pytest.mark.unit
    def test_load_sorts_and_truncates(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        stored = [entry(timestamp=now - timedelta(minutes=m)) for m in (5, 0, 10, 1)]
        store = MagicMock()
        store.load.return_value = stored
        ledger = SyncHistoryLedger(max_entries=3, store=store)

        assert ledger.load() == 3
        assert [e.timestamp for e in ledger.entries] == [
            now,
            now - timedelta(minutes=1),
            now - timedelta(minutes=5),
        ]

    @pytest.mark.unit
    def test_load_failure_starts_empty(self):
        store = MagicMock()
        store.load.side_effect = RuntimeError("corrupt")
        ledger = SyncHistoryLedger(store=store)
        assert ledger.load() == 0
        assert ledger.entries == []

    @pytest.mark.unit
    def test_load_without_store(self):
        assert SyncHistoryLedger().load() == 0

    @pytest.mark.unit
    def test_slow_save_is_not_overwritten_by_older_snapshot(self):
        store = SlowStore()
        ledger = SyncHistoryLedger(store=store)
        first, second = entry(), entry()

        worker = threading.Thread(target=ledger.append, args=(first,))
        worker.start()
        assert store.first_save_started.wait(timeout=5)
        ledger.append(second)
        worker.join(timeout=5)

        assert [e.id for e in store.saved] == [second.id, first.id]
        assert store.saved == ledger.entries

    @pytest.mark.unit
    def test_clear_racing_a_slow_save_stays_cleared(self):
        store = SlowStore()
        ledger = SyncHistoryLedger(store=store)

        worker = threading.Thread(target=ledger.append, args=(entry(),))
        worker.start()
        assert store.first_save_started.wait(timeout=5)
        ledger.clear()
        worker.join(timeout=5)

        assert ledger.entries == []
        assert store.saved == []

    @pytest.mark.unit
    def test_concurrent_appends_persist_the_final_state(self):
        store = SlowStore(delay=0.05)
        ledger = SyncHistoryLedger(store=store)

        threads = [threading.Thread(target=ledger.append, args=(entry(),)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert len(store.saved) == 8
        assert store.saved == ledger.entries
