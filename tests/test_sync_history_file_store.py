"""Tests for JsonFileSyncHistoryStore."""

import json

import pytest

from application.models import SyncAction, SyncHistoryEntry, SyncResult
from backend.services.sync_history_ledger import SyncHistoryLedger
from infrastructure.storage.sync_history_file_store import JsonFileSyncHistoryStore


def entry(status=SyncResult.success) -> SyncHistoryEntry:
    return SyncHistoryEntry(action=SyncAction.background_sync, status=status, records_uploaded=2)


class TestJsonFileSyncHistoryStore:
    @pytest.mark.unit
    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileSyncHistoryStore(tmp_path / "history.json").load() == []

    @pytest.mark.unit
    def test_directory_path_uses_default_filename(self, tmp_path):
        store = JsonFileSyncHistoryStore(tmp_path)
        assert store.path == tmp_path / "sync_history.json"

    @pytest.mark.unit
    def test_round_trip(self, tmp_path):
        path = tmp_path / "history.json"
        saved = [entry(SyncResult.failed), entry()]
        JsonFileSyncHistoryStore(path).save(saved)

        loaded = JsonFileSyncHistoryStore(path).load()

        assert [e.id for e in loaded] == [e.id for e in saved]
        assert loaded[0].status is SyncResult.failed
        assert loaded[0].timestamp == saved[0].timestamp

    @pytest.mark.unit
    def test_file_uses_export_field_names(self, tmp_path):
        path = tmp_path / "history.json"
        JsonFileSyncHistoryStore(path).save([entry()])

        data = json.loads(path.read_text())
        assert data[0]["recordsUploaded"] == 2
        assert "records_uploaded" not in data[0]

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["{broken", '{"not": "a list"}', '[{"action": "teleport"}]'])
    def test_corrupt_file_is_empty(self, tmp_path, content):
        path = tmp_path / "history.json"
        path.write_text(content)
        assert JsonFileSyncHistoryStore(path).load() == []

    @pytest.mark.unit
    def test_save_leaves_no_temp_files(self, tmp_path):
        store = JsonFileSyncHistoryStore(tmp_path / "history.json")
        store.save([entry()])
        store.save([entry(), entry()])
        assert [p.name for p in tmp_path.iterdir()] == ["history.json"]

    @pytest.mark.unit
    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "history.json"
        JsonFileSyncHistoryStore(path).save([entry()])
        assert path.exists()


class TestLedgerPersistence:
    @pytest.mark.unit
    def test_ledger_survives_restart(self, tmp_path):
        store = JsonFileSyncHistoryStore(tmp_path / "history.json")
        ledger = SyncHistoryLedger(store=store)
        ledger.record(SyncAction.full_sync, SyncResult.success, records_downloaded=7)
        ledger.record(SyncAction.manual_sync, SyncResult.failed, error_code="AUTH")

        restarted = SyncHistoryLedger(store=JsonFileSyncHistoryStore(tmp_path / "history.json"))
        assert restarted.load() == 2
        assert restarted.last_sync.error_code == "AUTH"
        assert restarted.last_successful_sync.records_downloaded == 7
