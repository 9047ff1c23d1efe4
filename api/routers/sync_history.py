"""Sync history endpoints.

GET    /api/sync-history         : entries, newest first
GET    /api/sync-history/export  : JSON export as a file download
POST   /api/sync-history         : record a sync outcome (X-Internal-Key)
DELETE /api/sync-history         : clear all entries (X-Internal-Key)
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from api.deps import get_sync_history_ledger, verify_internal_key
from application.models import SyncAction, SyncResult
from backend.services.sync_history_ledger import SyncHistoryLedger

router = APIRouter(prefix="/api/sync-history", tags=["sync-history"])


class RecordSyncRequest(BaseModel):
    """One sync outcome as reported by the sync subsystem."""
    action: SyncAction
    status: SyncResult
    records_uploaded: int = 0
    records_downloaded: int = 0
    duration_seconds: float = Field(0.0, ge=0)
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    details: str = ""


@router.get("")
def list_sync_history(
    status: Optional[SyncResult] = Query(None, description="Only entries with this result"),
    ledger: SyncHistoryLedger = Depends(get_sync_history_ledger),
) -> List[Dict[str, Any]]:
    if status is None:
        return ledger.export_snapshot()
    return [entry.to_export() for entry in ledger.entries_matching(status)]


@router.get("/export")
def export_sync_history(ledger: SyncHistoryLedger = Depends(get_sync_history_ledger)):
    """Download the history as a JSON file."""
    return Response(
        content=ledger.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="sync_history.json"'},
    )


@router.post("", status_code=201)
def record_sync(
    body: RecordSyncRequest,
    _auth: None = Depends(verify_internal_key),
    ledger: SyncHistoryLedger = Depends(get_sync_history_ledger),
) -> Dict[str, Any]:
    entry = ledger.record(
        action=body.action,
        status=body.status,
        records_uploaded=body.records_uploaded,
        records_downloaded=body.records_downloaded,
        duration=body.duration_seconds,
        error_code=body.error_code,
        error_message=body.error_message,
        details=body.details,
    )
    return entry.to_export()


@router.delete("", status_code=204)
def clear_sync_history(
    _auth: None = Depends(verify_internal_key),
    ledger: SyncHistoryLedger = Depends(get_sync_history_ledger),
):
    ledger.clear()
    return Response(status_code=204)
