"""Sync history entries: one record per completed or aborted sync attempt.

Entries are immutable once created. Exported field names are camelCase and
stable across versions; new fields may only be added.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SyncAction(str, Enum):
    full_sync = "fullSync"
    background_sync = "backgroundSync"
    manual_sync = "manualSync"
    conflict_resolution = "conflictResolution"

    @property
    def display_name(self) -> str:
        return {
            SyncAction.full_sync: "Sync",
            SyncAction.background_sync: "Background Sync",
            SyncAction.manual_sync: "Manual Sync",
            SyncAction.conflict_resolution: "Conflict Resolution",
        }[self]


class SyncResult(str, Enum):
    success = "success"
    partial_success = "partialSuccess"
    failed = "failed"
    cancelled = "cancelled"
    skipped = "skipped"

    @property
    def display_name(self) -> str:
        return {
            SyncResult.success: "Success",
            SyncResult.partial_success: "Partial",
            SyncResult.failed: "Failed",
            SyncResult.cancelled: "Cancelled",
            SyncResult.skipped: "Skipped",
        }[self]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncHistoryEntry(BaseModel):
    """Outcome of one sync attempt.

    Counts are stored exactly as the sync subsystem reports them; the ledger
    does not validate them.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=_utcnow)
    action: SyncAction
    status: SyncResult
    details: str = ""
    records_uploaded: int = 0
    records_downloaded: int = 0
    duration_ms: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_export(self) -> dict:
        """Serializable record using the stable export field names."""
        return self.model_dump(mode="json", by_alias=True)
