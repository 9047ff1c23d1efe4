"""Domain models for molecules, atoms, recurrence and sync history."""

from .atom import AtomInputType, AtomInstance, CaptureState, parse_numeric
from .clock import local_now, naive_local
from .media import (
    AudioCaptureSettings,
    FixedDuration,
    ManualDuration,
    MediaCapture,
    MediaCaptureSettings,
    MediaCaptureType,
    PhotoCaptureSettings,
    UntilTimeDuration,
    VideoCaptureSettings,
    VideoQuality,
)
from .molecule import AtomTemplate, MoleculeInstance, MoleculeTemplate
from .recurrence import (
    EndRule,
    EndRuleType,
    RecurrenceFrequency,
    RecurrenceRule,
    days_description,
)
from .sync_history import SyncAction, SyncHistoryEntry, SyncResult

__all__ = [
    "AtomInputType",
    "AtomInstance",
    "AtomTemplate",
    "AudioCaptureSettings",
    "CaptureState",
    "EndRule",
    "EndRuleType",
    "FixedDuration",
    "ManualDuration",
    "MediaCapture",
    "MediaCaptureSettings",
    "MediaCaptureType",
    "MoleculeInstance",
    "MoleculeTemplate",
    "PhotoCaptureSettings",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "SyncAction",
    "SyncHistoryEntry",
    "SyncResult",
    "UntilTimeDuration",
    "VideoCaptureSettings",
    "VideoQuality",
    "days_description",
    "local_now",
    "naive_local",
    "parse_numeric",
]
