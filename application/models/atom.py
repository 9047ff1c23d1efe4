"""Atom instances: one trackable task inside one molecule occurrence.

Completion is never stored. ``is_completed`` is computed from the inputs of
the atom's input type, so every mutation below only touches those inputs and
the completion timestamp follows from them.

Mutations return True when they changed state and False when they were
rejected (wrong input type, unparsable value, illegal capture transition).
They never raise for expected input.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional, assert_never
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

from application.models.clock import local_now, naive_local_or_none
from application.models.media import MediaCapture, MediaCaptureSettings, MediaCaptureType

logger = logging.getLogger(__name__)


class AtomInputType(str, Enum):
    binary = "binary"
    counter = "counter"
    value = "value"
    photo = "photo"
    video = "video"
    audio = "audio"

    @property
    def is_media(self) -> bool:
        return self.media_type is not None

    @property
    def media_type(self) -> Optional[MediaCaptureType]:
        kind = self
        if kind is AtomInputType.photo:
            return MediaCaptureType.photo
        elif kind is AtomInputType.video:
            return MediaCaptureType.video
        elif kind is AtomInputType.audio:
            return MediaCaptureType.audio
        elif kind is AtomInputType.binary or kind is AtomInputType.counter or kind is AtomInputType.value:
            return None
        else:
            assert_never(kind)


class CaptureState(str, Enum):
    pending = "pending"
    capturing = "capturing"
    captured = "captured"
    failed = "failed"


def parse_numeric(raw: Any) -> Optional[float]:
    """Parse user input into a finite float, or None if it is not a number."""
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = float(raw.strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


class AtomInstance(BaseModel):
    """A task for one specific day, cloned from an AtomTemplate."""

    id: UUID = Field(default_factory=uuid4)
    title: str = ""
    input_type: AtomInputType = AtomInputType.binary
    order: int = 0

    # binary
    checked: bool = False

    # counter / value
    current_value: Optional[float] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None

    # media
    capture_state: CaptureState = CaptureState.pending
    capture_settings: Optional[MediaCaptureSettings] = None
    media_capture: Optional[MediaCapture] = None

    # weak references, resolved through repositories
    source_template_id: Optional[UUID] = None
    parent_molecule_id: Optional[UUID] = None

    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("completed_at", "created_at")
    @classmethod
    def _to_local(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_local_or_none(value)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @computed_field
    @property
    def is_completed(self) -> bool:
        kind = self.input_type
        if kind is AtomInputType.binary:
            return self.checked
        elif kind is AtomInputType.counter or kind is AtomInputType.value:
            return self._meets_target()
        elif kind is AtomInputType.photo or kind is AtomInputType.video or kind is AtomInputType.audio:
            return self.capture_state is CaptureState.captured
        else:
            assert_never(kind)

    def _meets_target(self) -> bool:
        if self.current_value is None:
            return False
        if self.target_value is None:
            # No goal configured: any positive entry counts.
            return self.current_value > 0
        return self.current_value >= self.target_value

    @computed_field
    @property
    def progress(self) -> float:
        kind = self.input_type
        if kind is AtomInputType.counter or kind is AtomInputType.value:
            if self.target_value is not None and self.target_value > 0:
                return min((self.current_value or 0.0) / self.target_value, 1.0)
        return 1.0 if self.is_completed else 0.0

    @property
    def progress_display_string(self) -> str:
        kind = self.input_type
        if kind is AtomInputType.binary:
            return "Done" if self.checked else "Not Done"
        elif kind is AtomInputType.counter:
            return f"{int(self.current_value or 0)}/{int(self.target_value or 0)}"
        elif kind is AtomInputType.value:
            if self.current_value is None:
                return "—"
            value = self.current_value
            formatted = f"{value:.0f}" if value.is_integer() else f"{value:.1f}"
            return f"{formatted} {self.unit}" if self.unit else formatted
        elif kind is AtomInputType.photo or kind is AtomInputType.video or kind is AtomInputType.audio:
            return self.capture_state.value.capitalize()
        else:
            assert_never(kind)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _record_transition(self, was_completed: bool, now: Optional[datetime]) -> None:
        is_completed = self.is_completed
        if is_completed and not was_completed:
            self.completed_at = local_now(now)
        elif not is_completed:
            self.completed_at = None

    def toggle(self, now: Optional[datetime] = None) -> bool:
        """Flip a binary atom. Toggling twice restores the original state."""
        if self.input_type is not AtomInputType.binary:
            return False
        was_completed = self.is_completed
        self.checked = not self.checked
        self._record_transition(was_completed, now)
        return True

    def increment(self, now: Optional[datetime] = None) -> bool:
        if self.input_type is not AtomInputType.counter:
            return False
        was_completed = self.is_completed
        self.current_value = (self.current_value or 0.0) + 1
        self._record_transition(was_completed, now)
        return True

    def decrement(self, now: Optional[datetime] = None) -> bool:
        """Decrement a counter. At zero this is a no-op, not an error."""
        if self.input_type is not AtomInputType.counter:
            return False
        current = self.current_value or 0.0
        if current <= 0:
            return False
        was_completed = self.is_completed
        self.current_value = max(0.0, current - 1)
        self._record_transition(was_completed, now)
        return True

    def mark_done(self, now: Optional[datetime] = None) -> bool:
        """Complete a binary or counter atom on the user's behalf.

        Counters are raised to their target (1 without one). Value and media
        atoms need real input and are left alone.
        """
        if self.is_completed:
            return False
        kind = self.input_type
        was_completed = False
        if kind is AtomInputType.binary:
            self.checked = True
        elif kind is AtomInputType.counter:
            target = self.target_value if self.target_value is not None and self.target_value > 0 else 1.0
            self.current_value = max(self.current_value or 0.0, target)
        else:
            return False
        self._record_transition(was_completed, now)
        return True

    def mark_not_done(self, now: Optional[datetime] = None) -> bool:
        """Reset a binary or counter atom. Value and media atoms keep their input."""
        kind = self.input_type
        was_completed = self.is_completed
        if kind is AtomInputType.binary:
            if not self.checked:
                return False
            self.checked = False
        elif kind is AtomInputType.counter:
            if not self.current_value:
                return False
            self.current_value = 0.0
        else:
            return False
        self._record_transition(was_completed, now)
        return True

    def set_value(self, raw: Any, now: Optional[datetime] = None) -> bool:
        """Record a value entry. Non-numeric input leaves the atom untouched."""
        if self.input_type is not AtomInputType.value:
            return False
        value = parse_numeric(raw)
        if value is None:
            logger.debug("Rejected non-numeric value %r for atom %s", raw, self.id)
            return False
        if value == self.current_value:
            return False
        was_completed = self.is_completed
        self.current_value = value
        self._record_transition(was_completed, now)
        return True

    def begin_capture(self, settings: MediaCaptureSettings) -> bool:
        if not self.input_type.is_media or self.capture_state is not CaptureState.pending:
            return False
        self.capture_settings = settings
        self.capture_state = CaptureState.capturing
        return True

    def complete_capture(self, artifact: MediaCapture, now: Optional[datetime] = None) -> bool:
        """Attach a captured artifact. ``captured`` is terminal."""
        if self.capture_state is not CaptureState.capturing:
            return False
        if artifact.capture_type != self.input_type.media_type:
            logger.warning(
                "Artifact type %s does not match atom %s (%s)",
                artifact.capture_type.value,
                self.id,
                self.input_type.value,
            )
            return False
        was_completed = self.is_completed
        self.media_capture = artifact
        self.capture_state = CaptureState.captured
        self._record_transition(was_completed, now)
        return True

    def fail_capture(self) -> bool:
        if self.capture_state is not CaptureState.capturing:
            return False
        self.capture_state = CaptureState.failed
        self.capture_settings = None
        return True

    def retry_capture(self) -> bool:
        """Return a failed capture to pending. No retry limit."""
        if self.capture_state is not CaptureState.failed:
            return False
        self.capture_state = CaptureState.pending
        return True
