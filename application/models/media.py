"""Media capture configuration and captured artifacts.

MediaCaptureSettings is stored as JSON on an AtomTemplate. The capture
subsystem only ever sees a fully resolved settings value: either the
template's override or one of the per-type defaults.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class MediaCaptureType(str, Enum):
    photo = "photo"
    video = "video"
    audio = "audio"


class VideoQuality(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


# ---------------------------------------------------------------------------
# Recording duration (audio)
# ---------------------------------------------------------------------------


class ManualDuration(BaseModel):
    kind: Literal["manual"] = "manual"

    @property
    def display_string(self) -> str:
        return "Manual"


class UntilTimeDuration(BaseModel):
    kind: Literal["untilTime"] = "untilTime"
    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    @property
    def display_string(self) -> str:
        return f"Until {self.hour}:{self.minute:02d}"


class FixedDuration(BaseModel):
    kind: Literal["fixed"] = "fixed"
    minutes: int = Field(ge=1)

    @property
    def display_string(self) -> str:
        if self.minutes >= 60:
            hours, mins = divmod(self.minutes, 60)
            if mins == 0:
                return f"{hours} hour{'s' if hours > 1 else ''}"
            return f"{hours}h {mins}m"
        return f"{self.minutes} min"


RecordingDuration = Union[ManualDuration, UntilTimeDuration, FixedDuration]


# ---------------------------------------------------------------------------
# Per-type settings
# ---------------------------------------------------------------------------


class AudioCaptureSettings(BaseModel):
    enable_snoring_detection: bool = True
    recording_duration: RecordingDuration = Field(
        default_factory=lambda: FixedDuration(minutes=480),
        discriminator="kind",
    )
    save_full_recording: bool = True
    save_snoring_clips: bool = True
    sensitivity_threshold: float = Field(default=40.0, ge=0.0, le=100.0)
    retention_days: Optional[int] = 30

    @property
    def estimated_storage_mb(self) -> float:
        if self.save_full_recording:
            return 20.0
        if self.save_snoring_clips:
            return 2.0
        return 0.1


class PhotoCaptureSettings(BaseModel):
    use_front_camera: bool = False
    save_to_photos: bool = False
    compression_quality: float = Field(default=0.8, ge=0.0, le=1.0)


class VideoCaptureSettings(BaseModel):
    max_duration_seconds: float = 60.0
    quality: VideoQuality = VideoQuality.medium
    save_to_photos: bool = False


class MediaCaptureSettings(BaseModel):
    """Complete capture configuration for one media atom."""

    capture_type: MediaCaptureType
    audio_settings: Optional[AudioCaptureSettings] = None
    photo_settings: Optional[PhotoCaptureSettings] = None
    video_settings: Optional[VideoCaptureSettings] = None

    @classmethod
    def default_audio(cls) -> "MediaCaptureSettings":
        return cls(capture_type=MediaCaptureType.audio, audio_settings=AudioCaptureSettings())

    @classmethod
    def default_photo(cls) -> "MediaCaptureSettings":
        return cls(capture_type=MediaCaptureType.photo, photo_settings=PhotoCaptureSettings())

    @classmethod
    def default_video(cls) -> "MediaCaptureSettings":
        return cls(capture_type=MediaCaptureType.video, video_settings=VideoCaptureSettings())

    @classmethod
    def default_for(cls, capture_type: MediaCaptureType) -> "MediaCaptureSettings":
        if capture_type == MediaCaptureType.photo:
            return cls.default_photo()
        if capture_type == MediaCaptureType.video:
            return cls.default_video()
        return cls.default_audio()

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["MediaCaptureSettings"]:
        """Decode stored settings. Corrupt or empty input returns None."""
        if not raw:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring unreadable media capture settings: %s", e)
            return None


class MediaCapture(BaseModel):
    """Metadata for a captured artifact. The file itself lives elsewhere."""

    id: UUID = Field(default_factory=uuid4)
    capture_type: MediaCaptureType
    captured_at: datetime = Field(default_factory=datetime.now)
    media_file_url: Optional[str] = None
    duration_seconds: Optional[float] = None
