"""
Typed ProctorLog metadata.

Each event type has an explicit payload shape; anything not listed in
METADATA_MODELS falls back to an open JSON map.
"""
from typing import Any, Dict, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .records import EventType


class _StrictMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FaceEventMetadata(_StrictMetadata):
    """face_absent / multiple_faces"""
    face_count: Optional[int] = Field(None, ge=0)
    sustained_seconds: float = Field(0.0, ge=0)


class AudioEventMetadata(_StrictMetadata):
    """background_noise / voice_absence / external_voice"""
    level: Optional[float] = Field(None, ge=0)
    threshold: Optional[float] = Field(None, ge=0)
    sustained_seconds: float = Field(0.0, ge=0)


class TabSwitchMetadata(_StrictMetadata):
    hidden_at: Optional[float] = None


class FullscreenExitMetadata(_StrictMetadata):
    rerequested: bool = True


class MediaUnavailableMetadata(_StrictMetadata):
    device: Optional[Literal["camera", "microphone", "fullscreen"]] = None
    reason: str = "permission denied"


class LifecycleMetadata(_StrictMetadata):
    """exam_start / exam_complete"""
    status: Optional[str] = None
    score: Optional[int] = None


METADATA_MODELS: Dict[EventType, Type[BaseModel]] = {
    EventType.FACE_ABSENT: FaceEventMetadata,
    EventType.MULTIPLE_FACES: FaceEventMetadata,
    EventType.BACKGROUND_NOISE: AudioEventMetadata,
    EventType.VOICE_ABSENCE: AudioEventMetadata,
    EventType.EXTERNAL_VOICE: AudioEventMetadata,
    EventType.TAB_SWITCH: TabSwitchMetadata,
    EventType.FULLSCREEN_EXIT: FullscreenExitMetadata,
    EventType.MEDIA_UNAVAILABLE: MediaUnavailableMetadata,
    EventType.EXAM_START: LifecycleMetadata,
    EventType.EXAM_COMPLETE: LifecycleMetadata,
}


def parse_metadata(event_type: EventType, metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate a metadata payload against the shape for its event type.

    Missing metadata is allowed (all fields have defaults); unknown keys
    and wrongly typed values are not.

    Returns:
        Normalized metadata dict (defaults filled in)

    Raises:
        ValidationError: payload does not match the event's shape
    """
    model = METADATA_MODELS.get(event_type)
    if model is None:
        return dict(metadata or {})

    try:
        if metadata is None:
            return model().model_dump()
        return model(**metadata).model_dump()
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid metadata for {event_type.value}: {e.errors()[0]['msg']}"
        ) from e
    except TypeError as e:
        raise ValidationError(f"Invalid metadata for {event_type.value}: {e}") from e
