"""
Face-Presence Detector - confirms missing or extra faces on camera

Works on face counts reported by the candidate client; the face
detection model itself runs client-side.
"""

import math
from typing import Any, List

from ...errors import ValidationError
from ...models import EventType
from .base import DebouncedCondition, Detection, SignalDetector


def face_count_of(sample: Any) -> int:
    """Face count from a client sample; finite whole numbers only"""
    if isinstance(sample, bool):
        raise ValidationError(f"Face count must be a number, got {sample!r}")
    try:
        value = float(sample)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Face count must be a number, got {sample!r}")
    if not math.isfinite(value) or not value.is_integer():
        raise ValidationError(f"Face count must be a whole number, got {sample!r}")
    return int(value)


class FacePresenceDetector(SignalDetector):
    """
    Confirms:
    - face_absent: zero faces for longer than absent_window
    - multiple_faces: more than one face for longer than multiple_window
    """

    name = "face_presence"
    device = "camera"

    DEFAULT_ABSENT_WINDOW = 10.0
    DEFAULT_MULTIPLE_WINDOW = 5.0

    def __init__(
        self,
        absent_window: float = DEFAULT_ABSENT_WINDOW,
        multiple_window: float = DEFAULT_MULTIPLE_WINDOW
    ):
        super().__init__()
        self._absent = DebouncedCondition(EventType.FACE_ABSENT, absent_window)
        self._multiple = DebouncedCondition(EventType.MULTIPLE_FACES, multiple_window)
        self._last_count = 0

    @property
    def conditions(self):
        return [self._absent, self._multiple]

    def observe(self, sample: Any, now: float) -> List[Detection]:
        """
        Args:
            sample: number of faces in the frame
            now: sample time in seconds
        """
        face_count = max(0, face_count_of(sample))
        self._last_count = face_count

        return self._evaluate(
            {
                EventType.FACE_ABSENT: face_count == 0,
                EventType.MULTIPLE_FACES: face_count > 1,
            },
            now,
            lambda condition, sustained: {
                "face_count": face_count,
                "sustained_seconds": round(sustained, 3)
            }
        )
