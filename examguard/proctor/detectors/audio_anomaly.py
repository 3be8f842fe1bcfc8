"""
Audio-Anomaly Detector - sustained background noise or total silence

Samples arrive either as a precomputed 0-255 level (what the browser
analyser node reports) or as base64 int16 PCM, which is reduced to the
same scale here.
"""

import base64
import binascii
import logging
import math
from typing import Any, Dict, List, Union

import numpy as np

from ...errors import ValidationError
from ...models import EventType
from .base import DebouncedCondition, Detection, SignalDetector

logger = logging.getLogger(__name__)

INT16_FULL_SCALE = 32768.0
LEVEL_FULL_SCALE = 255.0


def pcm_level(audio_data: bytes) -> float:
    """
    Reduce raw int16 PCM to a 0-255 level.

    Uses mean absolute amplitude scaled to the full level range.
    """
    # Drop a trailing odd byte rather than fail the whole chunk
    usable = len(audio_data) - (len(audio_data) % 2)
    samples = np.frombuffer(audio_data[:usable], dtype=np.int16)
    if samples.size == 0:
        return 0.0

    amplitude = float(np.mean(np.abs(samples.astype(np.int32))))
    return min(LEVEL_FULL_SCALE, amplitude / INT16_FULL_SCALE * LEVEL_FULL_SCALE)


def audio_level(sample: Union[float, int, Dict[str, Any]]) -> float:
    """
    Normalize an audio sample to a 0-255 level.

    Accepts a bare number, {"level": n} or {"pcm": "<base64 int16>"}.

    Raises:
        ValidationError: sample has neither a level nor decodable PCM
    """
    if isinstance(sample, (int, float)) and not isinstance(sample, bool):
        try:
            level = float(sample)
        except OverflowError:
            level = math.inf if sample > 0 else 0.0
        if math.isnan(level):
            raise ValidationError("Audio level is not a number")
        return min(LEVEL_FULL_SCALE, max(0.0, level))

    if isinstance(sample, dict):
        level = sample.get("level")
        if level is not None:
            if isinstance(level, bool) or not isinstance(level, (int, float)):
                raise ValidationError(f"Audio level must be a number, got {level!r}")
            return audio_level(level)
        if sample.get("pcm"):
            try:
                raw = base64.b64decode(sample["pcm"], validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValidationError(f"Undecodable PCM audio: {e}")
            return pcm_level(raw)

    raise ValidationError("Audio sample needs a level or base64 PCM")


class AudioAnomalyDetector(SignalDetector):
    """
    Confirms:
    - background_noise: level above noise_threshold for longer than noise_window
    - voice_absence: level below silence_floor for longer than silence_window
    """

    name = "audio_anomaly"
    device = "microphone"

    DEFAULT_NOISE_THRESHOLD = 80.0
    DEFAULT_NOISE_WINDOW = 3.0
    DEFAULT_SILENCE_FLOOR = 5.0
    DEFAULT_SILENCE_WINDOW = 30.0

    def __init__(
        self,
        noise_threshold: float = DEFAULT_NOISE_THRESHOLD,
        noise_window: float = DEFAULT_NOISE_WINDOW,
        silence_floor: float = DEFAULT_SILENCE_FLOOR,
        silence_window: float = DEFAULT_SILENCE_WINDOW
    ):
        super().__init__()
        self.noise_threshold = noise_threshold
        self.silence_floor = silence_floor

        self._noise = DebouncedCondition(EventType.BACKGROUND_NOISE, noise_window)
        self._silence = DebouncedCondition(EventType.VOICE_ABSENCE, silence_window)
        self.last_level = 0.0

    @property
    def conditions(self):
        return [self._noise, self._silence]

    def observe(self, sample: Any, now: float) -> List[Detection]:
        level = audio_level(sample)
        self.last_level = level

        def metadata(condition, sustained):
            threshold = (
                self.noise_threshold
                if condition.event_type == EventType.BACKGROUND_NOISE
                else self.silence_floor
            )
            return {
                "level": round(level, 2),
                "threshold": threshold,
                "sustained_seconds": round(sustained, 3)
            }

        return self._evaluate(
            {
                EventType.BACKGROUND_NOISE: level > self.noise_threshold,
                EventType.VOICE_ABSENCE: level < self.silence_floor,
            },
            now,
            metadata
        )

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["level"] = round(self.last_level, 2)
        return status
