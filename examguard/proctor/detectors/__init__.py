"""Detector modules for proctoring"""

from .base import DebouncedCondition, Detection, DetectorState, SignalDetector
from .face_presence import FacePresenceDetector
from .audio_anomaly import AudioAnomalyDetector, audio_level, pcm_level
from .tab_visibility import TabVisibilityDetector
from .fullscreen_guard import FullscreenGuard
from .sensors import QueueSensor

__all__ = [
    "DebouncedCondition",
    "Detection",
    "DetectorState",
    "SignalDetector",
    "FacePresenceDetector",
    "AudioAnomalyDetector",
    "TabVisibilityDetector",
    "FullscreenGuard",
    "QueueSensor",
    "audio_level",
    "pcm_level",
]
