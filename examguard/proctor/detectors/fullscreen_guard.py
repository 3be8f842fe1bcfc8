"""
Fullscreen-Guard - flags leaving fullscreen and asks the client to re-enter

The detector only confirms the exit; ProctorSession sends the
request_fullscreen command after the configured delay.
"""

from typing import Any, List

from ...models import EventType
from .base import DebouncedCondition, Detection, SignalDetector


class FullscreenGuard(SignalDetector):
    name = "fullscreen_guard"
    device = "fullscreen"

    DEFAULT_REREQUEST_DELAY = 1.0

    def __init__(self, rerequest_delay: float = DEFAULT_REREQUEST_DELAY):
        super().__init__()
        self.rerequest_delay = rerequest_delay
        self._exited = DebouncedCondition(EventType.FULLSCREEN_EXIT)

    @property
    def conditions(self):
        return [self._exited]

    def observe(self, sample: Any, now: float) -> List[Detection]:
        """
        Args:
            sample: True while the document is fullscreen
        """
        return self._evaluate(
            {EventType.FULLSCREEN_EXIT: not bool(sample)},
            now,
            lambda condition, sustained: {"rerequested": True}
        )
