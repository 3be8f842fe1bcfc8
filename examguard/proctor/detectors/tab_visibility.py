"""
Tab-Visibility Detector - one tab_switch per transition to hidden
"""

from typing import Any, List

from ...models import EventType
from .base import DebouncedCondition, Detection, SignalDetector


def is_hidden(sample: Any) -> bool:
    """Accept document.visibilityState strings or plain booleans"""
    if isinstance(sample, str):
        return sample.lower() == "hidden"
    return bool(sample)


class TabVisibilityDetector(SignalDetector):
    name = "tab_visibility"
    device = "browser"

    def __init__(self):
        super().__init__()
        self._hidden = DebouncedCondition(EventType.TAB_SWITCH)

    @property
    def conditions(self):
        return [self._hidden]

    def observe(self, sample: Any, now: float) -> List[Detection]:
        return self._evaluate(
            {EventType.TAB_SWITCH: is_hidden(sample)},
            now,
            lambda condition, sustained: {"hidden_at": now}
        )
