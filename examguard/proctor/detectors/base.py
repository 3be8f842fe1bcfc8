"""
Debounced signal detection shared by all proctoring detectors.

A detector watches one or more conditions. Each condition is either
windowed (must hold strictly longer than its window before it is
confirmed) or immediate (edge-triggered, one event per transition into
the condition).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ...models import EventType

logger = logging.getLogger(__name__)


class DetectorState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DEGRADED = "degraded"


@dataclass
class Detection:
    """A confirmed violation, ready for the event logger"""
    event_type: EventType
    metadata: Dict[str, Any] = field(default_factory=dict)


class DebouncedCondition:
    """
    Tracks how long one condition has held.

    window=None makes the condition immediate.
    """

    def __init__(self, event_type: EventType, window: Optional[float] = None):
        self.event_type = event_type
        self.window = window
        self.started_at: Optional[float] = None
        self._fired = False

    @property
    def immediate(self) -> bool:
        return self.window is None

    @property
    def pending(self) -> bool:
        return self.started_at is not None and not self._fired

    def update(self, active: bool, now: float) -> Optional[float]:
        """
        Feed one sample.

        Returns:
            Seconds the condition was sustained when it is confirmed on
            this sample, otherwise None
        """
        if not active:
            self.started_at = None
            self._fired = False
            return None

        if self.immediate:
            if self._fired:
                return None
            self._fired = True
            self.started_at = now
            return 0.0

        if self.started_at is None:
            self.started_at = now
            return None

        sustained = now - self.started_at
        if sustained > self.window:
            # Restart the window so a sustained condition re-triggers once per window
            self.started_at = now
            return sustained
        return None

    def reset(self):
        self.started_at = None
        self._fired = False


class SignalDetector:
    """
    Base class for the proctoring detectors.

    Subclasses set name/device, build their conditions and implement
    observe(), which turns one sensor sample into zero or more Detections.
    """

    name = "detector"
    device = "camera"

    def __init__(self):
        self.state = DetectorState.IDLE
        self.degraded_reason: Optional[str] = None
        self.samples_seen = 0
        self.detections = 0

    @property
    def conditions(self) -> List[DebouncedCondition]:
        raise NotImplementedError

    def observe(self, sample: Any, now: float) -> List[Detection]:
        raise NotImplementedError

    def _evaluate(self, flags: Dict[EventType, bool], now: float, build_metadata) -> List[Detection]:
        """Run every condition against this sample and update the state"""
        if self.state == DetectorState.DEGRADED:
            return []

        self.samples_seen += 1
        detections = []
        for condition in self.conditions:
            sustained = condition.update(flags.get(condition.event_type, False), now)
            if sustained is not None:
                detections.append(Detection(
                    event_type=condition.event_type,
                    metadata=build_metadata(condition, sustained)
                ))

        if detections:
            self.state = DetectorState.CONFIRMED
            self.detections += len(detections)
        elif any(c.pending for c in self.conditions):
            self.state = DetectorState.PENDING
        elif any(c.started_at is not None for c in self.conditions):
            # Condition still holding after an immediate or confirmed event
            self.state = DetectorState.CONFIRMED
        else:
            self.state = DetectorState.IDLE

        return detections

    def degrade(self, reason: str):
        """Sensor lost. The detector stops evaluating but the exam carries on."""
        self.state = DetectorState.DEGRADED
        self.degraded_reason = reason
        for condition in self.conditions:
            condition.reset()
        logger.warning(f"{self.name} degraded: {reason}")

    def reset(self):
        self.state = DetectorState.IDLE
        self.degraded_reason = None
        for condition in self.conditions:
            condition.reset()

    def get_status(self) -> Dict[str, Any]:
        return {
            "detector": self.name,
            "device": self.device,
            "state": self.state.value,
            "reason": self.degraded_reason,
            "samples": self.samples_seen,
            "detections": self.detections
        }
