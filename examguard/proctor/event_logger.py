"""
Event Logger - persists confirmed proctoring events and relays them live

Every event, whether a detector confirmation, a client report or an exam
lifecycle marker, goes through record(): append to ProctorLog first, then
publish to the broadcast hub.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from ..errors import ValidationError
from ..models import DEFAULT_SEVERITY, EventType, ProctorLog, Severity, parse_metadata
from ..storage import RecordStore
from .broadcast import BroadcastHub
from .utils.logging import log_violation

logger = logging.getLogger(__name__)


def _coerce(enum_type, value, label: str):
    try:
        return enum_type(value)
    except ValueError:
        raise ValidationError(f"Unknown {label}: {value!r}")


class ProctorEventLogger:
    """Append-then-publish pipeline for ProctorLog rows"""

    def __init__(
        self,
        store: RecordStore,
        hub: BroadcastHub,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.store = store
        self.hub = hub
        self.clock = clock

    def record(
        self,
        candidate_id: int,
        event_type: Union[EventType, str],
        severity: Optional[Union[Severity, str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ProctorLog:
        """
        Persist and broadcast one event.

        Args:
            candidate_id: Candidate the event belongs to
            event_type: One of EventType
            severity: Defaults to the event type's standard severity
            metadata: Payload matching the event type's shape

        Returns:
            The stored ProctorLog

        Raises:
            ValidationError: unknown event type/severity or bad metadata
        """
        event_type = _coerce(EventType, event_type, "event type")
        if severity is None:
            severity = DEFAULT_SEVERITY[event_type]
        else:
            severity = _coerce(Severity, severity, "severity")

        payload = parse_metadata(event_type, metadata)

        log = self.store.create_proctor_log(
            candidate_id=candidate_id,
            event_type=event_type,
            severity=severity,
            metadata=payload,
            timestamp=self.clock(),
        )
        log_violation(candidate_id, event_type.value, severity.value)

        delivered = self.hub.publish_event(log)
        logger.debug(f"Proctor log {log.id} relayed to {delivered} observers")

        return log
