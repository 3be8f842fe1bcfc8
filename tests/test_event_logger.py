"""
Tests for the Proctor Event Logger
"""
import pytest

from examguard.errors import ValidationError
from examguard.models import EventType, Severity
from examguard.proctor import BroadcastHub, ClientType, ProctorEventLogger
from examguard.storage import InMemoryRecordStore


@pytest.fixture
def pipeline(clock):
    store = InMemoryRecordStore()
    hub = BroadcastHub()
    return store, hub, ProctorEventLogger(store, hub, clock=clock)


class TestProctorEventLogger:
    """Append-then-publish behaviour"""

    def test_default_severity(self, pipeline):
        store, hub, logger = pipeline

        log = logger.record(1, "face_absent")

        assert log.severity == Severity.HIGH
        assert log.metadata == {"face_count": None, "sustained_seconds": 0.0}
        assert store.get_proctor_logs(1) == [log]

    def test_explicit_severity_wins(self, pipeline):
        _, _, logger = pipeline
        log = logger.record(1, EventType.TAB_SWITCH, severity="high")
        assert log.severity == Severity.HIGH

    def test_timestamp_from_clock(self, pipeline, clock):
        _, _, logger = pipeline
        log = logger.record(1, "tab_switch")
        assert log.timestamp == clock.now

    def test_published_to_admins(self, pipeline):
        _, hub, logger = pipeline
        admin = hub.register(ClientType.ADMIN)

        log = logger.record(5, "fullscreen_exit", metadata={"rerequested": True})

        batch = admin.drain_nowait()
        assert batch == [{"type": "proctor_event", "data": log.to_dict()}]

    def test_unknown_event_type(self, pipeline):
        store, _, logger = pipeline
        with pytest.raises(ValidationError):
            logger.record(1, "phone_detected")
        assert store.get_proctor_logs() == []

    def test_unknown_severity(self, pipeline):
        _, _, logger = pipeline
        with pytest.raises(ValidationError):
            logger.record(1, "tab_switch", severity="critical")

    def test_metadata_shape_is_enforced(self, pipeline):
        """Unknown keys on a typed payload are rejected"""
        _, _, logger = pipeline
        with pytest.raises(ValidationError):
            logger.record(1, "background_noise", metadata={"level": 90, "decibels": 3})

    def test_media_unavailable_device(self, pipeline):
        _, _, logger = pipeline

        log = logger.record(1, "media_unavailable", metadata={"device": "microphone", "reason": "NotFoundError"})
        assert log.severity == Severity.LOW
        assert log.metadata == {"device": "microphone", "reason": "NotFoundError"}

        with pytest.raises(ValidationError):
            logger.record(1, "media_unavailable", metadata={"device": "printer"})

    def test_logs_are_ordered(self, pipeline, clock):
        store, _, logger = pipeline
        for event in ("tab_switch", "fullscreen_exit", "face_absent"):
            logger.record(9, event)
            clock.advance(1)

        assert [log.event_type.value for log in store.get_proctor_logs(9)] == [
            "tab_switch", "fullscreen_exit", "face_absent"
        ]
