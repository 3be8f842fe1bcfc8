"""
Tests for Proctoring Detectors

Debounce windows, edge-triggered detectors, PCM level reduction and
sensor queues.
"""
import asyncio
import base64

import numpy as np
import pytest

from examguard.errors import MediaAccessError, ValidationError
from examguard.models import EventType


class TestFacePresenceDetector:
    """Tests for FacePresenceDetector"""

    def test_absent_needs_more_than_window(self):
        """9.9s without a face is not a violation"""
        from examguard.proctor.detectors import FacePresenceDetector, DetectorState

        detector = FacePresenceDetector()
        assert detector.observe(0, 0.0) == []
        assert detector.observe(0, 9.9) == []
        assert detector.state == DetectorState.PENDING

    def test_absent_confirmed_once_per_window(self):
        """11s gives one event, a further 11s gives a second"""
        from examguard.proctor.detectors import FacePresenceDetector

        detector = FacePresenceDetector()
        detector.observe(0, 0.0)

        first = detector.observe(0, 11.0)
        assert [d.event_type for d in first] == [EventType.FACE_ABSENT]
        assert first[0].metadata == {"face_count": 0, "sustained_seconds": 11.0}

        assert detector.observe(0, 15.0) == []
        second = detector.observe(0, 22.0)
        assert [d.event_type for d in second] == [EventType.FACE_ABSENT]

    def test_exactly_window_is_not_enough(self):
        from examguard.proctor.detectors import FacePresenceDetector

        detector = FacePresenceDetector()
        detector.observe(0, 0.0)
        assert detector.observe(0, 10.0) == []

    def test_face_return_resets(self):
        """A face in between restarts the window"""
        from examguard.proctor.detectors import FacePresenceDetector, DetectorState

        detector = FacePresenceDetector()
        detector.observe(0, 0.0)
        detector.observe(1, 8.0)
        assert detector.state == DetectorState.IDLE

        detector.observe(0, 9.0)
        assert detector.observe(0, 18.0) == []
        assert len(detector.observe(0, 19.5)) == 1

    def test_multiple_faces_window(self):
        from examguard.proctor.detectors import FacePresenceDetector

        detector = FacePresenceDetector()
        detector.observe(2, 0.0)
        assert detector.observe(3, 4.0) == []

        detections = detector.observe(2, 5.5)
        assert [d.event_type for d in detections] == [EventType.MULTIPLE_FACES]
        assert detections[0].metadata["face_count"] == 2

    def test_dense_samples_confirm_once_per_window(self):
        """A sample every 0.1s for 22s gives exactly two face_absent events"""
        from examguard.proctor.detectors import FacePresenceDetector

        detector = FacePresenceDetector()
        detections = []
        for i in range(221):
            detections += detector.observe(0, i / 10)

        assert [d.event_type for d in detections] == [EventType.FACE_ABSENT] * 2
        assert detections[0].metadata["sustained_seconds"] == pytest.approx(10.1)
        assert detector.detections == 2

    @pytest.mark.parametrize("sample", [float("inf"), float("-inf"), float("nan"), 10 ** 400, 1.5, True, "x", None])
    def test_rejects_unusable_face_counts(self, sample):
        from examguard.proctor.detectors import FacePresenceDetector

        detector = FacePresenceDetector()
        with pytest.raises(ValidationError):
            detector.observe(sample, 0.0)
        assert detector.samples_seen == 0

    def test_accepts_whole_number_forms(self):
        from examguard.proctor.detectors.face_presence import face_count_of

        assert face_count_of(2) == 2
        assert face_count_of(1.0) == 1
        assert face_count_of("3") == 3


class TestAudioAnomalyDetector:
    """Tests for AudioAnomalyDetector"""

    def test_background_noise(self):
        from examguard.proctor.detectors import AudioAnomalyDetector

        detector = AudioAnomalyDetector()
        detector.observe({"level": 120}, 0.0)
        assert detector.observe({"level": 95}, 2.0) == []

        detections = detector.observe({"level": 100}, 3.5)
        assert [d.event_type for d in detections] == [EventType.BACKGROUND_NOISE]
        assert detections[0].metadata["threshold"] == 80.0
        assert detections[0].metadata["level"] == 100.0

    def test_noise_at_threshold_is_not_noise(self):
        from examguard.proctor.detectors import AudioAnomalyDetector

        detector = AudioAnomalyDetector()
        detector.observe(80, 0.0)
        assert detector.observe(80, 10.0) == []

    def test_voice_absence(self):
        from examguard.proctor.detectors import AudioAnomalyDetector

        detector = AudioAnomalyDetector()
        detector.observe(2, 0.0)
        assert detector.observe(1, 29.0) == []

        detections = detector.observe(0, 31.0)
        assert [d.event_type for d in detections] == [EventType.VOICE_ABSENCE]
        assert detections[0].metadata["threshold"] == 5.0

    def test_normal_speech_is_quiet(self):
        from examguard.proctor.detectors import AudioAnomalyDetector, DetectorState

        detector = AudioAnomalyDetector()
        for t in range(0, 60, 2):
            assert detector.observe(40, float(t)) == []
        assert detector.state == DetectorState.IDLE

    def test_pcm_samples(self):
        """Loud int16 PCM maps to a high level"""
        from examguard.proctor.detectors import AudioAnomalyDetector

        loud = np.array([20000, -20000] * 256, dtype=np.int16)
        payload = {"pcm": base64.b64encode(loud.tobytes()).decode()}

        detector = AudioAnomalyDetector()
        detector.observe(payload, 0.0)
        detections = detector.observe(payload, 4.0)

        assert [d.event_type for d in detections] == [EventType.BACKGROUND_NOISE]
        assert detector.last_level > 150

    def test_invalid_sample(self):
        from examguard.proctor.detectors import AudioAnomalyDetector

        with pytest.raises(ValidationError):
            AudioAnomalyDetector().observe({"volume": 3}, 0.0)


class TestAudioLevel:
    """Tests for PCM level reduction"""

    def test_silence(self):
        from examguard.proctor.detectors import pcm_level

        assert pcm_level(np.zeros(128, dtype=np.int16).tobytes()) == 0.0

    def test_full_scale(self):
        from examguard.proctor.detectors import pcm_level

        samples = np.array([-32768] * 64, dtype=np.int16)
        assert pcm_level(samples.tobytes()) == 255.0

    def test_half_scale(self):
        from examguard.proctor.detectors import pcm_level

        samples = np.array([16384, -16384] * 32, dtype=np.int16)
        assert pcm_level(samples.tobytes()) == pytest.approx(127.5)

    def test_empty_buffer(self):
        from examguard.proctor.detectors import pcm_level

        assert pcm_level(b"") == 0.0

    def test_level_is_clamped(self):
        from examguard.proctor.detectors import audio_level

        assert audio_level(400) == 255.0
        assert audio_level({"level": -3}) == 0.0

    def test_huge_and_non_finite_levels(self):
        from examguard.proctor.detectors import audio_level

        assert audio_level(10 ** 400) == 255.0
        assert audio_level(-(10 ** 400)) == 0.0
        assert audio_level(float("inf")) == 255.0
        with pytest.raises(ValidationError):
            audio_level(float("nan"))
        with pytest.raises(ValidationError):
            audio_level({"level": "loud"})

    def test_bad_base64(self):
        from examguard.proctor.detectors import audio_level

        with pytest.raises(ValidationError):
            audio_level({"pcm": "not base64!!"})


class TestImmediateDetectors:
    """Tab visibility and fullscreen are edge-triggered"""

    def test_tab_switch_once_per_transition(self):
        from examguard.proctor.detectors import TabVisibilityDetector

        detector = TabVisibilityDetector()
        first = detector.observe("hidden", 100.0)
        assert [d.event_type for d in first] == [EventType.TAB_SWITCH]
        assert first[0].metadata == {"hidden_at": 100.0}

        assert detector.observe("hidden", 101.0) == []
        assert detector.observe("visible", 102.0) == []
        assert len(detector.observe("hidden", 103.0)) == 1

    def test_fullscreen_exit(self):
        from examguard.proctor.detectors import FullscreenGuard, DetectorState

        guard = FullscreenGuard()
        assert guard.observe(True, 0.0) == []

        detections = guard.observe(False, 1.0)
        assert [d.event_type for d in detections] == [EventType.FULLSCREEN_EXIT]
        assert detections[0].metadata == {"rerequested": True}
        assert guard.state == DetectorState.CONFIRMED

        assert guard.observe(False, 2.0) == []
        assert guard.observe(True, 3.0) == []
        assert guard.state == DetectorState.IDLE


class TestDegradation:
    """A degraded detector stops evaluating"""

    def test_degraded_ignores_samples(self):
        from examguard.proctor.detectors import FacePresenceDetector, DetectorState

        detector = FacePresenceDetector()
        detector.observe(0, 0.0)
        detector.degrade("camera permission denied")

        assert detector.state == DetectorState.DEGRADED
        assert detector.observe(0, 60.0) == []
        assert detector.get_status()["reason"] == "camera permission denied"

        detector.reset()
        assert detector.state == DetectorState.IDLE


class TestQueueSensor:
    """Tests for the bounded sensor queue"""

    @pytest.mark.asyncio
    async def test_read_times_out(self):
        from examguard.proctor.detectors import QueueSensor

        sensor = QueueSensor("camera")
        assert await sensor.read(0.05) is None

    @pytest.mark.asyncio
    async def test_push_and_read(self):
        from examguard.proctor.detectors import QueueSensor

        sensor = QueueSensor("camera")
        sensor.push(1, 5.0)
        assert await sensor.read(0.1) == (1, 5.0)

    @pytest.mark.asyncio
    async def test_drops_oldest_when_full(self):
        from examguard.proctor.detectors import QueueSensor

        sensor = QueueSensor("microphone", maxsize=2)
        for level in (10, 20, 30):
            sensor.push(level)

        assert sensor.dropped == 1
        assert (await sensor.read(0.1))[0] == 20
        assert (await sensor.read(0.1))[0] == 30

    @pytest.mark.asyncio
    async def test_failure_raises_media_error(self):
        from examguard.proctor.detectors import QueueSensor

        sensor = QueueSensor("camera")
        sensor.fail("NotAllowedError")

        with pytest.raises(MediaAccessError) as exc_info:
            await sensor.read(0.1)
        assert exc_info.value.device == "camera"
        assert exc_info.value.reason == "NotAllowedError"

    @pytest.mark.asyncio
    async def test_close_unblocks_reader(self):
        from examguard.proctor.detectors import QueueSensor

        sensor = QueueSensor("camera")
        reader = asyncio.create_task(sensor.read(5.0))
        await asyncio.sleep(0)

        sensor.close()
        assert await asyncio.wait_for(reader, 1.0) is None
        assert sensor.push(1) is False
