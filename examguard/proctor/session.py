"""
Proctor Session - runs the signal detectors for one candidate

Each enabled detector is an independent asyncio task reading its own
sensor queue. Confirmed detections go through the event logger; a lost
sensor degrades its detector without touching the others or the exam.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, settings as default_settings
from ..errors import ExamGuardError, MediaAccessError, ValidationError
from ..models import EventType, Exam, Severity
from .broadcast import BroadcastHub
from .detectors import (
    AudioAnomalyDetector,
    Detection,
    DetectorState,
    FacePresenceDetector,
    FullscreenGuard,
    QueueSensor,
    SignalDetector,
    TabVisibilityDetector,
)
from .event_logger import ProctorEventLogger
from .utils.logging import log_detector_degraded, log_proctor_event

logger = logging.getLogger(__name__)

# Live channel message type -> detector name
SAMPLE_ROUTES = {
    "face_sample": FacePresenceDetector.name,
    "audio_sample": AudioAnomalyDetector.name,
    "visibility": TabVisibilityDetector.name,
    "fullscreen": FullscreenGuard.name,
}

MEDIA_DEVICES = ("camera", "microphone", "fullscreen")


def build_detectors(exam: Exam, config: Settings) -> List[SignalDetector]:
    """Detectors for the features this exam turns on"""
    detectors: List[SignalDetector] = []

    if exam.enable_webcam:
        detectors.append(FacePresenceDetector(
            absent_window=config.FACE_ABSENT_WINDOW,
            multiple_window=config.MULTIPLE_FACES_WINDOW
        ))

    detectors.append(AudioAnomalyDetector(
        noise_threshold=config.AUDIO_NOISE_THRESHOLD,
        noise_window=config.AUDIO_NOISE_WINDOW,
        silence_floor=config.AUDIO_SILENCE_FLOOR,
        silence_window=config.AUDIO_SILENCE_WINDOW
    ))

    if exam.enable_tab_detection:
        detectors.append(TabVisibilityDetector())

    detectors.append(FullscreenGuard(rerequest_delay=config.FULLSCREEN_REREQUEST_DELAY))
    return detectors


class ProctorSession:
    """
    Manages proctoring for a single candidate connection.

    Lifecycle: start() spawns the detector tasks, feed() routes samples,
    close()/stop() release every sensor and cancel every task.
    """

    def __init__(
        self,
        candidate_id: int,
        exam: Exam,
        event_logger: ProctorEventLogger,
        hub: BroadcastHub,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = time.time
    ):
        self.id = f"PRS_{uuid.uuid4().hex[:6].upper()}"
        self.candidate_id = candidate_id
        self.exam = exam
        self.event_logger = event_logger
        self.hub = hub
        self.config = config or default_settings
        self.clock = clock
        self.is_active = False

        self.detectors: Dict[str, SignalDetector] = {
            d.name: d for d in build_detectors(exam, self.config)
        }
        self.sensors: Dict[str, QueueSensor] = {
            name: QueueSensor(d.device, maxsize=self.config.SENSOR_QUEUE_SIZE)
            for name, d in self.detectors.items()
        }
        self._tasks: Dict[str, asyncio.Task] = {}
        self._rerequests: List[asyncio.TimerHandle] = []

    def start(self):
        """Spawn one task per detector. Must be called inside a running loop."""
        if self.is_active:
            return
        self.is_active = True
        for name in self.detectors:
            self._tasks[name] = asyncio.create_task(
                self._run_detector(name), name=f"{self.id}:{name}"
            )
        log_proctor_event(
            self.candidate_id,
            "detectors_started",
            {"session": self.id, "detectors": ",".join(self.detectors)}
        )

    def feed(self, message_type: str, sample: Any, timestamp: Optional[float] = None) -> bool:
        """
        Route a live-channel sample to its detector's sensor.

        Returns:
            False if no running detector takes this message type
        """
        name = SAMPLE_ROUTES.get(message_type)
        sensor = self.sensors.get(name) if name else None
        if sensor is None or not self.is_active:
            return False
        return sensor.push(sample, timestamp)

    def report_media_error(self, device: str, reason: str) -> int:
        """
        Candidate client could not open a device.

        Returns:
            Number of detectors that will degrade
        """
        if device not in MEDIA_DEVICES:
            raise ValidationError(f"Unknown media device: {device!r}")

        affected = 0
        for name, detector in self.detectors.items():
            if detector.device == device:
                self.sensors[name].fail(reason)
                affected += 1

        if affected == 0:
            # Device has no running detector (e.g. webcam disabled); still record it
            self._log_media_unavailable(device, reason)
        return affected

    async def _run_detector(self, name: str):
        detector = self.detectors[name]
        sensor = self.sensors[name]
        timeout = self.config.SENSOR_SAMPLE_TIMEOUT

        try:
            while not sensor.closed:
                try:
                    item = await sensor.read(timeout)
                except MediaAccessError as e:
                    self._degrade(detector, e)
                    return

                if item is None:
                    continue

                sample, timestamp = item
                now = timestamp if timestamp is not None else self.clock()
                previous = detector.state

                # Bad samples and failed log writes never end the task
                try:
                    detections = detector.observe(sample, now)
                except (ValidationError, TypeError, ValueError) as e:
                    logger.warning(f"[{self.id}] {name} rejected sample: {e}")
                    continue
                except Exception:
                    logger.error(f"[{self.id}] {name} could not evaluate a sample", exc_info=True)
                    continue

                try:
                    for detection in detections:
                        self._emit(detection)

                    if detector.state != previous:
                        self._send_status(detector)
                except Exception:
                    logger.error(f"[{self.id}] {name} failed to process a sample", exc_info=True)
        finally:
            sensor.close()

    def _emit(self, detection: Detection):
        try:
            self.event_logger.record(
                self.candidate_id,
                detection.event_type,
                metadata=detection.metadata
            )
        except ExamGuardError as e:
            logger.error(f"[{self.id}] Could not log {detection.event_type.value}: {e.message}")
            return

        if detection.event_type == EventType.FULLSCREEN_EXIT:
            self._schedule_fullscreen_request()

    def _schedule_fullscreen_request(self):
        guard = self.detectors.get(FullscreenGuard.name)
        delay = guard.rerequest_delay if guard else self.config.FULLSCREEN_REREQUEST_DELAY
        handle = asyncio.get_running_loop().call_later(
            delay,
            self.hub.send_to_candidate,
            self.candidate_id,
            {"type": "request_fullscreen"}
        )
        self._rerequests.append(handle)

    def _degrade(self, detector: SignalDetector, error: MediaAccessError):
        detector.degrade(error.reason)
        log_detector_degraded(self.candidate_id, detector.name, error.reason)
        self._log_media_unavailable(error.device, error.reason)
        self._send_status(detector)

    def _log_media_unavailable(self, device: str, reason: str):
        required = device == "camera" and self.exam.enable_webcam
        try:
            self.event_logger.record(
                self.candidate_id,
                EventType.MEDIA_UNAVAILABLE,
                severity=Severity.HIGH if required else Severity.LOW,
                metadata={"device": device, "reason": reason}
            )
        except ExamGuardError as e:
            logger.error(f"[{self.id}] Could not log media_unavailable: {e.message}")

    def _send_status(self, detector: SignalDetector):
        self.hub.send_to_candidate(self.candidate_id, {
            "type": "detector_status",
            "data": detector.get_status()
        })

    def close(self):
        """Release sensors and cancel tasks without waiting for them"""
        self.is_active = False
        for handle in self._rerequests:
            handle.cancel()
        self._rerequests.clear()
        for sensor in self.sensors.values():
            sensor.close()
        for task in self._tasks.values():
            task.cancel()

    async def stop(self):
        """close() and wait for every detector task to finish"""
        self.close()
        tasks = list(self._tasks.values())
        self._tasks.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        log_proctor_event(self.candidate_id, "detectors_stopped", {"session": self.id})

    @property
    def degraded(self) -> List[str]:
        return [
            name for name, d in self.detectors.items()
            if d.state == DetectorState.DEGRADED
        ]

    def get_status(self) -> Dict[str, Any]:
        return {
            "session_id": self.id,
            "candidate_id": self.candidate_id,
            "is_active": self.is_active,
            "detectors": [d.get_status() for d in self.detectors.values()]
        }


class ProctorSessionRegistry:
    """
    Live proctor sessions keyed by candidate id.

    Reference-counted by connection so a reconnecting candidate keeps a
    single set of detectors.
    """

    def __init__(
        self,
        event_logger: ProctorEventLogger,
        hub: BroadcastHub,
        config: Optional[Settings] = None
    ):
        self.event_logger = event_logger
        self.hub = hub
        self.config = config or default_settings
        self._sessions: Dict[int, ProctorSession] = {}
        self._connections: Dict[int, int] = {}

    def attach(self, candidate_id: int, exam: Exam) -> ProctorSession:
        """Get or start the candidate's session for a new connection"""
        session = self._sessions.get(candidate_id)
        if session is None or not session.is_active:
            session = ProctorSession(
                candidate_id, exam, self.event_logger, self.hub, config=self.config
            )
            session.start()
            self._sessions[candidate_id] = session
            self._connections[candidate_id] = 0
        self._connections[candidate_id] += 1
        return session

    async def detach(self, candidate_id: int, session: Optional[ProctorSession] = None):
        """
        Drop one connection; stop the session when none remain.

        Args:
            session: The session the connection attached to. When it is no
                longer the registered one (the attempt finished and a new one
                started), the connection's count went with it and nothing
                is touched.
        """
        if session is not None and self._sessions.get(candidate_id) is not session:
            return
        remaining = self._connections.get(candidate_id, 0) - 1
        if remaining > 0:
            self._connections[candidate_id] = remaining
            return
        await self.stop(candidate_id)

    def get(self, candidate_id: int) -> Optional[ProctorSession]:
        return self._sessions.get(candidate_id)

    def close(self, candidate_id: int):
        """Synchronous stop, used when the exam finishes"""
        session = self._sessions.pop(candidate_id, None)
        self._connections.pop(candidate_id, None)
        if session is not None:
            session.close()

    async def stop(self, candidate_id: int):
        session = self._sessions.pop(candidate_id, None)
        self._connections.pop(candidate_id, None)
        if session is not None:
            await session.stop()

    async def stop_all(self):
        for candidate_id in list(self._sessions):
            await self.stop(candidate_id)

    def statuses(self) -> Dict[int, Dict[str, Any]]:
        return {cid: s.get_status() for cid, s in self._sessions.items()}

    def __len__(self) -> int:
        return len(self._sessions)
