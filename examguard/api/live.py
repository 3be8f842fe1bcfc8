"""
Live channel - one WebSocket per connected client

Protocol (JSON messages):
- client -> server: {type: register, clientType: admin|candidate, candidateId?, token}
  (token may instead be passed as the ?token= query parameter)
- candidate -> server: video_frame {frame}, face_sample {faces},
  audio_sample {level | pcm}, visibility {state}, fullscreen {active},
  media_error {device, reason}
- server -> admin: {type: video_frame, candidateId, frame},
  {type: proctor_event, data}
- server -> candidate: {type: request_fullscreen}, {type: detector_status, data}
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from ..errors import ExamGuardError
from ..proctor import ClientType, Observer, ProctorSession, SAMPLE_ROUTES
from ..utils.auth import decode_access_token, is_admin
from .deps import Services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Live"])

# Where each sample type carries its value
SAMPLE_FIELDS = {
    "face_sample": "faces",
    "visibility": "state",
    "fullscreen": "active",
}


def extract_sample(message: Dict[str, Any]) -> Any:
    field = SAMPLE_FIELDS.get(message["type"])
    if field is None:
        # audio_sample keeps the whole message: level or pcm
        return message
    return message.get(field)


async def _writer(websocket: WebSocket, observer: Observer, services: Services):
    """Drain the observer's outbound buffer onto the socket"""
    try:
        while not observer.closed:
            for message in await observer.next_batch():
                await websocket.send_json(message)
    except Exception as e:
        logger.warning(f"Live writer for {observer.id} stopped: {e}")
        services.hub.unregister(observer)


class LiveConnection:
    """State for one accepted WebSocket"""

    def __init__(self, websocket: WebSocket, services: Services):
        self.websocket = websocket
        self.services = services
        self.observer: Optional[Observer] = None
        self.candidate_id: Optional[int] = None
        self.proctor_session: Optional[ProctorSession] = None
        self.writer: Optional[asyncio.Task] = None

    async def send_error(self, detail: str):
        if self.observer is not None:
            self.observer.push_event({"type": "error", "detail": detail})
        else:
            await self.websocket.send_json({"type": "error", "detail": detail})

    def authenticate(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """User from the register message's token, or the ?token= query parameter"""
        token = message.get("token") or self.websocket.query_params.get("token")
        if not token:
            return None
        try:
            return decode_access_token(str(token))
        except HTTPException as e:
            logger.info(f"Live registration rejected: {e.detail}")
            return None

    async def register(self, message: Dict[str, Any]):
        if self.observer is not None:
            await self.send_error("Already registered")
            return

        try:
            client_type = ClientType(message.get("clientType"))
        except ValueError:
            await self.send_error(f"Unknown clientType: {message.get('clientType')!r}")
            return

        user = self.authenticate(message)
        if user is None:
            await self.send_error("Not authenticated")
            return

        if client_type == ClientType.ADMIN and not is_admin(user):
            await self.send_error("Admin access required")
            return

        if client_type == ClientType.CANDIDATE:
            try:
                candidate_id = int(message.get("candidateId"))
            except (TypeError, ValueError):
                await self.send_error("candidateId is required for candidate connections")
                return

            candidate = self.services.sessions.get_candidate(candidate_id)
            self.services.sessions.check_access(candidate, user)
            if candidate.status.is_finished:
                await self.send_error(f"Candidate attempt is already {candidate.status.value}")
                return
            exam = self.services.sessions.get_exam(candidate.exam_id)
            self.proctor_session = self.services.proctors.attach(candidate.id, exam)
            self.candidate_id = candidate.id

        self.observer = self.services.hub.register(client_type, self.candidate_id)
        self.writer = asyncio.create_task(_writer(self.websocket, self.observer, self.services))
        self.observer.push_event({
            "type": "registered",
            "clientType": client_type.value,
            "candidateId": self.candidate_id,
            "observerId": self.observer.id,
        })

    async def handle(self, message: Dict[str, Any]):
        kind = message.get("type")

        if kind == "register":
            await self.register(message)
            return

        if self.observer is None:
            await self.send_error("Register first")
            return

        if self.observer.is_admin or self.candidate_id is None:
            logger.debug(f"Ignoring {kind} from admin observer {self.observer.id}")
            return

        if kind == "video_frame":
            frame = message.get("frame")
            if frame:
                self.services.hub.publish_frame(self.candidate_id, frame)
            return

        session = self.proctor_session
        if session is None or not session.is_active:
            await self.send_error("Proctoring is not running for this candidate")
            return

        if kind == "media_error":
            session.report_media_error(
                str(message.get("device")),
                str(message.get("reason") or "permission denied")
            )
        elif kind in SAMPLE_ROUTES:
            session.feed(kind, extract_sample(message))
        else:
            await self.send_error(f"Unknown message type: {kind!r}")

    async def close(self):
        if self.writer is not None:
            self.writer.cancel()
        if self.observer is not None:
            self.services.hub.unregister(self.observer)
        if self.proctor_session is not None:
            await self.services.proctors.detach(self.candidate_id, self.proctor_session)


@router.websocket("/ws")
async def live_channel(websocket: WebSocket):
    """Live channel for admins (monitoring) and candidates (sensor samples)"""
    services: Services = websocket.app.state.services
    await websocket.accept()
    connection = LiveConnection(websocket, services)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await connection.send_error("Invalid JSON")
                continue
            if not isinstance(message, dict):
                await connection.send_error("Messages must be JSON objects")
                continue

            try:
                await connection.handle(message)
            except ExamGuardError as e:
                await connection.send_error(e.message)

    except WebSocketDisconnect:
        logger.info(f"Live connection closed (candidate={connection.candidate_id})")
    finally:
        await connection.close()
