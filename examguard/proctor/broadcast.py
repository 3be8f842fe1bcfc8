"""
Live Broadcast Hub - fans proctor events and video frames out to admins

Delivery is synchronous and in-memory: publishing only appends to each
observer's outbound buffer. A per-connection writer task (see api/live.py)
drains the buffer onto the socket, so one slow or dead admin connection
never holds up the others.

Frames are last-value-wins: each observer keeps at most one pending
frame per candidate, and a newer frame replaces an unsent one.
"""

import asyncio
import logging
import uuid
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from ..errors import TransientChannelError
from ..models import ProctorLog
from .utils.logging import log_observer_change

logger = logging.getLogger(__name__)


class ClientType(str, Enum):
    ADMIN = "admin"
    CANDIDATE = "candidate"


class Observer:
    """
    One registered live-channel connection.

    Holds a bounded FIFO of event messages plus a latest-frame slot per
    candidate.
    """

    def __init__(
        self,
        client_type: ClientType,
        candidate_id: Optional[int] = None,
        max_queue: int = 256,
        connection_id: Optional[str] = None
    ):
        self.id = connection_id or f"OBS_{uuid.uuid4().hex[:8].upper()}"
        self.client_type = ClientType(client_type)
        self.candidate_id = candidate_id
        self.max_queue = max_queue
        self.closed = False

        self._events: Deque[Dict[str, Any]] = deque()
        self._frames: Dict[int, str] = {}
        self._wakeup = asyncio.Event()

    @property
    def is_admin(self) -> bool:
        return self.client_type == ClientType.ADMIN

    def push_event(self, message: Dict[str, Any]):
        """Queue a message. Raises TransientChannelError if closed or full."""
        if self.closed:
            raise TransientChannelError(f"Observer {self.id} is closed")
        if len(self._events) >= self.max_queue:
            raise TransientChannelError(f"Observer {self.id} fell behind ({self.max_queue} queued)")
        self._events.append(message)
        self._wakeup.set()

    def offer_frame(self, candidate_id: int, frame: str):
        """Replace any unsent frame for this candidate"""
        if self.closed:
            raise TransientChannelError(f"Observer {self.id} is closed")
        self._frames[candidate_id] = frame
        self._wakeup.set()

    def pending_frame(self, candidate_id: int) -> Optional[str]:
        return self._frames.get(candidate_id)

    def drain_nowait(self) -> List[Dict[str, Any]]:
        """Take everything pending: events first, then one frame per candidate"""
        batch = list(self._events)
        self._events.clear()

        for candidate_id, frame in self._frames.items():
            batch.append({
                "type": "video_frame",
                "candidateId": candidate_id,
                "frame": frame
            })
        self._frames.clear()

        self._wakeup.clear()
        return batch

    async def next_batch(self) -> List[Dict[str, Any]]:
        """Wait until something is pending (or the observer closes)"""
        await self._wakeup.wait()
        return self.drain_nowait()

    def close(self):
        self.closed = True
        self._wakeup.set()


class ObserverRegistry:
    """Connections currently registered on the live channel"""

    def __init__(self):
        self._observers: Dict[str, Observer] = {}

    def add(self, observer: Observer):
        self._observers[observer.id] = observer

    def remove(self, observer_id: str) -> Optional[Observer]:
        return self._observers.pop(observer_id, None)

    def get(self, observer_id: str) -> Optional[Observer]:
        return self._observers.get(observer_id)

    def all(self) -> List[Observer]:
        return list(self._observers.values())

    def admins(self) -> List[Observer]:
        return [o for o in self._observers.values() if o.is_admin]

    def for_candidate(self, candidate_id: int) -> List[Observer]:
        return [
            o for o in self._observers.values()
            if not o.is_admin and o.candidate_id == candidate_id
        ]

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer_id: str) -> bool:
        return observer_id in self._observers


class BroadcastHub:
    """
    Publish/subscribe hub keyed by candidate id.

    Only admin observers receive proctor events and video frames.
    Candidate observers only receive commands addressed to them.
    """

    def __init__(self, observer_queue_size: int = 256):
        self.registry = ObserverRegistry()
        self.observer_queue_size = observer_queue_size

    def register(self, client_type: ClientType, candidate_id: Optional[int] = None) -> Observer:
        observer = Observer(
            client_type=client_type,
            candidate_id=candidate_id,
            max_queue=self.observer_queue_size
        )
        self.registry.add(observer)
        log_observer_change("register", observer.client_type.value, len(self.registry), candidate_id)
        return observer

    def unregister(self, observer: Observer):
        observer.close()
        if self.registry.remove(observer.id) is not None:
            log_observer_change(
                "unregister", observer.client_type.value, len(self.registry), observer.candidate_id
            )

    def _deliver(self, observers: List[Observer], deliver) -> int:
        delivered = 0
        for observer in observers:
            try:
                deliver(observer)
                delivered += 1
            except TransientChannelError as e:
                logger.warning(f"Dropping observer {observer.id}: {e}")
                self.unregister(observer)
        return delivered

    def publish_event(self, log: ProctorLog) -> int:
        """Relay a stored proctor log to every admin. Returns deliveries."""
        message = {"type": "proctor_event", "data": log.to_dict()}
        return self._deliver(self.registry.admins(), lambda o: o.push_event(message))

    def publish_frame(self, candidate_id: int, frame: str) -> int:
        """Relay a video snapshot to every admin. Frames are never stored."""
        return self._deliver(
            self.registry.admins(), lambda o: o.offer_frame(candidate_id, frame)
        )

    def send_to_candidate(self, candidate_id: int, message: Dict[str, Any]) -> int:
        """Send a command to the candidate's own connection(s)"""
        return self._deliver(
            self.registry.for_candidate(candidate_id), lambda o: o.push_event(message)
        )

    def close_all(self):
        for observer in self.registry.all():
            self.unregister(observer)
