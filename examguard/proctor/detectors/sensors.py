"""
Sensor feeds for the detector tasks.

Each detector owns one QueueSensor. The live channel pushes samples in,
the detector task awaits them with a timeout so a stalled sensor never
blocks anything else.
"""

import asyncio
import logging
from typing import Any, Optional, Tuple

from ...errors import MediaAccessError

logger = logging.getLogger(__name__)

_CLOSED = object()


class QueueSensor:
    """
    Bounded sample queue for one device.

    When full, the oldest sample is discarded: detectors care about the
    current signal, not a backlog.
    """

    def __init__(self, device: str, maxsize: int = 64):
        self.device = device
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=maxsize)
        self._failure: Optional[str] = None
        self.closed = False
        self.dropped = 0

    def push(self, sample: Any, timestamp: Optional[float] = None) -> bool:
        """Queue a (sample, timestamp) pair. Returns False once closed."""
        if self.closed:
            return False
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait((sample, timestamp))
        return True

    def fail(self, reason: str):
        """Mark the device unavailable; the next read raises MediaAccessError"""
        self._failure = reason
        self._wake()

    async def read(self, timeout: float) -> Optional[Tuple[Any, Optional[float]]]:
        """
        Wait up to timeout seconds for the next sample.

        Returns:
            (sample, timestamp), or None on timeout or once closed

        Raises:
            MediaAccessError: the device was reported unavailable
        """
        if self._failure is not None:
            raise MediaAccessError(self.device, self._failure)
        if self.closed:
            return None

        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

        if item is _CLOSED:
            if self._failure is not None:
                raise MediaAccessError(self.device, self._failure)
            return None
        return item

    def _wake(self):
        # Unblock a pending read so it notices close/failure immediately
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._wake()
        logger.debug(f"{self.device} sensor released")
