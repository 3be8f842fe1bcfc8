"""
Service wiring shared by the HTTP routes and the live channel.

One Services instance per application, stored on app.state.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Request

from ..config import Settings, settings as default_settings
from ..proctor import BroadcastHub, ProctorEventLogger, ProctorSessionRegistry
from ..scoring import ExamScorer, FlagGenerator
from ..session import AutoSubmitScheduler, ExamSessionService
from ..storage import RecordStore, create_store

logger = logging.getLogger(__name__)


class Services:
    """Everything a request handler needs, built once at startup"""

    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[RecordStore] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.config = config or default_settings
        self.store = store or create_store(self.config.DATABASE_URL)

        self.hub = BroadcastHub(observer_queue_size=self.config.OBSERVER_QUEUE_SIZE)
        self.event_logger = ProctorEventLogger(self.store, self.hub, clock=clock)

        self.sessions = ExamSessionService(
            self.store,
            self.event_logger,
            scorer=ExamScorer(
                per_violation=self.config.NEGATIVE_MARKING_PENALTY,
                pass_mark=self.config.PASS_MARK
            ),
            flagger=FlagGenerator(review_threshold=self.config.REVIEW_VIOLATION_THRESHOLD),
            clock=clock
        )
        self.scheduler = AutoSubmitScheduler(
            reconcile=self.sessions.reconcile,
            sweep=self.sessions.sweep_expired,
            sweep_interval=self.config.AUTO_SUBMIT_SWEEP_INTERVAL
        )
        self.sessions.scheduler = self.scheduler

        self.proctors = ProctorSessionRegistry(self.event_logger, self.hub, config=self.config)
        # Detectors stop as soon as the attempt is finished, however it finished
        self.sessions.on_finished(lambda candidate: self.proctors.close(candidate.id))

        logger.info(f"Services ready (store={type(self.store).__name__})")

    async def startup(self):
        """Catch up on attempts that ran while the process was down, then start the scheduler"""
        expired = self.sessions.sweep_expired()
        if expired:
            logger.info(f"Auto-submitted {expired} attempt(s) that expired while offline")
        resumed = self.sessions.resume_timers()
        if resumed:
            logger.info(f"Re-armed auto-submit timers for {resumed} running attempt(s)")
        self.scheduler.start()

    async def shutdown(self):
        await self.scheduler.stop()
        await self.proctors.stop_all()
        self.hub.close_all()


def get_services(request: Request) -> Services:
    return request.app.state.services
