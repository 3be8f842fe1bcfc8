"""
Exam timer and server-side auto-submit.

Remaining time is always recomputed from the stored started_at, so a
reconnect, a page reload or a server restart can never extend an exam.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Fire slightly after the deadline so the reconcile sees remaining == 0
DEADLINE_SLACK = 0.05


def remaining_seconds(
    duration_minutes: int,
    started_at: Optional[datetime],
    now: Optional[datetime] = None
) -> int:
    """
    Seconds left in an attempt.

    max(0, duration*60 - floor(now - started_at)); the full duration when
    the attempt has not started.
    """
    total = int(duration_minutes) * 60
    if started_at is None:
        return total

    now = now or datetime.utcnow()
    elapsed = math.floor((now - started_at).total_seconds())
    return max(0, total - max(0, elapsed))


def is_expired(duration_minutes: int, started_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return started_at is not None and remaining_seconds(duration_minutes, started_at, now) == 0


class AutoSubmitScheduler:
    """
    Enforces expiry for candidates who never come back to submit.

    Keeps one cancellable task per in-progress candidate that sleeps until
    the deadline, plus a periodic sweep that catches anything missed
    (e.g. attempts that were running before a restart).

    Args:
        reconcile: Callback(candidate_id) -> remaining seconds (0 once submitted)
        sweep: Callback() run every sweep_interval seconds
        sweep_interval: Seconds between sweeps
    """

    def __init__(
        self,
        reconcile: Callable[[int], int],
        sweep: Callable[[], int],
        sweep_interval: float = 30.0
    ):
        self._reconcile = reconcile
        self._sweep = sweep
        self.sweep_interval = sweep_interval
        self._timers: Dict[int, asyncio.Task] = {}
        self._sweeper: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def schedule(self, candidate_id: int, remaining: int) -> bool:
        """
        (Re)arm the deadline timer for a candidate.

        Returns:
            False when there is no running event loop to schedule on
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, auto-submit for {candidate_id} left to the sweep")
            return False

        self.cancel(candidate_id)
        self._timers[candidate_id] = loop.create_task(
            self._wait_and_reconcile(candidate_id, remaining)
        )
        return True

    def cancel(self, candidate_id: int):
        task = self._timers.pop(candidate_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def pending(self) -> Dict[int, asyncio.Task]:
        return dict(self._timers)

    async def _wait_and_reconcile(self, candidate_id: int, remaining: float):
        try:
            while True:
                await asyncio.sleep(max(0.0, remaining) + DEADLINE_SLACK)
                remaining = self._reconcile(candidate_id)
                if remaining <= 0:
                    break
                # Clock drift: not expired yet, sleep again
                logger.debug(f"Candidate {candidate_id} has {remaining}s left, rescheduling")
        except Exception as e:
            logger.error(f"Auto-submit timer failed for candidate {candidate_id}: {e}", exc_info=True)
        finally:
            if self._timers.get(candidate_id) is asyncio.current_task():
                del self._timers[candidate_id]

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                submitted = self._sweep()
                if submitted:
                    logger.info(f"Auto-submit sweep finalized {submitted} expired attempt(s)")
            except Exception as e:
                logger.error(f"Auto-submit sweep failed: {e}", exc_info=True)

    def start(self):
        """Start the periodic sweep. Call from inside the running loop."""
        if self.running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(f"Auto-submit scheduler started (sweep every {self.sweep_interval}s)")

    async def stop(self):
        tasks = list(self._timers.values())
        if self._sweeper is not None:
            tasks.append(self._sweeper)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timers.clear()
        self._sweeper = None
        logger.info("Auto-submit scheduler stopped")
