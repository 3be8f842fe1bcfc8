"""
Tests for the exam timer and the auto-submit scheduler
"""
import asyncio
from datetime import datetime, timedelta

import pytest

from examguard.session.timer import AutoSubmitScheduler, is_expired, remaining_seconds

START = datetime(2026, 1, 5, 9, 0, 0)


class TestRemainingSeconds:
    """Test remaining = max(0, duration*60 - floor(elapsed))"""

    def test_not_started_reports_full_duration(self):
        assert remaining_seconds(30, None) == 1800

    def test_partial_second_is_floored(self):
        now = START + timedelta(seconds=61.9)
        assert remaining_seconds(30, START, now) == 1800 - 61

    def test_exactly_at_deadline(self):
        now = START + timedelta(minutes=30)
        assert remaining_seconds(30, START, now) == 0

    def test_never_negative(self):
        now = START + timedelta(hours=5)
        assert remaining_seconds(30, START, now) == 0

    def test_clock_skew_before_start(self):
        """A clock slightly behind started_at never adds time"""
        now = START - timedelta(seconds=5)
        assert remaining_seconds(30, START, now) == 1800

    def test_is_expired(self):
        assert not is_expired(30, None)
        assert not is_expired(30, START, START + timedelta(minutes=29))
        assert is_expired(30, START, START + timedelta(minutes=30))


class TestAutoSubmitScheduler:
    """Test per-candidate deadline timers"""

    def test_schedule_without_loop(self):
        """Outside an event loop scheduling is skipped (the sweep covers it)"""
        scheduler = AutoSubmitScheduler(reconcile=lambda cid: 0, sweep=lambda: 0)
        assert scheduler.schedule(1, 10) is False

    @pytest.mark.asyncio
    async def test_reconciles_at_deadline(self):
        calls = []

        def reconcile(candidate_id):
            calls.append(candidate_id)
            return 0

        scheduler = AutoSubmitScheduler(reconcile=reconcile, sweep=lambda: 0)
        assert scheduler.schedule(7, 0) is True

        await asyncio.sleep(0.2)

        assert calls == [7]
        assert 7 not in scheduler.pending()
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_reschedules_when_not_yet_expired(self):
        answers = [1, 0]
        calls = []

        def reconcile(candidate_id):
            calls.append(candidate_id)
            return answers.pop(0)

        scheduler = AutoSubmitScheduler(reconcile=reconcile, sweep=lambda: 0)
        scheduler.schedule(3, 0)

        # 0.05 slack, then 1s + 0.05 slack
        await asyncio.sleep(1.4)

        assert calls == [3, 3]
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_cancel(self):
        calls = []
        scheduler = AutoSubmitScheduler(reconcile=lambda cid: calls.append(cid) or 0, sweep=lambda: 0)

        scheduler.schedule(1, 0.2)
        scheduler.cancel(1)
        await asyncio.sleep(0.4)

        assert calls == []

    @pytest.mark.asyncio
    async def test_sweep_loop_runs(self):
        sweeps = []
        scheduler = AutoSubmitScheduler(
            reconcile=lambda cid: 0,
            sweep=lambda: sweeps.append(1) or 0,
            sweep_interval=0.05
        )

        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.3)
        await scheduler.stop()

        assert len(sweeps) >= 2
        assert not scheduler.running
