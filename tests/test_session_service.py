"""
Tests for the Exam Session Service

Tests:
1. Assignment and access control
2. Start (idempotent, exam status, empty pool)
3. Autosave upserts and validation
4. Submit (idempotent, score, lifecycle logs)
5. Server-side expiry and auto-submit
6. Retake
"""
import re
from concurrent.futures import ThreadPoolExecutor

import pytest

from examguard.errors import (
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    SessionStateError,
    ValidationError,
)
from examguard.models import CandidateStatus, EventType, ExamStatus, ProctoringMode, ShowResults


def lifecycle(services, candidate_id, event_type):
    return [
        log for log in services.store.get_proctor_logs(candidate_id)
        if log.event_type == event_type
    ]


class TestAssignment:
    """Candidate assignment and access"""

    def test_assign_generates_seed(self, services):
        candidate = services.sessions.assign("student-9", 1)

        assert re.fullmatch(r"[0-9a-f]{32}", candidate.random_seed)
        assert candidate.status == CandidateStatus.ASSIGNED

    def test_assign_unknown_exam(self, services):
        with pytest.raises(NotFoundError):
            services.sessions.assign("student-9", 99)

    def test_seeds_are_unique(self, services):
        seeds = {services.sessions.assign(f"s-{i}", 1).random_seed for i in range(20)}
        assert len(seeds) == 20

    def test_access(self, services, candidate):
        services.sessions.check_access(candidate, {"user_id": "student-1", "role": "student"})
        services.sessions.check_access(candidate, {"user_id": "admin-1", "role": "admin"})

        with pytest.raises(AuthorizationError):
            services.sessions.check_access(candidate, {"user_id": "student-2", "role": "student"})


class TestStart:
    """Starting an attempt"""

    def test_start_sets_clock(self, services, candidate, clock):
        started = services.sessions.start(candidate.id)

        assert started.status == CandidateStatus.IN_PROGRESS
        assert started.started_at == clock.now
        assert len(lifecycle(services, candidate.id, EventType.EXAM_START)) == 1

    def test_start_is_idempotent(self, services, candidate, clock):
        first = services.sessions.start(candidate.id)
        clock.advance(120)
        second = services.sessions.start(candidate.id)

        assert second.started_at == first.started_at
        assert len(lifecycle(services, candidate.id, EventType.EXAM_START)) == 1

    def test_started_listener_fires_once(self, services, candidate):
        started = []
        services.sessions.on_started(lambda c: started.append(c.id))

        services.sessions.start(candidate.id)
        services.sessions.start(candidate.id)

        assert started == [candidate.id]

    def test_concurrent_starts_start_once(self, services, candidate):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: services.sessions.start(candidate.id), range(16)))

        assert len({r.started_at for r in results}) == 1
        assert len(lifecycle(services, candidate.id, EventType.EXAM_START)) == 1

    def test_inactive_exam(self, services):
        services.store.create_exam(id=2, domain_id=1, title="Draft", duration=10, question_count=1)
        candidate = services.store.create_candidate("student-1", 2, "seed")

        with pytest.raises(SessionStateError):
            services.sessions.start(candidate.id)

    def test_empty_pool(self, services):
        services.store.create_exam(
            id=3, domain_id=77, title="Empty", duration=10, question_count=3, status=ExamStatus.ACTIVE
        )
        candidate = services.store.create_candidate("student-1", 3, "seed")

        with pytest.raises(ConfigurationError):
            services.sessions.start(candidate.id)
        assert services.store.get_candidate(candidate.id).status == CandidateStatus.ASSIGNED

    def test_start_after_finish(self, services, candidate):
        services.sessions.start(candidate.id)
        services.sessions.submit(candidate.id)

        with pytest.raises(SessionStateError):
            services.sessions.start(candidate.id)

    def test_unknown_candidate(self, services):
        with pytest.raises(NotFoundError):
            services.sessions.start(404)


class TestGetSession:
    """Session view"""

    def test_before_start_reports_full_duration(self, services, candidate):
        session = services.sessions.get_session(candidate.id)

        assert session["status"] == "assigned"
        assert session["time_remaining"] == 1800
        assert session["duration"] == 30
        assert session["exam_title"] == "Networking Basics"

    def test_pinned_view(self, services, candidate):
        """duration=30, count=2, pool Q1..Q5, seed abc123"""
        session = services.sessions.get_session(candidate.id)

        questions = session["randomized_questions"]
        assert [q["id"] for q in questions] == [5, 2]
        assert questions[0]["options"] == ["5-a", "5-c", "5-b", "5-d"]
        assert questions[1]["options"] == ["2-a", "2-d", "2-b", "2-c"]
        assert all("correct_answer" not in q for q in questions)

    def test_reload_is_identical(self, services, candidate, clock):
        services.sessions.start(candidate.id)
        first = services.sessions.get_session(candidate.id)
        clock.advance(300)
        second = services.sessions.get_session(candidate.id)

        assert first["randomized_questions"] == second["randomized_questions"]

    def test_remaining_time_is_floored(self, services, candidate, clock):
        services.sessions.start(candidate.id)
        clock.advance(61.5)

        assert services.sessions.get_session(candidate.id)["time_remaining"] == 1800 - 61

    def test_preview_includes_answer_key(self, services, candidate):
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")

        preview = services.sessions.get_session(candidate.id, include_answers=True)
        assert preview["randomized_questions"][0]["correct_answer"] == "5-a"
        assert preview["responses"][0]["is_correct"] is True

        session = services.sessions.get_session(candidate.id)
        assert "is_correct" not in session["responses"][0]


class TestSaveResponse:
    """Autosave"""

    def test_upsert(self, services, candidate):
        services.sessions.start(candidate.id)

        first = services.sessions.save_response(candidate.id, 5, "5-b")
        second = services.sessions.save_response(candidate.id, 5, "5-a")

        assert second.id == first.id
        assert first.is_correct is False
        assert second.is_correct is True
        assert len(services.store.get_responses(candidate.id)) == 1

    def test_question_outside_view(self, services, candidate):
        services.sessions.start(candidate.id)
        with pytest.raises(ValidationError):
            services.sessions.save_response(candidate.id, 1, "1-a")

    def test_answer_must_be_an_option(self, services, candidate):
        services.sessions.start(candidate.id)
        with pytest.raises(ValidationError):
            services.sessions.save_response(candidate.id, 5, "maybe")

    def test_clearing_an_answer(self, services, candidate):
        services.sessions.start(candidate.id)
        response = services.sessions.save_response(candidate.id, 5, None)
        assert response.selected_answer is None
        assert response.is_correct is False

    def test_before_start(self, services, candidate):
        with pytest.raises(SessionStateError):
            services.sessions.save_response(candidate.id, 5, "5-a")


class TestSubmit:
    """Submission and scoring"""

    def test_submit_scores(self, services, candidate):
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")
        services.sessions.save_response(candidate.id, 2, "2-b")

        submitted = services.sessions.submit(candidate.id)

        assert submitted.status == CandidateStatus.COMPLETED
        assert submitted.score == 50
        complete = lifecycle(services, candidate.id, EventType.EXAM_COMPLETE)
        assert [log.metadata for log in complete] == [{"status": "completed", "score": 50}]

    def test_submit_is_idempotent(self, services, candidate, clock):
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")

        first = services.sessions.submit(candidate.id)
        clock.advance(10)
        second = services.sessions.submit(candidate.id)
        third = services.sessions.submit(candidate.id, auto=True)

        assert first.score == second.score == third.score == 100
        assert third.status == CandidateStatus.COMPLETED
        assert second.completed_at == first.completed_at
        assert len(lifecycle(services, candidate.id, EventType.EXAM_COMPLETE)) == 1

    def test_concurrent_submits(self, services, candidate):
        services.sessions.start(candidate.id)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: services.sessions.submit(candidate.id), range(16)))

        assert len(lifecycle(services, candidate.id, EventType.EXAM_COMPLETE)) == 1

    def test_submit_before_start(self, services, candidate):
        with pytest.raises(SessionStateError):
            services.sessions.submit(candidate.id)

    def test_finished_listener(self, services, candidate):
        finished = []
        services.sessions.on_finished(lambda c: finished.append(c.id))

        services.sessions.start(candidate.id)
        services.sessions.submit(candidate.id)
        services.sessions.submit(candidate.id)

        assert finished == [candidate.id]


class TestExpiry:
    """Server-side timer enforcement"""

    def test_fetch_after_deadline_auto_submits(self, services, candidate, clock):
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")
        clock.advance(30 * 60 + 5)

        session = services.sessions.get_session(candidate.id)

        assert session["status"] == "auto_submitted"
        assert session["time_remaining"] == 0
        assert services.store.get_candidate(candidate.id).score == 100

    def test_save_after_deadline(self, services, candidate, clock):
        """Auto-submits, then rejects the late write; earlier answers count"""
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")
        clock.advance(30 * 60)

        with pytest.raises(SessionStateError):
            services.sessions.save_response(candidate.id, 2, "2-a")

        stored = services.store.get_candidate(candidate.id)
        assert stored.status == CandidateStatus.AUTO_SUBMITTED
        assert stored.score == 100
        assert len(services.store.get_responses(candidate.id)) == 1

    def test_late_manual_submit_is_auto(self, services, candidate, clock):
        services.sessions.start(candidate.id)
        clock.advance(31 * 60)

        assert services.sessions.submit(candidate.id).status == CandidateStatus.AUTO_SUBMITTED

    def test_sweep(self, services, clock):
        ids = [services.sessions.assign(f"s-{i}", 1).id for i in range(3)]
        for candidate_id in ids[:2]:
            services.sessions.start(candidate_id)
        clock.advance(10 * 60)
        services.sessions.start(ids[2])
        clock.advance(21 * 60)

        assert services.sessions.sweep_expired() == 2
        statuses = [services.store.get_candidate(cid).status for cid in ids]
        assert statuses == [
            CandidateStatus.AUTO_SUBMITTED,
            CandidateStatus.AUTO_SUBMITTED,
            CandidateStatus.IN_PROGRESS,
        ]

    @pytest.mark.asyncio
    async def test_startup_rearms_running_attempts(self, services, clock):
        expired, running = (services.sessions.assign(f"s-{i}", 1).id for i in range(2))
        services.sessions.start(expired)
        clock.advance(20 * 60)
        services.sessions.start(running)
        clock.advance(11 * 60)

        # Timers are lost with the process
        await services.scheduler.stop()
        assert services.scheduler.pending() == {}

        await services.startup()

        assert services.store.get_candidate(expired).status == CandidateStatus.AUTO_SUBMITTED
        assert list(services.scheduler.pending()) == [running]
        await services.shutdown()

    def test_resume_timers_without_loop(self, services, candidate):
        services.sessions.start(candidate.id)
        assert services.sessions.resume_timers() == 0

    def test_active_sessions(self, services, candidate, clock):
        services.sessions.start(candidate.id)
        clock.advance(60)

        active = services.sessions.active_sessions()
        assert [a["candidate"]["id"] for a in active] == [candidate.id]
        assert active[0]["time_remaining"] == 1740


class TestRetake:
    """Admin-granted retake"""

    def test_retake_resets_and_keeps_seed(self, services, candidate):
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")
        services.sessions.submit(candidate.id)

        reset = services.sessions.retake(candidate.id)

        assert reset.status == CandidateStatus.ASSIGNED
        assert reset.started_at is None
        assert reset.completed_at is None
        assert reset.score is None
        assert reset.random_seed == "abc123"
        assert services.store.get_responses(candidate.id) == []
        ids = [q["id"] for q in services.sessions.get_session(candidate.id)["randomized_questions"]]
        assert ids == [5, 2]

    def test_retake_requires_finished_attempt(self, services, candidate):
        services.sessions.start(candidate.id)
        with pytest.raises(SessionStateError):
            services.sessions.retake(candidate.id)

    def test_penalty_only_counts_current_attempt(self, services, clock):
        services.store.create_exam(
            id=4, domain_id=1, title="Strict", duration=30, question_count=2,
            status=ExamStatus.ACTIVE, proctoring_mode=ProctoringMode.NEGATIVE_MARKING,
            show_results=ShowResults.IMMEDIATE,
        )
        candidate = services.store.create_candidate("student-1", 4, "abc123")

        services.sessions.start(candidate.id)
        services.event_logger.record(candidate.id, "face_absent")
        services.event_logger.record(candidate.id, "fullscreen_exit")
        services.sessions.submit(candidate.id)
        assert services.sessions.result(candidate.id)["penalty"] == 2

        services.sessions.retake(candidate.id)
        clock.advance(3600)
        services.sessions.start(candidate.id)
        services.sessions.save_response(candidate.id, 5, "5-a")
        services.sessions.save_response(candidate.id, 2, "2-a")
        services.event_logger.record(candidate.id, "multiple_faces")
        services.sessions.submit(candidate.id)

        result = services.sessions.result(candidate.id)
        assert result["raw_score"] == 100
        assert result["penalty"] == 1
        assert result["final_score"] == 99
