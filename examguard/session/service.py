"""
Exam Session Service - candidate lifecycle from assignment to score

Owns the authoritative timer: every read or write of a session first
reconciles the stored started_at against the clock and auto-submits an
expired attempt before doing anything else.
"""

import logging
import secrets
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import AuthorizationError, NotFoundError, SessionStateError, ValidationError
from ..models import (
    Candidate,
    CandidateStatus,
    EventType,
    Exam,
    ExamStatus,
    ProctorLog,
    Response,
)
from ..proctor.event_logger import ProctorEventLogger
from ..proctor.utils.logging import log_proctor_event, log_session_end, log_session_start
from ..scoring import ExamScorer, FlagGenerator, build_result, export_results_csv
from ..storage import RecordStore
from .randomizer import SessionView, build_view
from .timer import AutoSubmitScheduler, remaining_seconds

logger = logging.getLogger(__name__)

CandidateListener = Callable[[Candidate], None]


class ExamSessionService:
    """
    Start, autosave, submit and retake for candidate attempts.

    Start and submit are exactly-once per attempt: concurrent or repeated
    calls serialize on a per-candidate lock and later calls see the
    stored result.
    """

    def __init__(
        self,
        store: RecordStore,
        event_logger: ProctorEventLogger,
        scorer: Optional[ExamScorer] = None,
        flagger: Optional[FlagGenerator] = None,
        scheduler: Optional[AutoSubmitScheduler] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.store = store
        self.event_logger = event_logger
        self.scorer = scorer or ExamScorer()
        self.flagger = flagger or FlagGenerator()
        self.scheduler = scheduler
        self.clock = clock

        self._locks: Dict[int, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._started_listeners: List[CandidateListener] = []
        self._finished_listeners: List[CandidateListener] = []

    # ---- lookups -------------------------------------------------------

    def _lock(self, candidate_id: int) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(candidate_id)
            if lock is None:
                lock = self._locks[candidate_id] = threading.RLock()
            return lock

    def get_candidate(self, candidate_id: int) -> Candidate:
        candidate = self.store.get_candidate(candidate_id)
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found")
        return candidate

    def get_exam(self, exam_id: int) -> Exam:
        exam = self.store.get_exam(exam_id)
        if exam is None:
            raise NotFoundError(f"Exam {exam_id} not found")
        return exam

    def view(self, candidate: Candidate, exam: Exam) -> SessionView:
        pool = self.store.get_questions_by_domain(exam.domain_id)
        return build_view(candidate.random_seed, pool, exam.question_count)

    @staticmethod
    def check_access(candidate: Candidate, user: Dict[str, Any]):
        """Admins see every candidate; everyone else only their own"""
        if user.get("role") == "admin":
            return
        if str(user.get("user_id")) != str(candidate.user_id):
            raise AuthorizationError("Not your exam session")

    # ---- listeners -----------------------------------------------------

    def on_started(self, listener: CandidateListener):
        self._started_listeners.append(listener)

    def on_finished(self, listener: CandidateListener):
        self._finished_listeners.append(listener)

    def _notify(self, listeners: List[CandidateListener], candidate: Candidate):
        for listener in listeners:
            try:
                listener(candidate)
            except Exception as e:
                logger.error(f"Listener failed for candidate {candidate.id}: {e}", exc_info=True)

    # ---- lifecycle -----------------------------------------------------

    def assign(self, user_id: str, exam_id: int) -> Candidate:
        """Assign a user to an exam with a fresh, permanent seed"""
        self.get_exam(exam_id)
        candidate = self.store.create_candidate(
            user_id=str(user_id),
            exam_id=exam_id,
            random_seed=secrets.token_hex(16)
        )
        log_proctor_event(candidate.id, "assigned", {"exam_id": exam_id, "user_id": user_id})
        return candidate

    def start(self, candidate_id: int) -> Candidate:
        """
        Start the attempt. Idempotent: started_at is only ever set once.

        Raises:
            SessionStateError: exam not active, or attempt already finished
            ConfigurationError: exam has no questions to serve
        """
        with self._lock(candidate_id):
            candidate = self.get_candidate(candidate_id)

            if candidate.status.is_finished:
                raise SessionStateError(f"Candidate {candidate_id} already {candidate.status.value}")

            if candidate.status == CandidateStatus.IN_PROGRESS:
                self.reconcile(candidate_id)
                return self.get_candidate(candidate_id)

            exam = self.get_exam(candidate.exam_id)
            if exam.status != ExamStatus.ACTIVE:
                raise SessionStateError(f"Exam {exam.id} is {exam.status.value}, not active")

            # Fail before starting the clock if there is nothing to serve
            self.view(candidate, exam)

            candidate = self.store.update_candidate(
                candidate_id,
                status=CandidateStatus.IN_PROGRESS,
                started_at=self.clock()
            )
            self.event_logger.record(
                candidate_id,
                EventType.EXAM_START,
                metadata={"status": candidate.status.value}
            )
            log_session_start(candidate_id, exam.id, candidate.user_id)

            if self.scheduler is not None:
                self.scheduler.schedule(candidate_id, exam.duration * 60)

        self._notify(self._started_listeners, candidate)
        return candidate

    def reconcile(self, candidate_id: int) -> int:
        """
        Apply the authoritative timer.

        Returns:
            Seconds remaining; an expired attempt is auto-submitted and 0
            is returned
        """
        with self._lock(candidate_id):
            candidate = self.get_candidate(candidate_id)
            if candidate.status.is_finished:
                return 0

            exam = self.get_exam(candidate.exam_id)
            remaining = remaining_seconds(exam.duration, candidate.started_at, self.clock())

            if candidate.status == CandidateStatus.IN_PROGRESS and remaining == 0:
                logger.info(f"Candidate {candidate_id} ran out of time, auto-submitting")
                self.submit(candidate_id, auto=True)

            return remaining

    def sweep_expired(self) -> int:
        """Reconcile every in-progress attempt. Returns how many were auto-submitted."""
        submitted = 0
        for candidate in self.store.list_candidates(status=CandidateStatus.IN_PROGRESS):
            if self.reconcile(candidate.id) == 0:
                submitted += 1
        return submitted

    def resume_timers(self) -> int:
        """Re-arm deadline timers for attempts still running. Returns how many were armed."""
        if self.scheduler is None:
            return 0
        armed = 0
        for candidate in self.store.list_candidates(status=CandidateStatus.IN_PROGRESS):
            remaining = self.reconcile(candidate.id)
            if remaining > 0 and self.scheduler.schedule(candidate.id, remaining):
                armed += 1
        return armed

    def submit(self, candidate_id: int, auto: bool = False) -> Candidate:
        """
        Finalize the attempt and store the score. Idempotent.

        A manual submit that arrives after the deadline is recorded as
        auto_submitted.

        Raises:
            SessionStateError: attempt was never started
        """
        with self._lock(candidate_id):
            candidate = self.get_candidate(candidate_id)

            if candidate.status.is_finished:
                return candidate
            if candidate.status != CandidateStatus.IN_PROGRESS:
                raise SessionStateError(f"Candidate {candidate_id} has not started the exam")

            exam = self.get_exam(candidate.exam_id)
            now = self.clock()
            if remaining_seconds(exam.duration, candidate.started_at, now) == 0:
                auto = True

            responses = self.store.get_responses(candidate_id)
            score = self.scorer.score(responses)
            status = CandidateStatus.AUTO_SUBMITTED if auto else CandidateStatus.COMPLETED

            candidate = self.store.update_candidate(
                candidate_id,
                status=status,
                completed_at=now,
                score=score
            )
            self.event_logger.record(
                candidate_id,
                EventType.EXAM_COMPLETE,
                metadata={"status": status.value, "score": score}
            )
            log_session_end(candidate_id, status.value, score, len(responses))

            if self.scheduler is not None:
                self.scheduler.cancel(candidate_id)

        self._notify(self._finished_listeners, candidate)
        return candidate

    def retake(self, candidate_id: int) -> Candidate:
        """
        Reset a finished attempt. The seed is kept, so the retake sees the
        same questions in the same order; previous answers are cleared.
        """
        with self._lock(candidate_id):
            candidate = self.get_candidate(candidate_id)
            if not candidate.status.is_finished:
                raise SessionStateError(
                    f"Candidate {candidate_id} is {candidate.status.value}; only finished attempts can be retaken"
                )

            cleared = self.store.delete_responses(candidate_id)
            candidate = self.store.update_candidate(
                candidate_id,
                status=CandidateStatus.ASSIGNED,
                started_at=None,
                completed_at=None,
                score=None
            )
            log_proctor_event(candidate_id, "retake_granted", {"cleared_responses": cleared})
            return candidate

    # ---- session reads/writes ----------------------------------------

    def get_session(self, candidate_id: int, include_answers: bool = False) -> Dict[str, Any]:
        """
        Personalized exam session for a candidate.

        The answer key (correct_answer, is_correct) is only included when
        include_answers is set (admin preview).
        """
        remaining = self.reconcile(candidate_id)
        candidate = self.get_candidate(candidate_id)
        exam = self.get_exam(candidate.exam_id)
        view = self.view(candidate, exam)

        responses = []
        for response in self.store.get_responses(candidate_id):
            item = response.to_dict()
            if not include_answers:
                item.pop("is_correct")
            responses.append(item)

        return {
            "candidate_id": candidate.id,
            "exam_title": exam.title,
            "duration": exam.duration,
            "randomized_questions": view.to_payload(include_answers=include_answers),
            "responses": responses,
            "time_remaining": remaining,
            "status": candidate.status.value,
            "started_at": candidate.started_at.isoformat() if candidate.started_at else None,
        }

    def save_response(
        self,
        candidate_id: int,
        question_id: int,
        selected_answer: Optional[str]
    ) -> Response:
        """
        Upsert the candidate's answer to one question.

        Correctness is evaluated here, once, against the stored key.

        Raises:
            SessionStateError: attempt not in progress (an expired attempt is
                auto-submitted first)
            ValidationError: question not in this candidate's view, or the
                answer is not one of its options
        """
        with self._lock(candidate_id):
            candidate = self.get_candidate(candidate_id)
            if candidate.status == CandidateStatus.IN_PROGRESS and self.reconcile(candidate_id) == 0:
                raise SessionStateError("Time is up; the exam was submitted automatically")
            candidate = self.get_candidate(candidate_id)
            if candidate.status != CandidateStatus.IN_PROGRESS:
                raise SessionStateError(f"Candidate {candidate_id} is {candidate.status.value}")

            exam = self.get_exam(candidate.exam_id)
            view = self.view(candidate, exam)
            if not view.contains(question_id):
                raise ValidationError(f"Question {question_id} is not part of this exam session")

            question = next(q for q in view.questions if q.id == question_id)
            if selected_answer is not None and selected_answer not in question.options:
                raise ValidationError(f"Answer {selected_answer!r} is not an option of question {question_id}")

            is_correct = selected_answer is not None and selected_answer == question.correct_answer

            existing = self.store.get_response(candidate_id, question_id)
            if existing is not None:
                return self.store.update_response(existing.id, selected_answer, is_correct)
            return self.store.create_response(candidate_id, question_id, selected_answer, is_correct)

    # ---- results & monitoring ----------------------------------------

    def result(self, candidate_id: int, is_admin: bool = False) -> Dict[str, Any]:
        self.reconcile(candidate_id)
        candidate = self.get_candidate(candidate_id)
        exam = self.get_exam(candidate.exam_id)
        logs = self.store.get_proctor_logs(candidate_id)
        return build_result(candidate, exam, logs, self.scorer, self.flagger, is_admin=is_admin)

    def my_exams(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Every assignment of one user, as the candidate is allowed to see it.

        Scores follow the exam's show_results setting, same as result().
        """
        entries = []
        for candidate in self.store.list_candidates(user_id=str(user_id)):
            remaining = self.reconcile(candidate.id)
            candidate = self.get_candidate(candidate.id)
            exam = self.get_exam(candidate.exam_id)
            entry = build_result(
                candidate, exam, self.store.get_proctor_logs(candidate.id),
                self.scorer, self.flagger
            )
            entry.update({
                "duration": exam.duration,
                "question_count": exam.question_count,
                "started_at": candidate.started_at.isoformat() if candidate.started_at else None,
                "time_remaining": remaining if candidate.status == CandidateStatus.IN_PROGRESS else None,
            })
            entries.append(entry)
        return entries

    def export(self, exam_id: int) -> str:
        """CSV of every candidate of the exam"""
        exam = self.get_exam(exam_id)
        rows = [
            (candidate, self.store.get_proctor_logs(candidate.id))
            for candidate in self.store.list_candidates(exam_id=exam_id)
        ]
        return export_results_csv(exam, rows, self.scorer, self.flagger)

    def active_sessions(self) -> List[Dict[str, Any]]:
        """In-progress attempts with their remaining time"""
        active = []
        for candidate in self.store.list_candidates(status=CandidateStatus.IN_PROGRESS):
            remaining = self.reconcile(candidate.id)
            if remaining == 0:
                continue
            exam = self.get_exam(candidate.exam_id)
            active.append({
                "candidate": candidate.to_dict(),
                "exam_title": exam.title,
                "time_remaining": remaining,
            })
        return active

    def recent_logs(self, candidate_id: Optional[int] = None, limit: int = 20) -> List[ProctorLog]:
        """Most recent proctor logs first"""
        logs = self.store.get_proctor_logs(candidate_id)
        return list(reversed(logs))[:max(0, limit)]
