"""
In-memory record store.

Default store when DATABASE_URL is unset; also what the tests run on.
"""
import itertools
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError, ValidationError
from ..models import (
    Candidate,
    CandidateStatus,
    EventType,
    Exam,
    ProctorLog,
    Question,
    Response,
    Severity,
)
from .base import RecordStore, UPDATABLE_CANDIDATE_FIELDS

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """Thread-safe dict-backed store. Returned records are copies."""

    def __init__(self):
        self._lock = threading.RLock()
        self._exams: Dict[int, Exam] = {}
        self._questions: Dict[int, Question] = {}
        self._candidates: Dict[int, Candidate] = {}
        self._responses: Dict[int, Response] = {}
        self._logs: List[ProctorLog] = []
        self._ids = {
            name: itertools.count(1)
            for name in ("exam", "question", "candidate", "response", "log")
        }

    def _next_id(self, name: str) -> int:
        return next(self._ids[name])

    # ---------------------------------------------------------------- exams

    def get_exam(self, exam_id: int) -> Optional[Exam]:
        with self._lock:
            exam = self._exams.get(exam_id)
            return replace(exam) if exam else None

    def create_exam(self, **fields: Any) -> Exam:
        with self._lock:
            exam = Exam(id=fields.pop("id", None) or self._next_id("exam"), **fields)
            self._exams[exam.id] = exam
            return replace(exam)

    # ------------------------------------------------------------ questions

    def get_question(self, question_id: int) -> Optional[Question]:
        with self._lock:
            question = self._questions.get(question_id)
            return replace(question, options=list(question.options)) if question else None

    def get_questions_by_domain(self, domain_id: int) -> List[Question]:
        with self._lock:
            return [
                replace(q, options=list(q.options))
                for q in self._questions.values()
                if q.domain_id == domain_id
            ]

    def create_question(self, **fields: Any) -> Question:
        with self._lock:
            question = Question(id=fields.pop("id", None) or self._next_id("question"), **fields)
            self._questions[question.id] = question
            return replace(question, options=list(question.options))

    # ----------------------------------------------------------- candidates

    def get_candidate(self, candidate_id: int) -> Optional[Candidate]:
        with self._lock:
            candidate = self._candidates.get(candidate_id)
            return replace(candidate) if candidate else None

    def list_candidates(
        self,
        status: Optional[CandidateStatus] = None,
        exam_id: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> List[Candidate]:
        with self._lock:
            return [
                replace(c)
                for c in self._candidates.values()
                if (status is None or c.status == status)
                and (exam_id is None or c.exam_id == exam_id)
                and (user_id is None or c.user_id == str(user_id))
            ]

    def create_candidate(self, user_id: str, exam_id: int, random_seed: str) -> Candidate:
        with self._lock:
            candidate = Candidate(
                id=self._next_id("candidate"),
                user_id=user_id,
                exam_id=exam_id,
                random_seed=random_seed,
            )
            self._candidates[candidate.id] = candidate
            return replace(candidate)

    def update_candidate(self, candidate_id: int, **fields: Any) -> Candidate:
        unknown = set(fields) - UPDATABLE_CANDIDATE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update candidate fields: {sorted(unknown)}")

        with self._lock:
            candidate = self._candidates.get(candidate_id)
            if candidate is None:
                raise NotFoundError(f"Candidate {candidate_id} not found")
            updated = replace(candidate, **fields)
            self._candidates[candidate_id] = updated
            return replace(updated)

    # ------------------------------------------------------------ responses

    def get_responses(self, candidate_id: int) -> List[Response]:
        with self._lock:
            return [
                replace(r) for r in self._responses.values()
                if r.candidate_id == candidate_id
            ]

    def get_response(self, candidate_id: int, question_id: int) -> Optional[Response]:
        with self._lock:
            for r in self._responses.values():
                if r.candidate_id == candidate_id and r.question_id == question_id:
                    return replace(r)
            return None

    def create_response(
        self,
        candidate_id: int,
        question_id: int,
        selected_answer: Optional[str],
        is_correct: bool
    ) -> Response:
        with self._lock:
            if self.get_response(candidate_id, question_id) is not None:
                raise ValidationError(
                    f"Response for candidate {candidate_id} / question {question_id} exists"
                )
            response = Response(
                id=self._next_id("response"),
                candidate_id=candidate_id,
                question_id=question_id,
                selected_answer=selected_answer,
                is_correct=is_correct,
                created_at=datetime.utcnow(),
            )
            self._responses[response.id] = response
            return replace(response)

    def update_response(
        self,
        response_id: int,
        selected_answer: Optional[str],
        is_correct: bool
    ) -> Response:
        with self._lock:
            response = self._responses.get(response_id)
            if response is None:
                raise NotFoundError(f"Response {response_id} not found")
            updated = replace(response, selected_answer=selected_answer, is_correct=is_correct)
            self._responses[response_id] = updated
            return replace(updated)

    def delete_responses(self, candidate_id: int) -> int:
        with self._lock:
            doomed = [rid for rid, r in self._responses.items() if r.candidate_id == candidate_id]
            for rid in doomed:
                del self._responses[rid]
            return len(doomed)

    # --------------------------------------------------------- proctor logs

    def create_proctor_log(
        self,
        candidate_id: int,
        event_type: EventType,
        severity: Severity,
        metadata: Dict[str, Any],
        timestamp: datetime
    ) -> ProctorLog:
        with self._lock:
            log = ProctorLog(
                id=self._next_id("log"),
                candidate_id=candidate_id,
                event_type=event_type,
                severity=severity,
                timestamp=timestamp,
                metadata=dict(metadata),
            )
            self._logs.append(log)
            return replace(log, metadata=dict(log.metadata))

    def get_proctor_logs(self, candidate_id: Optional[int] = None) -> List[ProctorLog]:
        with self._lock:
            return [
                replace(log, metadata=dict(log.metadata))
                for log in self._logs
                if candidate_id is None or log.candidate_id == candidate_id
            ]
