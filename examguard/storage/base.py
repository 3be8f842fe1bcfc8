"""
Record Store - abstract persistence interface

The session engine treats persistence as a synchronous key/query
interface. Exams and questions are owned by the admin side; the
create_* methods for them exist for seeding and tests.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

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


class RecordStore(ABC):
    """Abstract base class for record stores"""

    # ---------------------------------------------------------------- exams

    @abstractmethod
    def get_exam(self, exam_id: int) -> Optional[Exam]:
        pass

    @abstractmethod
    def create_exam(self, **fields: Any) -> Exam:
        pass

    # ------------------------------------------------------------ questions

    @abstractmethod
    def get_question(self, question_id: int) -> Optional[Question]:
        pass

    @abstractmethod
    def get_questions_by_domain(self, domain_id: int) -> List[Question]:
        pass

    @abstractmethod
    def create_question(self, **fields: Any) -> Question:
        pass

    # ----------------------------------------------------------- candidates

    @abstractmethod
    def get_candidate(self, candidate_id: int) -> Optional[Candidate]:
        pass

    @abstractmethod
    def list_candidates(
        self,
        status: Optional[CandidateStatus] = None,
        exam_id: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> List[Candidate]:
        pass

    @abstractmethod
    def create_candidate(self, user_id: str, exam_id: int, random_seed: str) -> Candidate:
        pass

    @abstractmethod
    def update_candidate(self, candidate_id: int, **fields: Any) -> Candidate:
        """Update the given fields. random_seed is not updatable."""
        pass

    # ------------------------------------------------------------ responses

    @abstractmethod
    def get_responses(self, candidate_id: int) -> List[Response]:
        pass

    @abstractmethod
    def get_response(self, candidate_id: int, question_id: int) -> Optional[Response]:
        pass

    @abstractmethod
    def create_response(
        self,
        candidate_id: int,
        question_id: int,
        selected_answer: Optional[str],
        is_correct: bool
    ) -> Response:
        pass

    @abstractmethod
    def update_response(
        self,
        response_id: int,
        selected_answer: Optional[str],
        is_correct: bool
    ) -> Response:
        pass

    @abstractmethod
    def delete_responses(self, candidate_id: int) -> int:
        """Delete all responses of a candidate. Returns the number removed."""
        pass

    # --------------------------------------------------------- proctor logs

    @abstractmethod
    def create_proctor_log(
        self,
        candidate_id: int,
        event_type: EventType,
        severity: Severity,
        metadata: Dict[str, Any],
        timestamp: datetime
    ) -> ProctorLog:
        pass

    @abstractmethod
    def get_proctor_logs(self, candidate_id: Optional[int] = None) -> List[ProctorLog]:
        """Logs in insertion order, optionally for one candidate."""
        pass


UPDATABLE_CANDIDATE_FIELDS = frozenset({"status", "started_at", "completed_at", "score"})
