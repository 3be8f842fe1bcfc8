"""
SQL Record Store - SQLAlchemy persistence for exam sessions

Works against any SQLAlchemy URL (PostgreSQL in production, SQLite in
tests). Tables are created on first use.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError, ValidationError
from ..models import (
    Candidate,
    CandidateStatus,
    EventType,
    Exam,
    ExamStatus,
    ProctorLog,
    ProctoringMode,
    Question,
    QuestionType,
    Response,
    Severity,
    ShowResults,
)
from .base import RecordStore, UPDATABLE_CANDIDATE_FIELDS

logger = logging.getLogger(__name__)


# ============================================================================
# Schema
# ============================================================================

metadata = MetaData()

exams = Table(
    "exams", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_id", Integer, nullable=False),
    Column("title", String(255), nullable=False),
    Column("duration", Integer, nullable=False),
    Column("question_count", Integer, nullable=False),
    Column("show_results", String(20), nullable=False, default="delayed"),
    Column("status", String(20), nullable=False, default="draft"),
    Column("proctoring_mode", String(30), nullable=False, default="standard"),
    Column("enable_webcam", Boolean, nullable=False, default=True),
    Column("enable_tab_detection", Boolean, nullable=False, default=True),
)

questions = Table(
    "questions", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_id", Integer, nullable=False, index=True),
    Column("type", String(30), nullable=False, default="multiple_choice"),
    Column("content", Text, nullable=False),
    Column("options", JSON, nullable=False),
    Column("correct_answer", String(500), nullable=False),
)

candidates = Table(
    "candidates", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("exam_id", Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
    Column("random_seed", String(100), nullable=False),
    Column("status", String(20), nullable=False, default="assigned"),
    Column("started_at", DateTime, nullable=True),
    Column("completed_at", DateTime, nullable=True),
    Column("score", Integer, nullable=True),
)

responses = Table(
    "responses", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("candidate_id", Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False),
    Column("question_id", Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False),
    Column("selected_answer", String(500), nullable=True),
    Column("is_correct", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, default=datetime.utcnow),
    UniqueConstraint("candidate_id", "question_id", name="uq_response_candidate_question"),
)

proctor_logs = Table(
    "proctor_logs", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("candidate_id", Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("event_type", String(30), nullable=False),
    Column("severity", String(10), nullable=False, default="low"),
    Column("metadata", JSON, nullable=True),
    Column("timestamp", DateTime, nullable=False),
)


# ============================================================================
# Row mapping
# ============================================================================

def _exam(row) -> Exam:
    return Exam(
        id=row.id,
        domain_id=row.domain_id,
        title=row.title,
        duration=row.duration,
        question_count=row.question_count,
        show_results=ShowResults(row.show_results),
        status=ExamStatus(row.status),
        proctoring_mode=ProctoringMode(row.proctoring_mode),
        enable_webcam=bool(row.enable_webcam),
        enable_tab_detection=bool(row.enable_tab_detection),
    )


def _question(row) -> Question:
    return Question(
        id=row.id,
        domain_id=row.domain_id,
        type=QuestionType(row.type),
        content=row.content,
        options=list(row.options or []),
        correct_answer=row.correct_answer,
    )


def _candidate(row) -> Candidate:
    return Candidate(
        id=row.id,
        user_id=row.user_id,
        exam_id=row.exam_id,
        random_seed=row.random_seed,
        status=CandidateStatus(row.status),
        started_at=row.started_at,
        completed_at=row.completed_at,
        score=row.score,
    )


def _response(row) -> Response:
    return Response(
        id=row.id,
        candidate_id=row.candidate_id,
        question_id=row.question_id,
        selected_answer=row.selected_answer,
        is_correct=bool(row.is_correct),
        created_at=row.created_at,
    )


def _log(row) -> ProctorLog:
    return ProctorLog(
        id=row.id,
        candidate_id=row.candidate_id,
        event_type=EventType(row.event_type),
        severity=Severity(row.severity),
        timestamp=row.timestamp,
        metadata=dict(row._mapping["metadata"] or {}),
    )


def _plain(value: Any) -> Any:
    """Enum members to their stored string value"""
    return getattr(value, "value", value)


# ============================================================================
# Store
# ============================================================================

class SqlRecordStore(RecordStore):
    """
    SQLAlchemy Core implementation of RecordStore.

    Each call runs in its own transaction (engine.begin()).
    """

    def __init__(self, db_url: str = None, engine: Engine = None):
        if engine is None:
            if not db_url:
                raise ValueError("SqlRecordStore needs a db_url or an engine")
            engine = self._make_engine(db_url)
        self.engine = engine
        metadata.create_all(self.engine)
        logger.info(f"[DB] Record store ready: {self.engine.url.get_backend_name()}")

    @staticmethod
    def _make_engine(db_url: str) -> Engine:
        if db_url.startswith("sqlite") and ":memory:" in db_url:
            # One shared connection so every call sees the same database
            return create_engine(
                db_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(db_url, pool_pre_ping=True, pool_recycle=300)

    # ---------------------------------------------------------------- exams

    def get_exam(self, exam_id: int) -> Optional[Exam]:
        with self.engine.connect() as conn:
            row = conn.execute(select(exams).where(exams.c.id == exam_id)).first()
        return _exam(row) if row else None

    def create_exam(self, **fields: Any) -> Exam:
        values = {k: _plain(v) for k, v in fields.items()}
        with self.engine.begin() as conn:
            result = conn.execute(insert(exams).values(**values))
            exam_id = result.inserted_primary_key[0]
        return self.get_exam(exam_id)

    # ------------------------------------------------------------ questions

    def get_question(self, question_id: int) -> Optional[Question]:
        with self.engine.connect() as conn:
            row = conn.execute(select(questions).where(questions.c.id == question_id)).first()
        return _question(row) if row else None

    def get_questions_by_domain(self, domain_id: int) -> List[Question]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(questions)
                .where(questions.c.domain_id == domain_id)
                .order_by(questions.c.id)
            ).all()
        return [_question(row) for row in rows]

    def create_question(self, **fields: Any) -> Question:
        values = {k: _plain(v) for k, v in fields.items()}
        values["options"] = list(values.get("options") or [])
        with self.engine.begin() as conn:
            result = conn.execute(insert(questions).values(**values))
            question_id = result.inserted_primary_key[0]
        return self.get_question(question_id)

    # ----------------------------------------------------------- candidates

    def get_candidate(self, candidate_id: int) -> Optional[Candidate]:
        with self.engine.connect() as conn:
            row = conn.execute(select(candidates).where(candidates.c.id == candidate_id)).first()
        return _candidate(row) if row else None

    def list_candidates(
        self,
        status: Optional[CandidateStatus] = None,
        exam_id: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> List[Candidate]:
        query = select(candidates).order_by(candidates.c.id)
        if status is not None:
            query = query.where(candidates.c.status == _plain(status))
        if exam_id is not None:
            query = query.where(candidates.c.exam_id == exam_id)
        if user_id is not None:
            query = query.where(candidates.c.user_id == str(user_id))
        with self.engine.connect() as conn:
            rows = conn.execute(query).all()
        return [_candidate(row) for row in rows]

    def create_candidate(self, user_id: str, exam_id: int, random_seed: str) -> Candidate:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(candidates).values(
                    user_id=user_id,
                    exam_id=exam_id,
                    random_seed=random_seed,
                    status=CandidateStatus.ASSIGNED.value,
                )
            )
            candidate_id = result.inserted_primary_key[0]
        return self.get_candidate(candidate_id)

    def update_candidate(self, candidate_id: int, **fields: Any) -> Candidate:
        unknown = set(fields) - UPDATABLE_CANDIDATE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update candidate fields: {sorted(unknown)}")

        values = {k: _plain(v) for k, v in fields.items()}
        with self.engine.begin() as conn:
            result = conn.execute(
                update(candidates).where(candidates.c.id == candidate_id).values(**values)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Candidate {candidate_id} not found")
        return self.get_candidate(candidate_id)

    # ------------------------------------------------------------ responses

    def get_responses(self, candidate_id: int) -> List[Response]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(responses)
                .where(responses.c.candidate_id == candidate_id)
                .order_by(responses.c.id)
            ).all()
        return [_response(row) for row in rows]

    def get_response(self, candidate_id: int, question_id: int) -> Optional[Response]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(responses).where(
                    responses.c.candidate_id == candidate_id,
                    responses.c.question_id == question_id,
                )
            ).first()
        return _response(row) if row else None

    def create_response(
        self,
        candidate_id: int,
        question_id: int,
        selected_answer: Optional[str],
        is_correct: bool
    ) -> Response:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    insert(responses).values(
                        candidate_id=candidate_id,
                        question_id=question_id,
                        selected_answer=selected_answer,
                        is_correct=is_correct,
                        created_at=datetime.utcnow(),
                    )
                )
                response_id = result.inserted_primary_key[0]
                row = conn.execute(select(responses).where(responses.c.id == response_id)).first()
        except IntegrityError as e:
            raise ValidationError(
                f"Response for candidate {candidate_id} / question {question_id} exists"
            ) from e
        return _response(row)

    def update_response(
        self,
        response_id: int,
        selected_answer: Optional[str],
        is_correct: bool
    ) -> Response:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(responses)
                .where(responses.c.id == response_id)
                .values(selected_answer=selected_answer, is_correct=is_correct)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Response {response_id} not found")
            row = conn.execute(select(responses).where(responses.c.id == response_id)).first()
        return _response(row)

    def delete_responses(self, candidate_id: int) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(delete(responses).where(responses.c.candidate_id == candidate_id))
        return result.rowcount

    # --------------------------------------------------------- proctor logs

    def create_proctor_log(
        self,
        candidate_id: int,
        event_type: EventType,
        severity: Severity,
        metadata: Dict[str, Any],
        timestamp: datetime
    ) -> ProctorLog:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(proctor_logs).values(
                    candidate_id=candidate_id,
                    event_type=_plain(event_type),
                    severity=_plain(severity),
                    metadata=dict(metadata),
                    timestamp=timestamp,
                )
            )
            log_id = result.inserted_primary_key[0]
            row = conn.execute(select(proctor_logs).where(proctor_logs.c.id == log_id)).first()
        return _log(row)

    def get_proctor_logs(self, candidate_id: Optional[int] = None) -> List[ProctorLog]:
        query = select(proctor_logs).order_by(proctor_logs.c.id)
        if candidate_id is not None:
            query = query.where(proctor_logs.c.candidate_id == candidate_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).all()
        return [_log(row) for row in rows]
