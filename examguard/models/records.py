"""
Record types shared by the session engine, the proctoring pipeline and
the record store.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ShowResults(str, Enum):
    IMMEDIATE = "immediate"
    DELAYED = "delayed"
    HIDDEN = "hidden"


class ExamStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ProctoringMode(str, Enum):
    STANDARD = "standard"
    NEGATIVE_MARKING = "negative_marking"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


class CandidateStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    AUTO_SUBMITTED = "auto_submitted"

    @property
    def is_finished(self) -> bool:
        return self in (CandidateStatus.COMPLETED, CandidateStatus.AUTO_SUBMITTED)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EventType(str, Enum):
    FACE_ABSENT = "face_absent"
    MULTIPLE_FACES = "multiple_faces"
    BACKGROUND_NOISE = "background_noise"
    VOICE_ABSENCE = "voice_absence"
    EXTERNAL_VOICE = "external_voice"
    TAB_SWITCH = "tab_switch"
    FULLSCREEN_EXIT = "fullscreen_exit"
    MEDIA_UNAVAILABLE = "media_unavailable"
    EXAM_START = "exam_start"
    EXAM_COMPLETE = "exam_complete"


DEFAULT_SEVERITY: Dict[EventType, Severity] = {
    EventType.FACE_ABSENT: Severity.HIGH,
    EventType.MULTIPLE_FACES: Severity.HIGH,
    EventType.BACKGROUND_NOISE: Severity.MEDIUM,
    EventType.VOICE_ABSENCE: Severity.LOW,
    EventType.EXTERNAL_VOICE: Severity.MEDIUM,
    EventType.TAB_SWITCH: Severity.MEDIUM,
    EventType.FULLSCREEN_EXIT: Severity.HIGH,
    EventType.MEDIA_UNAVAILABLE: Severity.LOW,
    EventType.EXAM_START: Severity.LOW,
    EventType.EXAM_COMPLETE: Severity.LOW,
}

LIFECYCLE_EVENTS = (EventType.EXAM_START, EventType.EXAM_COMPLETE)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Exam:
    """Exam definition (owned by the admin side, read-only here)"""
    id: int
    domain_id: int
    title: str
    duration: int  # minutes
    question_count: int
    show_results: ShowResults = ShowResults.DELAYED
    status: ExamStatus = ExamStatus.DRAFT
    proctoring_mode: ProctoringMode = ProctoringMode.STANDARD
    enable_webcam: bool = True
    enable_tab_detection: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["show_results"] = self.show_results.value
        data["status"] = self.status.value
        data["proctoring_mode"] = self.proctoring_mode.value
        return data


@dataclass
class Question:
    id: int
    domain_id: int
    content: str
    options: List[str]
    correct_answer: str
    type: QuestionType = QuestionType.MULTIPLE_CHOICE

    def to_dict(self, include_answer: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "domain_id": self.domain_id,
            "type": self.type.value,
            "content": self.content,
            "options": list(self.options),
        }
        if include_answer:
            data["correct_answer"] = self.correct_answer
        return data


@dataclass
class Candidate:
    """One (user, exam) assignment"""
    id: int
    user_id: str
    exam_id: int
    random_seed: str
    status: CandidateStatus = CandidateStatus.ASSIGNED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "exam_id": self.exam_id,
            "status": self.status.value,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "score": self.score,
        }


@dataclass
class Response:
    id: int
    candidate_id: int
    question_id: int
    selected_answer: Optional[str]
    is_correct: bool
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "candidate_id": self.candidate_id,
            "question_id": self.question_id,
            "selected_answer": self.selected_answer,
            "is_correct": self.is_correct,
            "created_at": _iso(self.created_at),
        }


@dataclass
class ProctorLog:
    """Append-only proctoring event"""
    id: int
    candidate_id: int
    event_type: EventType
    severity: Severity
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "candidate_id": self.candidate_id,
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "timestamp": _iso(self.timestamp),
            "metadata": self.metadata,
        }
