"""Record types and typed event metadata"""

from .records import (
    Exam,
    Question,
    Candidate,
    Response,
    ProctorLog,
    ShowResults,
    ExamStatus,
    ProctoringMode,
    QuestionType,
    CandidateStatus,
    Severity,
    EventType,
    DEFAULT_SEVERITY,
    LIFECYCLE_EVENTS,
)
from .events import parse_metadata

__all__ = [
    "Exam",
    "Question",
    "Candidate",
    "Response",
    "ProctorLog",
    "ShowResults",
    "ExamStatus",
    "ProctoringMode",
    "QuestionType",
    "CandidateStatus",
    "Severity",
    "EventType",
    "DEFAULT_SEVERITY",
    "LIFECYCLE_EVENTS",
    "parse_metadata",
]
