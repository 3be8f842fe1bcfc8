"""
Request/Response Models
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AssignCandidateRequest(BaseModel):
    """Assign a user to an exam"""
    user_id: str = Field(..., min_length=1, description="User taking the exam")
    exam_id: int = Field(..., description="Exam to assign")


class CandidateOut(BaseModel):
    id: int
    user_id: str
    exam_id: int
    status: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    score: Optional[int] = None


class SaveResponseRequest(BaseModel):
    """Autosave of one answer"""
    candidate_id: int
    question_id: int
    selected_answer: Optional[str] = Field(None, description="Chosen option; null clears the answer")


class ResponseOut(BaseModel):
    id: int
    candidate_id: int
    question_id: int
    selected_answer: Optional[str] = None
    created_at: Optional[str] = None


class SubmitOut(BaseModel):
    candidate_id: int
    score: Optional[int] = None
    status: str


class ProctorLogRequest(BaseModel):
    """A proctoring event reported by the candidate client"""
    candidate_id: int
    event_type: str = Field(..., description="e.g. tab_switch, face_absent")
    severity: Optional[str] = Field(None, description="low | medium | high; defaults by event type")
    metadata: Optional[Dict[str, Any]] = None


class ProctorLogOut(BaseModel):
    id: int
    candidate_id: int
    event_type: str
    severity: str
    timestamp: str
    metadata: Dict[str, Any] = {}


class ActiveSessionOut(BaseModel):
    candidate: CandidateOut
    exam_title: str
    time_remaining: int
    connected: bool = False
    detectors: List[Dict[str, Any]] = []
