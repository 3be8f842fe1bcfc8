"""
Exam Session API - personalized session, autosave and submit

Endpoints:
- GET /api/exam-session/{candidate_id} - Randomized session for the candidate
- GET /api/exam-session/{candidate_id}/preview - Same view with answer key (admin)
- POST /api/exam-session/{candidate_id}/submit - Submit and score (idempotent)
- POST /api/responses - Upsert one answer
"""
import logging

from fastapi import APIRouter, Depends

from ...utils.auth import get_current_user, require_admin
from ..deps import Services, get_services
from ..schemas import ResponseOut, SaveResponseRequest, SubmitOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exam-session", tags=["Exam Session"])
responses_router = APIRouter(prefix="/api/responses", tags=["Exam Session"])


@router.get("/{candidate_id}")
async def get_exam_session(
    candidate_id: int,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """
    Get the candidate's exam session.

    Questions and options come back in the candidate's personal order.
    time_remaining is computed server-side; an expired attempt is
    auto-submitted before the response is built.
    """
    candidate = services.sessions.get_candidate(candidate_id)
    services.sessions.check_access(candidate, user)
    return services.sessions.get_session(candidate_id, include_answers=False)


@router.get("/{candidate_id}/preview")
async def preview_exam_session(
    candidate_id: int,
    user: dict = Depends(require_admin),
    services: Services = Depends(get_services)
):
    """Admin preview of a candidate's session including the answer key"""
    return services.sessions.get_session(candidate_id, include_answers=True)


@router.post("/{candidate_id}/submit", response_model=SubmitOut)
async def submit_exam(
    candidate_id: int,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Submit the attempt. Repeated calls return the stored score."""
    candidate = services.sessions.get_candidate(candidate_id)
    services.sessions.check_access(candidate, user)

    candidate = services.sessions.submit(candidate_id)
    return SubmitOut(candidate_id=candidate.id, score=candidate.score, status=candidate.status.value)


@responses_router.post("", response_model=ResponseOut)
async def save_response(
    request: SaveResponseRequest,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Autosave an answer (upsert per candidate/question)"""
    candidate = services.sessions.get_candidate(request.candidate_id)
    services.sessions.check_access(candidate, user)

    response = services.sessions.save_response(
        request.candidate_id,
        request.question_id,
        request.selected_answer
    )
    data = response.to_dict()
    data.pop("is_correct")
    return data
