"""
Candidates API - assignment, start, retake and results

Endpoints:
- POST /api/candidates - Assign a user to an exam (admin)
- GET /api/candidates/mine - The caller's assigned exams and their status
- POST /api/candidates/{candidate_id}/start - Start the attempt (idempotent)
- POST /api/candidates/{candidate_id}/retake - Grant a retake (admin)
- GET /api/candidates/{candidate_id}/result - Results view
"""
import logging

from fastapi import APIRouter, Depends

from ...utils.auth import get_current_user, is_admin, require_admin
from ..deps import Services, get_services
from ..schemas import AssignCandidateRequest, CandidateOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/candidates", tags=["Candidates"])


@router.post("", response_model=CandidateOut, status_code=201)
async def assign_candidate(
    request: AssignCandidateRequest,
    user: dict = Depends(require_admin),
    services: Services = Depends(get_services)
):
    candidate = services.sessions.assign(request.user_id, request.exam_id)
    return candidate.to_dict()


@router.get("/mine")
async def my_exams(
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Assignments of the authenticated user; scores only where the exam shows them"""
    return {"exams": services.sessions.my_exams(user["user_id"])}


@router.post("/{candidate_id}/start", response_model=CandidateOut)
async def start_exam(
    candidate_id: int,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Start the exam clock. Calling again returns the running attempt unchanged."""
    candidate = services.sessions.get_candidate(candidate_id)
    services.sessions.check_access(candidate, user)
    return services.sessions.start(candidate_id).to_dict()


@router.post("/{candidate_id}/retake", response_model=CandidateOut)
async def grant_retake(
    candidate_id: int,
    user: dict = Depends(require_admin),
    services: Services = Depends(get_services)
):
    """Reset a finished attempt; the candidate keeps the same question order"""
    return services.sessions.retake(candidate_id).to_dict()


@router.get("/{candidate_id}/result")
async def get_result(
    candidate_id: int,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """
    Results view.

    Candidates see their score only when the exam shows results
    immediately; admins always get the full breakdown.
    """
    candidate = services.sessions.get_candidate(candidate_id)
    services.sessions.check_access(candidate, user)
    return services.sessions.result(candidate_id, is_admin=is_admin(user))
