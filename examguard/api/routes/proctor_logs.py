"""
Proctor Logs API

Endpoints:
- POST /api/proctor-logs - Record a client-reported proctoring event
"""
import logging

from fastapi import APIRouter, Depends

from ...errors import ValidationError
from ...models import LIFECYCLE_EVENTS
from ...utils.auth import get_current_user
from ..deps import Services, get_services
from ..schemas import ProctorLogOut, ProctorLogRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctor-logs", tags=["Proctoring"])

# Written by the session service on start and submit only
SERVER_ONLY_EVENTS = {event.value for event in LIFECYCLE_EVENTS}


@router.post("", response_model=ProctorLogOut, status_code=201)
async def create_proctor_log(
    request: ProctorLogRequest,
    user: dict = Depends(get_current_user),
    services: Services = Depends(get_services)
):
    """Store the event and relay it to connected admins"""
    if request.event_type in SERVER_ONLY_EVENTS:
        raise ValidationError(f"{request.event_type} is recorded by the server and cannot be reported")

    candidate = services.sessions.get_candidate(request.candidate_id)
    services.sessions.check_access(candidate, user)

    log = services.event_logger.record(
        request.candidate_id,
        request.event_type,
        severity=request.severity,
        metadata=request.metadata
    )
    return log.to_dict()
