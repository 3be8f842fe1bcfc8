"""
Live Monitoring API (admin)

Endpoints:
- GET /api/monitoring/active - In-progress attempts with time left and detector states
- GET /api/monitoring/logs - Most recent proctor logs
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...utils.auth import require_admin
from ..deps import Services, get_services
from ..schemas import ActiveSessionOut, ProctorLogOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/monitoring", tags=["Monitoring"])


@router.get("/active", response_model=List[ActiveSessionOut])
async def active_sessions(
    user: dict = Depends(require_admin),
    services: Services = Depends(get_services)
):
    sessions = []
    for item in services.sessions.active_sessions():
        proctor = services.proctors.get(item["candidate"]["id"])
        sessions.append({
            **item,
            "connected": proctor is not None and proctor.is_active,
            "detectors": proctor.get_status()["detectors"] if proctor else [],
        })
    return sessions


@router.get("/logs", response_model=List[ProctorLogOut])
async def recent_logs(
    candidate_id: Optional[int] = None,
    limit: int = Query(20, ge=1, le=500),
    user: dict = Depends(require_admin),
    services: Services = Depends(get_services)
):
    """Newest first, optionally for one candidate"""
    return [log.to_dict() for log in services.sessions.recent_logs(candidate_id, limit)]
