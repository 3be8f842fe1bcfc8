"""
Reports API (admin)

Endpoints:
- GET /api/exams/{exam_id}/results/export - CSV of every candidate's result
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ...utils.auth import require_admin
from ..deps import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exams", tags=["Reports"])


@router.get("/{exam_id}/results/export")
async def export_results(
    exam_id: int,
    user: dict = Depends(require_admin),
    services: Services = Depends(get_services)
):
    content = services.sessions.export(exam_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="exam_{exam_id}_results.csv"'}
    )
