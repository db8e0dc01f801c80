"""
Admin / observability endpoints
===============================

GET /api/v1/admin/sessions -- list live rental sessions
GET /api/v1/admin/health   -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from rentquad.api.dependencies import get_rental_service
from rentquad.api.middleware import limiter
from rentquad.api.schemas import HealthResponse, SessionSummaryResponse
from rentquad.services.rentals import RentalService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/sessions",
    response_model=list[SessionSummaryResponse],
    summary="List live rental sessions",
)
@limiter.limit("100/minute")
async def list_sessions(
    request: Request,
    service: RentalService = Depends(get_rental_service),
):
    result: list[SessionSummaryResponse] = []
    for s in service.sessions():
        vehicle = s.engine.active_vehicle
        result.append(
            SessionSummaryResponse(
                user_id=s.user_id,
                phase=s.engine.phase,
                vehicle_id=vehicle.id if vehicle else None,
                flow_in_progress=s.engine.flow_in_progress,
            )
        )
    return result


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
