"""
Vehicle endpoints
=================

GET /api/v1/vehicles/nearby       -- rentable vehicles around a point
GET /api/v1/vehicles/{vehicle_id} -- a single vehicle record
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rentquad.api.dependencies import get_db, get_rental_service
from rentquad.api.middleware import limiter
from rentquad.api.schemas import ErrorResponse, NearbyVehicleResponse, VehicleResponse
from rentquad.config import settings
from rentquad.domain.enums import Phase
from rentquad.domain.geo import nearby_cells
from rentquad.domain.nearby import rank_nearby
from rentquad.infrastructure.repositories import VehicleRepository
from rentquad.services.rentals import RentalService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get(
    "/nearby",
    response_model=list[NearbyVehicleResponse],
    summary="List rentable vehicles near a point, nearest first",
)
@limiter.limit("100/minute")
async def list_nearby(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=50),
    user_id: Optional[str] = Query(
        None, description="Include this user's rented vehicle with its live status."
    ),
    db: AsyncSession = Depends(get_db),
    service: RentalService = Depends(get_rental_service),
):
    radius = radius_km or settings.nearby_radius_km
    cells = nearby_cells(lat, lng, radius, settings.h3_resolution)
    records = await VehicleRepository(db).list_in_cells(cells)

    own_id, own_phase = None, Phase.IDLE
    session = service.find_session(user_id) if user_id else None
    if session and session.engine.active_vehicle:
        own_id = session.engine.active_vehicle.id
        own_phase = session.engine.phase

    return [
        NearbyVehicleResponse.model_validate(v)
        for v in rank_nearby(records, lat, lng, radius, own_id, own_phase)
    ]


@router.get(
    "/{vehicle_id}",
    response_model=VehicleResponse,
    summary="Get a vehicle",
    responses={404: {"model": ErrorResponse, "description": "Unknown vehicle"}},
)
@limiter.limit("100/minute")
async def get_vehicle(
    request: Request,
    vehicle_id: str,
    db: AsyncSession = Depends(get_db),
):
    vehicle = await VehicleRepository(db).get_by_id(vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle
