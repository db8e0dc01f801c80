"""
Rental endpoints
================

GET    /api/v1/rentals/{user_id}          -- current rental snapshot
POST   /api/v1/rentals/{user_id}/begin    -- start a rental on a vehicle
POST   /api/v1/rentals/{user_id}/scan-qr  -- scan a vehicle QR code
POST   /api/v1/rentals/{user_id}/reserve  -- reserve the selected vehicle
POST   /api/v1/rentals/{user_id}/scan     -- confirm the scan of a reserved vehicle
POST   /api/v1/rentals/{user_id}/find     -- make the vehicle honk / flash
POST   /api/v1/rentals/{user_id}/end      -- end the ride
POST   /api/v1/rentals/{user_id}/reset    -- abandon the flow
DELETE /api/v1/rentals/{user_id}          -- close the session

Actions return the snapshot right after the call; timed follow-up phases
show up on later reads.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from rentquad.api.dependencies import get_db, get_rental_service
from rentquad.api.middleware import limiter
from rentquad.api.schemas import (
    BeginRentalRequest,
    ErrorResponse,
    RentalSnapshotResponse,
    ScanQrRequest,
)
from rentquad.domain.entities import RentalSnapshot
from rentquad.domain.enums import Trigger
from rentquad.domain.qr import InvalidQrPayload
from rentquad.infrastructure.repositories import VehicleRepository
from rentquad.services.rentals import (
    RentalError,
    RentalService,
    VehicleNotFound,
)

router = APIRouter(prefix="/rentals", tags=["rentals"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Unknown vehicle"}}
_CONFLICT = {409: {"model": ErrorResponse, "description": "Action rejected"}}
_BAD_QR = {400: {"model": ErrorResponse, "description": "Malformed QR payload"}}


def _snapshot(snapshot: RentalSnapshot) -> RentalSnapshotResponse:
    return RentalSnapshotResponse.model_validate(snapshot)


def _rejected(exc: RentalError) -> HTTPException:
    status = 404 if isinstance(exc, VehicleNotFound) else 409
    return HTTPException(status_code=status, detail=str(exc))


def _perform(service: RentalService, user_id: str, trigger: Trigger) -> RentalSnapshotResponse:
    try:
        return _snapshot(service.perform(user_id, trigger))
    except RentalError as exc:
        raise _rejected(exc)


@router.get(
    "/{user_id}",
    response_model=RentalSnapshotResponse,
    summary="Get the current rental snapshot",
)
@limiter.limit("300/minute")
async def get_rental(
    request: Request,
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    return _snapshot(service.snapshot(user_id))


@router.post(
    "/{user_id}/begin",
    response_model=RentalSnapshotResponse,
    summary="Begin a rental on a vehicle",
    responses={**_NOT_FOUND, **_CONFLICT},
)
@limiter.limit("100/minute")
async def begin_rental(
    request: Request,
    user_id: str,
    body: BeginRentalRequest,
    db: AsyncSession = Depends(get_db),
    service: RentalService = Depends(get_rental_service),
):
    record = await VehicleRepository(db).get_by_id(body.vehicle_id)
    try:
        return _snapshot(await service.begin(user_id, record))
    except RentalError as exc:
        raise _rejected(exc)


@router.post(
    "/{user_id}/scan-qr",
    response_model=RentalSnapshotResponse,
    summary="Scan a vehicle QR code",
    description=(
        "Completes the scan step when the code matches the reserved vehicle; "
        "otherwise starts a direct rental on the scanned vehicle."
    ),
    responses={**_BAD_QR, **_NOT_FOUND, **_CONFLICT},
)
@limiter.limit("100/minute")
async def scan_qr(
    request: Request,
    user_id: str,
    body: ScanQrRequest,
    db: AsyncSession = Depends(get_db),
    service: RentalService = Depends(get_rental_service),
):
    repo = VehicleRepository(db)
    try:
        return _snapshot(await service.scan_qr(user_id, body.payload, repo.get_by_id))
    except InvalidQrPayload as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RentalError as exc:
        raise _rejected(exc)


@router.post(
    "/{user_id}/reserve",
    response_model=RentalSnapshotResponse,
    summary="Reserve the selected vehicle",
    responses=_CONFLICT,
)
@limiter.limit("100/minute")
async def reserve_vehicle(
    request: Request,
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    return _perform(service, user_id, Trigger.RESERVE)


@router.post(
    "/{user_id}/scan",
    response_model=RentalSnapshotResponse,
    summary="Confirm the scan of the reserved vehicle",
    responses=_CONFLICT,
)
@limiter.limit("100/minute")
async def scan_vehicle(
    request: Request,
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    return _perform(service, user_id, Trigger.SCAN)


@router.post(
    "/{user_id}/find",
    response_model=RentalSnapshotResponse,
    summary="Trigger the vehicle's horn and indicators",
    responses=_CONFLICT,
)
@limiter.limit("100/minute")
async def find_vehicle(
    request: Request,
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    return _perform(service, user_id, Trigger.FIND)


@router.post(
    "/{user_id}/end",
    response_model=RentalSnapshotResponse,
    summary="End the ride",
    responses=_CONFLICT,
)
@limiter.limit("100/minute")
async def end_ride(
    request: Request,
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    return _perform(service, user_id, Trigger.END)


@router.post(
    "/{user_id}/reset",
    response_model=RentalSnapshotResponse,
    summary="Abandon the current rental flow",
)
@limiter.limit("100/minute")
async def reset_rental(
    request: Request,
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    return _snapshot(service.reset(user_id))


@router.delete("/{user_id}", status_code=204, summary="Close the rental session")
async def close_session(
    user_id: str,
    service: RentalService = Depends(get_rental_service),
):
    service.close(user_id)
    return Response(status_code=204)
