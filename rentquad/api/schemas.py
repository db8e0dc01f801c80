"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from rentquad.domain.enums import LogSource, Phase, VehicleStatus


# ── Requests ──────────────────────────────────────────────────────────


class BeginRentalRequest(BaseModel):
    vehicle_id: str = Field(..., min_length=1, max_length=36)


class ScanQrRequest(BaseModel):
    payload: str = Field(
        ...,
        max_length=128,
        description="Raw QR contents, e.g. ``RENTQUAD_VEHICLE:<vehicleId>``.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class VehicleResponse(BaseModel):
    id: str
    code: Optional[str] = None
    display_name: Optional[str] = None
    model: Optional[str] = None
    status: VehicleStatus
    battery_percent: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_seen_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NearbyVehicleResponse(BaseModel):
    id: str
    title: str
    code: Optional[str] = None
    status: VehicleStatus
    battery_percent: float
    latitude: float
    longitude: float
    distance_km: float

    model_config = {"from_attributes": True}


class ActiveVehicleResponse(BaseModel):
    id: str
    title: str
    code: Optional[str] = None
    battery_percent: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {"from_attributes": True}


class LogEntryResponse(BaseModel):
    id: str
    source: LogSource
    message: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class RideStatsResponse(BaseModel):
    duration_seconds: int
    distance_km: float
    estimated_cost: float

    model_config = {"from_attributes": True}


class CapabilitiesResponse(BaseModel):
    can_start: bool
    can_reserve: bool
    can_scan: bool
    can_find: bool
    can_end: bool

    model_config = {"from_attributes": True}


class RentalSnapshotResponse(BaseModel):
    phase: Phase
    active_vehicle: Optional[ActiveVehicleResponse] = None
    logs: list[LogEntryResponse] = []
    ride_stats: RideStatsResponse
    flow_in_progress: bool
    capabilities: CapabilitiesResponse

    model_config = {"from_attributes": True}


class SessionSummaryResponse(BaseModel):
    user_id: str
    phase: Phase
    vehicle_id: Optional[str] = None
    flow_in_progress: bool


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
