"""
Nearby Vehicle Listing
======================

1. **Spatial pre-filter** -- the repository loads only vehicles whose H3
   cell is within the grid disk around the user (see ``geo.nearby_cells``).
2. **Visibility** -- retired vehicles are never shown.  Reserved, in-use
   and maintenance vehicles are hidden unless the vehicle is the one the
   requesting user is renting; that vehicle's status is taken from the
   user's rental phase rather than the (possibly lagging) stored status.
3. **Radius + ordering** -- exact Haversine distance, nearest first.

Complexity: O(n log n) over the pre-filtered candidates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .entities import format_vehicle_title
from .enums import Phase, VehicleStatus, phase_driven_status
from .geo import haversine_km

HIDDEN_STATUSES = {
    VehicleStatus.RESERVED,
    VehicleStatus.IN_USE,
    VehicleStatus.MAINTENANCE,
}


@dataclass(frozen=True)
class NearbyVehicle:
    id: str
    title: str
    code: Optional[str]
    status: VehicleStatus
    battery_percent: float
    latitude: float
    longitude: float
    distance_km: float


def effective_status(
    record: Any, own_vehicle_id: Optional[str], own_phase: Phase
) -> VehicleStatus:
    stored = VehicleStatus(record.status)
    if own_vehicle_id is not None and str(record.id) == own_vehicle_id:
        return phase_driven_status(own_phase) or stored
    return stored


def rank_nearby(
    records: Iterable[Any],
    lat: float,
    lng: float,
    radius_km: float,
    own_vehicle_id: Optional[str] = None,
    own_phase: Phase = Phase.IDLE,
) -> list[NearbyVehicle]:
    result: list[NearbyVehicle] = []
    for record in records:
        if record.latitude is None or record.longitude is None:
            continue
        status = effective_status(record, own_vehicle_id, own_phase)
        is_own = own_vehicle_id is not None and str(record.id) == own_vehicle_id
        if status is VehicleStatus.RETIRED:
            continue
        if status in HIDDEN_STATUSES and not is_own:
            continue

        distance = haversine_km(lat, lng, record.latitude, record.longitude)
        if distance > radius_km:
            continue

        result.append(
            NearbyVehicle(
                id=str(record.id),
                title=format_vehicle_title(record),
                code=record.code,
                status=status,
                battery_percent=float(record.battery_percent or 0),
                latitude=record.latitude,
                longitude=record.longitude,
                distance_km=round(distance, 3),
            )
        )
    result.sort(key=lambda v: v.distance_km)
    return result
