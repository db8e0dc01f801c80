"""
Distance and spatial-index helpers.

Distances are great-circle (Haversine): vehicles are picked up on foot a
few hundred metres away, where road distance adds nothing useful.

H3 hexagons give a cheap pre-filter: the repository loads only vehicles
whose cell lies in the grid disk around the user, and the exact radius
check runs on that small candidate set.
"""

import math

import h3

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def vehicle_h3_cell(lat: float, lng: float, resolution: int = 8) -> str:
    """Map a vehicle position to its H3 cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def nearby_cells(
    lat: float, lng: float, radius_km: float, resolution: int = 8
) -> set[str]:
    """All H3 cells that may contain a point within *radius_km* of the origin."""
    origin = h3.latlng_to_cell(lat, lng, resolution)
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    # one extra ring covers the origin's offset inside its own cell
    k = math.ceil(radius_km / (1.5 * edge_km)) + 1
    return set(h3.grid_disk(origin, k))
