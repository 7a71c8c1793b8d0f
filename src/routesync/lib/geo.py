"""Great-circle geometry for recorded positions."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from routesync.models.session import Position

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True, slots=True)
class Bounds:
    """Bounding box of a route in decimal degrees."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lng_span(self) -> float:
        return self.max_lng - self.min_lng


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in kilometers between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in kilometers, never negative.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lon2 - lon1)

    h = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2.0) ** 2
    )
    # rounding can push h a hair past 1.0 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2.0 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))


def distance_km(a: Position, b: Position) -> float:
    """Great-circle distance between two positions in kilometers."""
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def path_length_km(positions: Sequence[Position]) -> float:
    """Sum of the legs between consecutive positions."""
    return sum(distance_km(positions[i - 1], positions[i]) for i in range(1, len(positions)))


def route_bounds(positions: Sequence[Position]) -> Bounds | None:
    """Compute the bounding box of a route.

    Args:
        positions: Route positions in any order.

    Returns:
        Bounds, or None for an empty route.
    """
    if not positions:
        return None
    lats = [p.latitude for p in positions]
    lngs = [p.longitude for p in positions]
    return Bounds(
        min_lat=min(lats),
        max_lat=max(lats),
        min_lng=min(lngs),
        max_lng=max(lngs),
    )
