import math
from typing import Optional

from pydantic import BaseModel, Field

EARTH_RADIUS_METERS = 6371e3


class Coordinate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Geofence(BaseModel):
    center: Coordinate
    radius_meters: float = Field(gt=0)


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points (haversine formula)."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    delta_phi = math.radians(b.latitude - a.latitude)
    delta_lambda = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    # Rounding can push h slightly outside [0, 1] for (near) antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within_fence(point: Coordinate, fence: Optional[Geofence]) -> bool:
    if fence is None:
        return True
    return distance_meters(point, fence.center) <= fence.radius_meters
