import math

import pytest

from app.core.geofence import (
    EARTH_RADIUS_METERS,
    Coordinate,
    Geofence,
    distance_meters,
    within_fence,
)

CENTER = Coordinate(latitude=19.0760, longitude=72.8777)


def _north_of(point: Coordinate, meters: float) -> Coordinate:
    return Coordinate(
        latitude=point.latitude + math.degrees(meters / EARTH_RADIUS_METERS),
        longitude=point.longitude,
    )


def test_distance_to_self_is_zero():
    assert distance_meters(CENTER, CENTER) == 0


def test_distance_is_symmetric():
    other = Coordinate(latitude=18.5204, longitude=73.8567)
    assert distance_meters(CENTER, other) == pytest.approx(
        distance_meters(other, CENTER)
    )


def test_distance_along_meridian():
    assert distance_meters(CENTER, _north_of(CENTER, 150)) == pytest.approx(
        150, abs=0.01
    )


def test_distance_between_cities():
    # Mumbai to Pune is roughly 120km as the crow flies
    pune = Coordinate(latitude=18.5204, longitude=73.8567)
    assert 115_000 < distance_meters(CENTER, pune) < 125_000


def test_antipodal_points():
    a = Coordinate(latitude=0, longitude=0)
    b = Coordinate(latitude=0, longitude=180)
    assert distance_meters(a, b) == pytest.approx(math.pi * EARTH_RADIUS_METERS)


def test_within_fence():
    fence = Geofence(center=CENTER, radius_meters=100)

    assert within_fence(CENTER, fence)
    assert within_fence(_north_of(CENTER, 50), fence)
    assert not within_fence(_north_of(CENTER, 150), fence)


def test_fence_at_origin():
    origin = Coordinate(latitude=0, longitude=0)
    fence = Geofence(center=origin, radius_meters=100)

    assert within_fence(_north_of(origin, 50), fence)
    assert not within_fence(_north_of(origin, 150), fence)


def test_no_fence_accepts_anywhere():
    assert within_fence(Coordinate(latitude=-45, longitude=170), None)


@pytest.mark.parametrize(
    'latitude,longitude', [(91, 0), (-91, 0), (0, 181), (0, -181)]
)
def test_invalid_coordinates(latitude, longitude):
    with pytest.raises(ValueError):
        Coordinate(latitude=latitude, longitude=longitude)


def test_fence_radius_must_be_positive():
    with pytest.raises(ValueError):
        Geofence(center=CENTER, radius_meters=0)
