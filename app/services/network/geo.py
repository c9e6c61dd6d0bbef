"""Great-circle distance helpers for CTO placement."""

from __future__ import annotations

import math
from dataclasses import dataclass

from app.services.network.exceptions import InvalidCoordinate

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


def _as_degrees(value, label: str, limit: float) -> float:
    # bool is an int subclass; reject it explicitly.
    if value is None or isinstance(value, bool):
        raise InvalidCoordinate(f"{label} is required", **{label: value})
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinate(f"{label} must be numeric", **{label: str(value)}) from exc
    if not math.isfinite(number) or number < -limit or number > limit:
        raise InvalidCoordinate(
            f"{label} must be between {-limit:g} and {limit:g}", **{label: number}
        )
    return number


def validate_coordinate(latitude, longitude) -> Coordinate:
    """Build a Coordinate, raising InvalidCoordinate for bad input."""
    return Coordinate(
        latitude=_as_degrees(latitude, "latitude", 90.0),
        longitude=_as_degrees(longitude, "longitude", 180.0),
    )


def distance(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates, in meters."""
    a = validate_coordinate(a.latitude, a.longitude)
    b = validate_coordinate(b.latitude, b.longitude)
    if a == b:
        return 0.0
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    delta_phi = math.radians(b.latitude - a.latitude)
    delta_lambda = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def distance_display(distance_m: float) -> str:
    if distance_m >= 1000:
        return f"{distance_m / 1000:.2f} km"
    return f"{distance_m:.0f} m"
