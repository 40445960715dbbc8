"""Geo utilities: great-circle distance and lat/lng <-> local meter transforms.

All simulation positions are (lat, lng) tuples in decimal degrees.  Detection
math works on haversine distance in meters; the local transforms let the
CLI describe a point relative to the map center.

Convention for local coordinates:
    - Local origin (0, 0) = geo-reference point (lat, lng)
    - 1 local unit = 1 meter
    - +X = East, +Y = North
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEG_LAT = 111_320.0

Point = tuple[float, float]


def distance(a: Point, b: Point) -> float:
    """Haversine distance in meters between two (lat, lng) points.

    Never raises; NaN coordinates propagate into a NaN result.
    """
    phi1 = math.radians(a[0])
    phi2 = math.radians(b[0])
    d_phi = math.radians(b[0] - a[0])
    d_lambda = math.radians(b[1] - a[1])

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    if h > 1.0:
        h = 1.0  # rounding near antipodes
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def interpolate(a: Point, b: Point, fraction: float) -> Point:
    """Linear interpolation between two points (fine at valley scale)."""
    return (
        a[0] + (b[0] - a[0]) * fraction,
        a[1] + (b[1] - a[1]) * fraction,
    )


@dataclass
class GeoReference:
    """A real-world reference point that anchors local coordinates."""

    lat: float = 0.0
    lng: float = 0.0
    initialized: bool = False

    @property
    def meters_per_deg_lng(self) -> float:
        return METERS_PER_DEG_LAT * math.cos(math.radians(self.lat))


# Module-level singleton, set once at startup, read from any thread.
_ref = GeoReference()
_lock = threading.Lock()


def init_reference(lat: float, lng: float) -> GeoReference:
    """Set the geo-reference point (map center)."""
    global _ref
    with _lock:
        _ref = GeoReference(lat=lat, lng=lng, initialized=True)
    return _ref


def get_reference() -> GeoReference:
    return _ref


def latlng_to_local(point: Point) -> tuple[float, float]:
    """Convert (lat, lng) to local meters (x=East, y=North).

    Returns (0.0, 0.0) until a reference has been set.
    """
    ref = _ref
    if not ref.initialized:
        return (0.0, 0.0)
    y = (point[0] - ref.lat) * METERS_PER_DEG_LAT
    x = (point[1] - ref.lng) * ref.meters_per_deg_lng
    return (x, y)


def local_to_latlng(x: float, y: float) -> Point:
    """Convert local meters back to (lat, lng)."""
    ref = _ref
    if not ref.initialized:
        return (0.0, 0.0)
    lat = ref.lat + y / METERS_PER_DEG_LAT
    lng = ref.lng + x / ref.meters_per_deg_lng
    return (lat, lng)
