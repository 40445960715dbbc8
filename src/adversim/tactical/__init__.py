"""Tactical geometry: haversine distance and local coordinate conversion."""
from .geo import (
    EARTH_RADIUS_M,
    GeoReference,
    Point,
    distance,
    get_reference,
    init_reference,
    interpolate,
    latlng_to_local,
    local_to_latlng,
)
