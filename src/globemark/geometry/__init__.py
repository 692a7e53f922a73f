"""Geometry module for GLOBEMARK.

This package provides coordinate primitives, validation, and transforms
for placing image markers on a spherical globe.

Key Components:
    - Primitives: GeoPoint, LatLon, Cartesian3, CameraState, ScreenPosition
    - Validators: Latitude/longitude range checking (InvalidCoordinate)
    - Transforms: Haversine distance, geodetic <-> cartesian, ray picking

Example:
    from globemark.geometry import CoordinateValidator, GeoPoint, haversine_km

    point = GeoPoint(url="https://img/1.jpg", latitude=10.0, longitude=10.0)
    CoordinateValidator().validate_point(point)  # Raises if out of range

    haversine_km(10.0, 10.0, 10.1, 10.1)  # ~15.6 km
"""

from globemark.geometry.primitives import (
    CameraState,
    Cartesian3,
    GeoPoint,
    LatLon,
    ScreenPosition,
)
from globemark.geometry.transforms import (
    EARTH_RADIUS_KM,
    EARTH_RADIUS_M,
    camera_above,
    cartesian_to_geodetic,
    geodetic_to_cartesian,
    haversine_km,
    point_distance_km,
    ray_sphere_intersection,
    surface_normal,
)
from globemark.geometry.validators import CoordinateValidator, InvalidCoordinate

__all__ = [
    "EARTH_RADIUS_KM",
    "EARTH_RADIUS_M",
    "CameraState",
    "Cartesian3",
    "CoordinateValidator",
    "GeoPoint",
    "InvalidCoordinate",
    "LatLon",
    "ScreenPosition",
    "camera_above",
    "cartesian_to_geodetic",
    "geodetic_to_cartesian",
    "haversine_km",
    "point_distance_km",
    "ray_sphere_intersection",
    "surface_normal",
]
