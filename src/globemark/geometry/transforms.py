"""Coordinate transformation utilities for GLOBEMARK.

The globe is modelled as a sphere. Distances along the surface use the
haversine formula with a mean Earth radius of 6371 km; cartesian positions
use the same radius in metres so both views of the globe agree.

Coordinate Systems:
    - Geodetic: (latitude, longitude) in decimal degrees
    - Cartesian: Earth-centred, Earth-fixed (x, y, z) in metres
"""

from __future__ import annotations

import math

from globemark.geometry.primitives import Cartesian3, GeoPoint, LatLon

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0


def haversine_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    *,
    radius_km: float = EARTH_RADIUS_KM,
) -> float:
    """Great-circle surface distance between two points.

    Args:
        lat1: Latitude of the first point (degrees).
        lon1: Longitude of the first point (degrees).
        lat2: Latitude of the second point (degrees).
        lon2: Longitude of the second point (degrees).
        radius_km: Sphere radius (default: mean Earth radius).

    Returns:
        Distance in kilometres.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    h = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    )
    # Guard against rounding pushing h marginally above 1 for antipodes
    h = min(1.0, max(0.0, h))
    return 2 * radius_km * math.asin(math.sqrt(h))


def point_distance_km(a: GeoPoint | LatLon, b: GeoPoint | LatLon) -> float:
    """Haversine distance between two located objects."""
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def geodetic_to_cartesian(
    latitude: float,
    longitude: float,
    height: float = 0.0,
    *,
    radius: float = EARTH_RADIUS_M,
) -> Cartesian3:
    """Convert a geodetic position to Earth-centred cartesian metres.

    Args:
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        height: Height above the sphere surface in metres.
        radius: Sphere radius in metres.

    Returns:
        Cartesian3 position.
    """
    phi = math.radians(latitude)
    lam = math.radians(longitude)
    r = radius + height
    return Cartesian3(
        x=r * math.cos(phi) * math.cos(lam),
        y=r * math.cos(phi) * math.sin(lam),
        z=r * math.sin(phi),
    )


def cartesian_to_geodetic(
    position: Cartesian3,
    *,
    radius: float = EARTH_RADIUS_M,
) -> tuple[LatLon, float]:
    """Convert an Earth-centred cartesian position to geodetic form.

    Args:
        position: Cartesian position in metres.
        radius: Sphere radius in metres.

    Returns:
        (LatLon, height) where height is metres above the sphere surface.

    Raises:
        ValueError: If position is the Earth's centre.
    """
    r = position.magnitude
    if r == 0.0:
        raise ValueError("Earth centre has no geodetic position")
    latitude = math.degrees(math.asin(max(-1.0, min(1.0, position.z / r))))
    longitude = math.degrees(math.atan2(position.y, position.x))
    return LatLon(latitude=latitude, longitude=longitude), r - radius


def surface_normal(position: Cartesian3) -> Cartesian3:
    """Outward unit normal of the sphere at ``position``.

    Raises:
        ValueError: If position is the Earth's centre.
    """
    return position.normalized()


def ray_sphere_intersection(
    origin: Cartesian3,
    direction: Cartesian3,
    *,
    radius: float = EARTH_RADIUS_M,
) -> Cartesian3 | None:
    """Nearest intersection of a ray with the globe.

    Solves ``|origin + t * d|^2 = radius^2`` for the smallest ``t >= 0``.

    Args:
        origin: Ray origin (typically the camera position).
        direction: Ray direction; need not be normalized.
        radius: Sphere radius in metres.

    Returns:
        The intersection point, or None if the ray misses the globe or
        points away from it.
    """
    if direction.magnitude == 0.0:
        return None
    d = direction.normalized()
    b = origin.dot(d)
    c = origin.dot(origin) - radius * radius
    discriminant = b * b - c
    if discriminant < 0.0:
        return None

    root = math.sqrt(discriminant)
    t_near = -b - root
    t_far = -b + root
    if t_near >= 0.0:
        t = t_near
    elif t_far >= 0.0:
        # Origin inside the sphere
        t = t_far
    else:
        return None
    return origin + d.scale(t)


def camera_above(
    latitude: float,
    longitude: float,
    altitude: float,
    *,
    radius: float = EARTH_RADIUS_M,
) -> Cartesian3:
    """Position of a camera hovering ``altitude`` metres above a point."""
    return geodetic_to_cartesian(latitude, longitude, altitude, radius=radius)
