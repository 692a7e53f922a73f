"""Geometry primitives for GLOBEMARK.

This module provides immutable Pydantic models for geodetic points on the
globe, Earth-centred cartesian positions, camera snapshots, and screen
positions. Latitudes and longitudes are decimal degrees; cartesian
coordinates and altitudes are metres.
"""

from __future__ import annotations

import math
import uuid
from typing import Self

from pydantic import BaseModel, Field


def _new_point_id() -> str:
    return uuid.uuid4().hex


class GeoPoint(BaseModel, frozen=True):
    """A located image on the globe.

    Immutable once created. Range checks are left to
    :class:`~globemark.geometry.validators.CoordinateValidator` so that an
    out-of-range point surfaces as ``InvalidCoordinate`` rather than a
    pydantic error.

    Attributes:
        id: Identifier of the image record (server id or generated).
        url: Opaque reference to the hosted image.
        latitude: Latitude in decimal degrees, expected in [-90, 90].
        longitude: Longitude in decimal degrees, expected in [-180, 180].
    """

    id: str = Field(default_factory=_new_point_id, description="Image identifier")
    url: str = Field(..., description="Opaque image resource reference")
    latitude: float = Field(..., description="Latitude (decimal degrees)")
    longitude: float = Field(..., description="Longitude (decimal degrees)")

    def to_tuple(self) -> tuple[float, float]:
        """Convert to (latitude, longitude) tuple."""
        return (self.latitude, self.longitude)


class LatLon(BaseModel, frozen=True):
    """A bare geodetic position with no image attached."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)

    def to_tuple(self) -> tuple[float, float]:
        """Convert to (latitude, longitude) tuple."""
        return (self.latitude, self.longitude)


class Cartesian3(BaseModel, frozen=True):
    """A point or vector in Earth-centred, Earth-fixed coordinates (metres).

    Attributes:
        x: Towards (lat 0, lon 0).
        y: Towards (lat 0, lon 90E).
        z: Towards the north pole.
    """

    x: float
    y: float
    z: float

    @property
    def magnitude(self) -> float:
        """Euclidean length of the vector."""
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    @property
    def is_finite(self) -> bool:
        """True if every component is a finite number."""
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))

    def __sub__(self, other: Cartesian3) -> Cartesian3:
        return Cartesian3(x=self.x - other.x, y=self.y - other.y, z=self.z - other.z)

    def __add__(self, other: Cartesian3) -> Cartesian3:
        return Cartesian3(x=self.x + other.x, y=self.y + other.y, z=self.z + other.z)

    def scale(self, factor: float) -> Cartesian3:
        """Multiply every component by ``factor``."""
        return Cartesian3(x=self.x * factor, y=self.y * factor, z=self.z * factor)

    def dot(self, other: Cartesian3) -> float:
        """Dot product with another vector."""
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Cartesian3) -> Cartesian3:
        """Cross product with another vector (right-handed)."""
        return Cartesian3(
            x=self.y * other.z - self.z * other.y,
            y=self.z * other.x - self.x * other.z,
            z=self.x * other.y - self.y * other.x,
        )

    def normalized(self) -> Cartesian3:
        """Return the unit vector in the same direction.

        Raises:
            ValueError: If the vector has zero length.
        """
        length = self.magnitude
        if length == 0.0:
            raise ValueError("Cannot normalize a zero-length vector")
        return self.scale(1.0 / length)

    def to_tuple(self) -> tuple[float, float, float]:
        """Convert to (x, y, z) tuple."""
        return (self.x, self.y, self.z)

    @classmethod
    def from_tuple(cls, coord: tuple[float, float, float]) -> Self:
        """Create Cartesian3 from (x, y, z) tuple."""
        return cls(x=coord[0], y=coord[1], z=coord[2])


class CameraState(BaseModel, frozen=True):
    """Read-only camera snapshot supplied by the renderer once per frame.

    Attributes:
        position: Camera position in Earth-centred cartesian metres.
        altitude: Height of the camera above the globe surface in metres.
    """

    position: Cartesian3
    altitude: float = Field(..., ge=0.0, description="Altitude above surface (m)")


class ScreenPosition(BaseModel, frozen=True):
    """A pointer position on the rendering surface, in pixels.

    (0, 0) is the top-left corner; x grows rightward and y downward.
    """

    x: float
    y: float

    def to_tuple(self) -> tuple[float, float]:
        """Convert to (x, y) tuple."""
        return (self.x, self.y)

    @classmethod
    def from_tuple(cls, coord: tuple[float, float]) -> Self:
        """Create ScreenPosition from (x, y) tuple."""
        return cls(x=coord[0], y=coord[1])
