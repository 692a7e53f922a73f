"""Coordinate validation utilities for GLOBEMARK.

This module provides range checking for geodetic coordinates so that
malformed points are rejected before they reach the clusterer.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from globemark.geometry.primitives import GeoPoint

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


class InvalidCoordinate(ValueError):
    """Raised when a latitude/longitude pair is out of range or not finite.

    Attributes:
        latitude: The offending latitude.
        longitude: The offending longitude.
        point_id: Identifier of the point, if the pair came from a GeoPoint.
    """

    def __init__(
        self,
        message: str,
        *,
        latitude: float,
        longitude: float,
        point_id: str | None = None,
    ) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.point_id = point_id
        context = f"lat={latitude}, lon={longitude}"
        if point_id is not None:
            context = f"id={point_id}, {context}"
        super().__init__(f"{message} ({context})")


class CoordinateValidator:
    """Validator for geodetic coordinates.

    The validator is stateless and operates purely on the inputs provided
    to each method.
    """

    def validate(
        self,
        latitude: float,
        longitude: float,
        *,
        point_id: str | None = None,
        strict: bool = True,
    ) -> bool:
        """Validate that a latitude/longitude pair is in range.

        Checks that:
        1. Both values are finite.
        2. latitude is within [-90, 90].
        3. longitude is within [-180, 180].

        Args:
            latitude: Latitude in decimal degrees.
            longitude: Longitude in decimal degrees.
            point_id: Optional point identifier for error context.
            strict: If True, raise InvalidCoordinate on failure.
                If False, return False instead.

        Returns:
            True if the pair is valid.

        Raises:
            InvalidCoordinate: If strict=True and the pair is invalid.
        """
        violations: list[str] = []
        if not (math.isfinite(latitude) and math.isfinite(longitude)):
            violations.append("coordinates must be finite")
        else:
            lat_min, lat_max = LATITUDE_RANGE
            lon_min, lon_max = LONGITUDE_RANGE
            if not lat_min <= latitude <= lat_max:
                violations.append(f"latitude outside [{lat_min:g}, {lat_max:g}]")
            if not lon_min <= longitude <= lon_max:
                violations.append(f"longitude outside [{lon_min:g}, {lon_max:g}]")

        if violations and strict:
            raise InvalidCoordinate(
                f"Invalid coordinate: {'; '.join(violations)}",
                latitude=latitude,
                longitude=longitude,
                point_id=point_id,
            )

        return not violations

    def validate_point(self, point: GeoPoint) -> GeoPoint:
        """Validate a GeoPoint, returning it unchanged when valid.

        Raises:
            InvalidCoordinate: If the point's coordinates are out of range.
        """
        self.validate(point.latitude, point.longitude, point_id=point.id)
        return point

    def validate_points(self, points: Iterable[GeoPoint]) -> list[GeoPoint]:
        """Validate every point before any of them is used.

        Args:
            points: Points to validate.

        Returns:
            The points as a list, in input order.

        Raises:
            InvalidCoordinate: On the first point that fails validation.
        """
        return [self.validate_point(point) for point in points]

    def is_valid(self, latitude: float, longitude: float) -> bool:
        """Check a latitude/longitude pair without raising.

        Convenience method that wraps validate() with strict=False.
        """
        return self.validate(latitude, longitude, strict=False)
