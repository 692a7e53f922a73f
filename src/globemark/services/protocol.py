"""Service protocols and wire models for GLOBEMARK.

This module defines the contracts of the three external services the
interaction layer consumes:

- ImageService: list and create image records
- AssetHost: upload image bytes, get back a hosted URL
- Geocoder: resolve free-form address text to a position

Each has an httpx implementation in this package; tests inject in-memory
fakes that satisfy the same protocols.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, NamedTuple, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator

from globemark.geometry import CoordinateValidator, GeoPoint

logger = logging.getLogger(__name__)

# =============================================================================
# Wire Models
# =============================================================================


class ImageRecord(BaseModel):
    """One image as returned by the image API.

    Accepts both the flat shape ``{url, latitude, longitude}`` and the nested
    shape ``{url, location: {latitude, longitude}}`` with Mongo-style ``_id``
    and ``uploadedAt`` keys.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None, alias="_id")
    url: str = Field(..., min_length=1)
    latitude: float | None = None
    longitude: float | None = None
    uploaded_at: datetime | None = Field(default=None, alias="uploadedAt")

    @model_validator(mode="before")
    @classmethod
    def _flatten_location(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("location"), dict):
            location = data["location"]
            data = {
                **data,
                "latitude": data.get("latitude", location.get("latitude")),
                "longitude": data.get("longitude", location.get("longitude")),
            }
        return data

    @property
    def has_location(self) -> bool:
        """True if both coordinates are present."""
        return self.latitude is not None and self.longitude is not None

    def to_geopoint(self) -> GeoPoint | None:
        """Convert to a GeoPoint, or None if the record has no location.

        Range checking is left to the store/clusterer validation.
        """
        if self.latitude is None or self.longitude is None:
            return None
        if self.id is not None:
            return GeoPoint(
                id=self.id,
                url=self.url,
                latitude=self.latitude,
                longitude=self.longitude,
            )
        return GeoPoint(url=self.url, latitude=self.latitude, longitude=self.longitude)


class LocatedPoints(NamedTuple):
    """Result of filtering image records down to drawable points.

    Attributes:
        points: Records with a valid location, in server order.
        skipped: Records without a location.
        rejected: Records whose location is out of range or not finite.
    """

    points: list[GeoPoint]
    skipped: int
    rejected: int


def located_points(
    records: Iterable[ImageRecord],
    validator: CoordinateValidator | None = None,
) -> LocatedPoints:
    """Convert records to GeoPoints, dropping unlocated and invalid ones.

    A bad record from the server is counted and logged, never raised, so one
    corrupt entry cannot hide every other image.
    """
    validator = validator or CoordinateValidator()
    points: list[GeoPoint] = []
    skipped = rejected = 0
    for record in records:
        point = record.to_geopoint()
        if point is None:
            skipped += 1
        elif not validator.is_valid(point.latitude, point.longitude):
            logger.warning(
                "Rejecting image %s with invalid coordinates (%s, %s)",
                point.id,
                point.latitude,
                point.longitude,
            )
            rejected += 1
        else:
            points.append(point)
    return LocatedPoints(points, skipped, rejected)


class CreateImageRequest(BaseModel):
    """Request to register a hosted image at a location.

    Fields are optional at the model level so that a missing value surfaces
    as the service ValidationError from the client, not a pydantic error.
    """

    url: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    def missing_fields(self) -> tuple[str, ...]:
        """Names of required fields that are missing or empty."""
        missing: list[str] = []
        if self.url is None or not self.url.strip():
            missing.append("url")
        if self.latitude is None:
            missing.append("latitude")
        if self.longitude is None:
            missing.append("longitude")
        return tuple(missing)

    def to_payload(self) -> dict[str, Any]:
        """Request body in the image API's nested shape."""
        return {
            "url": self.url,
            "location": {"latitude": self.latitude, "longitude": self.longitude},
        }


class GeocodeResult(BaseModel, frozen=True):
    """Resolved position of an address."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    display_name: str = ""


# =============================================================================
# Service Protocols
# =============================================================================


class ImageService(Protocol):
    """Protocol for the image record API."""

    async def list_images(self) -> list[ImageRecord]:
        """Fetch every image record.

        Returns:
            Records in server order; empty when there are none.

        Raises:
            ServiceUnavailable: If the API cannot be reached or fails.
        """
        ...

    async def create_image(self, request: CreateImageRequest) -> ImageRecord:
        """Register a hosted image at a location.

        Raises:
            ValidationError: If url or location is missing or invalid.
            ServiceUnavailable: If the API cannot be reached or fails.
        """
        ...


class AssetHost(Protocol):
    """Protocol for the third-party image host."""

    async def upload_asset(self, data: bytes, filename: str) -> str:
        """Upload image bytes.

        Returns:
            Public URL of the hosted image.

        Raises:
            UploadError: If the host rejects or fails the upload.
        """
        ...


class Geocoder(Protocol):
    """Protocol for address geocoding."""

    async def geocode(self, text: str) -> GeocodeResult:
        """Resolve address text to a position.

        Raises:
            NotFound: If nothing matches.
            ServiceUnavailable: If the geocoder cannot be reached or fails.
        """
        ...
