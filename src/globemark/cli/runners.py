"""Runners for GLOBEMARK CLI commands.

Each runner does the work behind one command and returns plain data; the
command functions in main.py only handle options, output and exit codes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from globemark.config import Settings
from globemark.core import (
    Cluster,
    FrameVisibility,
    GreedyClusterer,
    VisibilityEvaluator,
)
from globemark.geometry import (
    CameraState,
    CoordinateValidator,
    GeoPoint,
    LatLon,
    camera_above,
)
from globemark.services import (
    GeocodeResult,
    HttpImageService,
    ImageRecord,
    NominatimGeocoder,
)


class PointsFileError(ValueError):
    """Raised when a points file cannot be parsed."""


def load_points(path: Path) -> list[GeoPoint]:
    """Load located images from a JSON file.

    Accepts a list of records or an object with an ``images`` list, each
    record in the flat or nested-location shape. Records without a location
    are skipped.

    Raises:
        PointsFileError: If the file is not valid JSON or a record is malformed.
        InvalidCoordinate: If a record is out of range.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PointsFileError(f"Cannot read points from {path}: {e}") from e

    items = raw.get("images", []) if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        raise PointsFileError(f"{path} must hold a list of images")

    validator = CoordinateValidator()
    points: list[GeoPoint] = []
    for index, item in enumerate(items):
        try:
            record = ImageRecord.model_validate(item)
        except PydanticValidationError as e:
            raise PointsFileError(f"Record {index} in {path} is malformed") from e
        point = record.to_geopoint()
        if point is not None:
            points.append(validator.validate_point(point))
    return points


def run_cluster(points: list[GeoPoint], threshold_km: float) -> list[Cluster]:
    return GreedyClusterer().cluster(points, threshold_km)


def run_visibility(
    points: list[GeoPoint],
    *,
    threshold_km: float,
    camera_target: LatLon,
    altitude: float,
    altitude_threshold: float,
) -> tuple[list[Cluster], FrameVisibility]:
    """Cluster points and evaluate one frame for a camera above a target."""
    clusters = run_cluster(points, threshold_km)
    camera = CameraState(
        position=camera_above(camera_target.latitude, camera_target.longitude, altitude),
        altitude=altitude,
    )
    frame = VisibilityEvaluator().evaluate(clusters, camera, altitude_threshold)
    return clusters, frame


def cluster_to_dict(cluster: Cluster) -> dict[str, Any]:
    return {
        "id": cluster.cluster_id,
        "center": {"latitude": cluster.center_lat, "longitude": cluster.center_lon},
        "member_count": cluster.member_count,
        "members": [
            {
                "id": m.id,
                "url": m.url,
                "latitude": m.latitude,
                "longitude": m.longitude,
            }
            for m in cluster.members
        ],
    }


async def fetch_images(settings: Settings) -> list[ImageRecord]:
    async with HttpImageService(settings) as images:
        return await images.list_images()


async def geocode_address(address: str, settings: Settings) -> GeocodeResult:
    async with NominatimGeocoder(settings) as geocoder:
        return await geocoder.geocode(address)
