"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from PIL import Image

from globemark.config import Settings
from globemark.geometry import (
    EARTH_RADIUS_M,
    CameraState,
    Cartesian3,
    GeoPoint,
    LatLon,
    ScreenPosition,
)
from globemark.renderer import Marker, MarkerStyle
from globemark.services import (
    CreateImageRequest,
    GeocodeResult,
    ImageRecord,
    NotFound,
    ServiceError,
)
from globemark.utils.logging import clear_correlation_context, configure_logging


@pytest.fixture(autouse=True)
def reset_logging_context() -> Iterator[None]:
    """Reset correlation context between tests."""
    clear_correlation_context()
    yield
    clear_correlation_context()


@pytest.fixture
def test_settings() -> Settings:
    """Create a Settings instance with test-safe defaults."""
    return Settings(
        IMAGE_API_URL="https://images.test",
        ASSET_HOST_URL="https://assets.test/v1_1",
        ASSET_HOST_CLOUD_NAME="demo-cloud",
        ASSET_HOST_UPLOAD_PRESET="unsigned-preset",
        GEOCODER_URL="https://geo.test",
        GEOCODER_USER_AGENT="globemark-tests/1.0",
        GEOCODER_RPS=1000.0,
        LOG_LEVEL="DEBUG",
        LOG_FORMAT="console",
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def configure_test_logging() -> Iterator[None]:
    """Configure logging for tests with console output."""
    configure_logging(level="DEBUG", log_format="console")
    yield


# =============================================================================
# Points
# =============================================================================


def _make_point(lat: float, lon: float, point_id: str | None = None) -> GeoPoint:
    point_id = point_id or f"p-{lat:+.4f}-{lon:+.4f}"
    return GeoPoint(
        id=point_id,
        url=f"https://img.test/{point_id}.jpg",
        latitude=lat,
        longitude=lon,
    )


@pytest.fixture
def scenario_points() -> list[GeoPoint]:
    """Two nearby points and one far away."""
    return [
        _make_point(10.0, 10.0, "a"),
        _make_point(10.1, 10.1, "b"),
        _make_point(60.0, 60.0, "c"),
    ]


@pytest.fixture
def make_point() -> Callable[..., GeoPoint]:
    """Factory for GeoPoints with a deterministic id and URL."""
    return _make_point


def _write_jpeg(path: Path, exif: Image.Exif | None = None) -> Path:
    """Write a small JPEG, optionally with EXIF."""
    image = Image.new("RGB", (16, 12), color=(200, 120, 40))
    buffer = io.BytesIO()
    if exif is not None:
        image.save(buffer, format="JPEG", exif=exif)
    else:
        image.save(buffer, format="JPEG")
    path.write_bytes(buffer.getvalue())
    return path


@pytest.fixture
def write_jpeg() -> Callable[..., Path]:
    """Factory writing a small JPEG, optionally with EXIF."""
    return _write_jpeg


# =============================================================================
# Fakes
# =============================================================================


class FakeRenderer:
    """Scripted Renderer: picks return whatever the test configured."""

    def __init__(self, altitude: float = 20_000_000.0) -> None:
        self.entity_at: dict[tuple[float, float], str] = {}
        self.globe_at: dict[tuple[float, float], LatLon] = {}
        self.camera = CameraState(
            position=Cartesian3(x=EARTH_RADIUS_M + altitude, y=0.0, z=0.0),
            altitude=altitude,
        )
        self.markers: dict[str, Marker] = {}
        self.flights: list[tuple[LatLon, float | None]] = []
        self.set_calls = 0
        self.remove_all_calls = 0

    def pick_entity_at(self, screen: ScreenPosition) -> str | None:
        return self.entity_at.get(screen.to_tuple())

    def pick_globe_at(self, screen: ScreenPosition) -> LatLon | None:
        return self.globe_at.get(screen.to_tuple())

    def current_camera_state(self) -> CameraState:
        return self.camera

    def set_marker(
        self,
        entity_id: str,
        position: LatLon,
        style: MarkerStyle,
        visible: bool,
        *,
        label: str | None = None,
    ) -> None:
        self.set_calls += 1
        self.markers[entity_id] = Marker(
            entity_id=entity_id,
            position=position,
            style=style,
            visible=visible,
            label=label,
        )

    def remove_marker(self, entity_id: str) -> None:
        self.markers.pop(entity_id, None)

    def remove_all_markers(self) -> None:
        self.remove_all_calls += 1
        self.markers.clear()

    def fly_to(self, position: LatLon, altitude: float | None = None) -> None:
        self.flights.append((position, altitude))


class FakeImageService:
    """In-memory ImageService.

    ``gate`` (if set) blocks list_images until the test releases it, which
    lets tests interleave a fetch with other operations.
    """

    def __init__(self, records: list[ImageRecord] | None = None) -> None:
        self.records = list(records or [])
        self.list_error: ServiceError | None = None
        self.create_error: ServiceError | None = None
        self.created: list[CreateImageRequest] = []
        self.list_calls = 0
        self.gate: asyncio.Event | None = None

    async def list_images(self) -> list[ImageRecord]:
        self.list_calls += 1
        snapshot = list(self.records)
        if self.gate is not None:
            await self.gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return snapshot

    async def create_image(self, request: CreateImageRequest) -> ImageRecord:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(request)
        record = ImageRecord(
            id=f"srv-{len(self.created)}",
            url=request.url or "",
            latitude=request.latitude,
            longitude=request.longitude,
        )
        self.records.append(record)
        return record


class FakeAssetHost:
    """In-memory AssetHost returning predictable URLs.

    ``gate`` (if set) holds each upload until the test releases it.
    """

    def __init__(self) -> None:
        self.uploads: list[tuple[str, int]] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def upload_asset(self, data: bytes, filename: str) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.uploads.append((filename, len(data)))
        return f"https://cdn.test/{filename}"


class FakeGeocoder:
    """In-memory Geocoder backed by a dict."""

    def __init__(self, known: dict[str, GeocodeResult] | None = None) -> None:
        self.known = dict(known or {})
        self.error: ServiceError | None = None

    async def geocode(self, text: str) -> GeocodeResult:
        if self.error is not None:
            raise self.error
        try:
            return self.known[text]
        except KeyError:
            raise NotFound(f"Address not found: {text}", service="geocoder") from None


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def fake_images() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def fake_assets() -> FakeAssetHost:
    return FakeAssetHost()


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder(
        {
            "Paris": GeocodeResult(
                latitude=48.8566, longitude=2.3522, display_name="Paris, France"
            )
        }
    )
