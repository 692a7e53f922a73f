"""Unit tests for the GlobeController interaction layer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from PIL import Image
from PIL.ExifTags import GPS, IFD
from PIL.TiffImagePlugin import IFDRational

from globemark.config import Settings
from globemark.geometry import GeoPoint, LatLon, ScreenPosition
from globemark.interaction import (
    FetchStatus,
    GlobeController,
    NoticeCode,
    NoticeLevel,
)
from globemark.renderer import PENDING_ENTITY_ID, MarkerStyle
from globemark.services import (
    ImageRecord,
    ServiceUnavailable,
    UploadError,
    ValidationError,
)
from globemark.store import GeoPointStore

CLICK = ScreenPosition(x=100.0, y=200.0)
ELSEWHERE = ScreenPosition(x=5.0, y=5.0)


@pytest.fixture
def store() -> GeoPointStore:
    return GeoPointStore()


@pytest.fixture
def controller(
    store: GeoPointStore,
    fake_renderer: Any,
    fake_images: Any,
    fake_assets: Any,
    fake_geocoder: Any,
    test_settings: Settings,
) -> GlobeController:
    return GlobeController(
        store,
        fake_renderer,
        fake_images,
        fake_assets,
        fake_geocoder,
        settings=test_settings,
        session_id="test-session",
    )


def _record(image_id: str, lat: float | None, lon: float | None) -> ImageRecord:
    return ImageRecord(
        id=image_id, url=f"https://cdn.test/{image_id}.jpg", latitude=lat, longitude=lon
    )


class TestPicking:
    """Primary and secondary picks."""

    def test_point_pick_selects(
        self, controller: GlobeController, store: GeoPointStore, fake_renderer: Any,
        scenario_points: list[GeoPoint],
    ) -> None:
        """Test picking a point marker opens its image."""
        store.replace_all(scenario_points)
        fake_renderer.entity_at[CLICK.to_tuple()] = "point:b"

        selected = controller.primary_pick(CLICK)

        assert selected is not None
        assert selected.id == "b"
        assert controller.selected == selected
        controller.close_selection()
        assert controller.selected is None

    def test_singleton_aggregate_selects_member(
        self, controller: GlobeController, store: GeoPointStore, fake_renderer: Any,
        scenario_points: list[GeoPoint],
    ) -> None:
        """Test picking a one-point aggregate selects that point."""
        store.replace_all(scenario_points)
        fake_renderer.entity_at[CLICK.to_tuple()] = "cluster:cluster-1"

        selected = controller.primary_pick(CLICK)
        assert selected is not None
        assert selected.id == "c"

    def test_multi_member_aggregate_flies_in(
        self, controller: GlobeController, store: GeoPointStore, fake_renderer: Any,
        scenario_points: list[GeoPoint], test_settings: Settings,
    ) -> None:
        """Test picking a larger aggregate flies to its centre."""
        store.replace_all(scenario_points)
        fake_renderer.entity_at[CLICK.to_tuple()] = "cluster:cluster-0"

        assert controller.primary_pick(CLICK) is None
        assert controller.selected is None
        (position, altitude), = fake_renderer.flights
        assert position.latitude == pytest.approx(10.05)
        assert position.longitude == pytest.approx(10.05)
        assert altitude == test_settings.FLY_TO_ALTITUDE_M

    @pytest.mark.parametrize(
        "entity_id", [None, PENDING_ENTITY_ID, "terrain-7", "point:gone", "cluster:x"]
    )
    def test_ignored_picks(
        self, controller: GlobeController, store: GeoPointStore, fake_renderer: Any,
        scenario_points: list[GeoPoint], entity_id: str | None,
    ) -> None:
        """Test misses, the pending marker and unknown entities do nothing."""
        store.replace_all(scenario_points)
        if entity_id is not None:
            fake_renderer.entity_at[CLICK.to_tuple()] = entity_id
        assert controller.primary_pick(CLICK) is None
        assert fake_renderer.flights == []

    def test_secondary_pick_sets_pending(
        self, controller: GlobeController, fake_renderer: Any
    ) -> None:
        """Test a globe hit becomes the pending location with a marker."""
        where = LatLon(latitude=-33.86, longitude=151.2)
        fake_renderer.globe_at[CLICK.to_tuple()] = where

        assert controller.secondary_pick(CLICK) == where
        assert controller.pending_location == where
        marker = fake_renderer.markers[PENDING_ENTITY_ID]
        assert marker.style is MarkerStyle.PENDING
        assert marker.visible
        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.PENDING_LOCATION_SET

    def test_secondary_pick_off_globe(
        self, controller: GlobeController, fake_renderer: Any
    ) -> None:
        """Test a click into space leaves the pending location alone."""
        assert controller.secondary_pick(ELSEWHERE) is None
        assert controller.pending_location is None
        assert PENDING_ENTITY_ID not in fake_renderer.markers


class TestSelectFile:
    """File selection."""

    def test_valid_file(
        self, controller: GlobeController, tmp_path: Path,
        write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a readable image becomes the selected file."""
        image = controller.select_file(write_jpeg(tmp_path / "photo.jpg"))
        assert image is not None
        assert controller.selected_file == image
        assert controller.pending_location is None

    def test_invalid_file(self, controller: GlobeController, tmp_path: Path) -> None:
        """Test an unreadable file yields a validation notice."""
        path = tmp_path / "notes.jpg"
        path.write_text("text")

        assert controller.select_file(path) is None
        assert controller.selected_file is None
        notice = controller.last_notice
        assert notice is not None
        assert notice.code is NoticeCode.VALIDATION_ERROR
        assert notice.level is NoticeLevel.ERROR

    def test_exif_gps_sets_pending(
        self, controller: GlobeController, tmp_path: Path,
        write_jpeg: Callable[..., Path],
    ) -> None:
        """Test embedded GPS fills in a missing pending location."""
        exif = Image.Exif()
        exif[IFD.GPSInfo] = {
            GPS.GPSLatitudeRef: "N",
            GPS.GPSLatitude: (IFDRational(10, 1), IFDRational(30, 1), IFDRational(0, 1)),
            GPS.GPSLongitudeRef: "W",
            GPS.GPSLongitude: (IFDRational(20, 1), IFDRational(0, 1), IFDRational(0, 1)),
        }
        controller.select_file(write_jpeg(tmp_path / "gps.jpg", exif=exif))

        pending = controller.pending_location
        assert pending is not None
        assert pending.latitude == pytest.approx(10.5)
        assert pending.longitude == pytest.approx(-20.0)


class TestUpload:
    """Upload flow."""

    def _prepare(
        self, controller: GlobeController, fake_renderer: Any, path: Path
    ) -> LatLon:
        where = LatLon(latitude=45.0, longitude=7.0)
        fake_renderer.globe_at[CLICK.to_tuple()] = where
        controller.secondary_pick(CLICK)
        controller.select_file(path)
        return where

    @pytest.mark.asyncio
    async def test_requires_file_and_location(
        self, controller: GlobeController, fake_assets: Any, fake_images: Any
    ) -> None:
        """Test nothing is sent without a file and a location."""
        assert await controller.upload() is None

        notice = controller.last_notice
        assert notice is not None
        assert notice.code is NoticeCode.PRECONDITION_FAILED
        assert "file" in notice.message
        assert "location" in notice.message
        assert fake_assets.uploads == []
        assert fake_images.created == []

    @pytest.mark.asyncio
    async def test_requires_location(
        self, controller: GlobeController, fake_assets: Any, tmp_path: Path,
        write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a file alone is not enough."""
        controller.select_file(write_jpeg(tmp_path / "photo.jpg"))
        assert await controller.upload() is None
        assert fake_assets.uploads == []

    @pytest.mark.asyncio
    async def test_success(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, fake_images: Any, tmp_path: Path,
        write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a completed upload stores the point and refreshes."""
        where = self._prepare(
            controller, fake_renderer, write_jpeg(tmp_path / "photo.jpg")
        )

        point = await controller.upload()

        assert point is not None
        assert point.id == "srv-1"
        assert point.url == "https://cdn.test/photo.jpg"
        assert (point.latitude, point.longitude) == (where.latitude, where.longitude)
        request = fake_images.created[0]
        assert (request.latitude, request.longitude) == (45.0, 7.0)

        assert store.find("srv-1") is not None
        assert controller.pending_location is None
        assert controller.selected_file is None
        assert PENDING_ENTITY_ID not in fake_renderer.markers
        assert fake_images.list_calls == 1
        assert controller.fetch_status is FetchStatus.LOADED
        codes = [n.code for n in controller.notices]
        assert NoticeCode.UPLOAD_COMPLETE in codes

    @pytest.mark.asyncio
    async def test_location_picked_during_upload_survives(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, fake_assets: Any, tmp_path: Path,
        write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a new pending location set mid-upload is kept."""
        first = self._prepare(
            controller, fake_renderer, write_jpeg(tmp_path / "photo.jpg")
        )
        fake_assets.gate = asyncio.Event()

        task = asyncio.create_task(controller.upload())
        await asyncio.sleep(0)

        second = LatLon(latitude=-10.0, longitude=30.0)
        fake_renderer.globe_at[ELSEWHERE.to_tuple()] = second
        controller.secondary_pick(ELSEWHERE)
        fake_assets.gate.set()
        point = await task

        assert point is not None
        assert (point.latitude, point.longitude) == (first.latitude, first.longitude)
        assert controller.pending_location == second
        assert fake_renderer.markers[PENDING_ENTITY_ID].position == second

    @pytest.mark.asyncio
    async def test_file_selected_during_upload_survives(
        self, controller: GlobeController, fake_renderer: Any, fake_assets: Any,
        tmp_path: Path, write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a file chosen mid-upload stays selected for the next upload."""
        self._prepare(controller, fake_renderer, write_jpeg(tmp_path / "photo.jpg"))
        fake_assets.gate = asyncio.Event()

        task = asyncio.create_task(controller.upload())
        await asyncio.sleep(0)
        next_file = controller.select_file(write_jpeg(tmp_path / "next.jpg"))
        fake_assets.gate.set()
        assert await task is not None

        assert next_file is not None
        assert controller.selected_file is next_file
        assert controller.pending_location is None

    @pytest.mark.asyncio
    async def test_asset_host_failure(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, fake_assets: Any, fake_images: Any,
        tmp_path: Path, write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a failed file upload keeps the pending state."""
        self._prepare(controller, fake_renderer, write_jpeg(tmp_path / "photo.jpg"))
        fake_assets.error = UploadError("rejected", service="assets")

        assert await controller.upload() is None

        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.UPLOAD_ERROR
        assert fake_images.created == []
        assert len(store) == 0
        assert controller.pending_location is not None
        assert controller.selected_file is not None

    @pytest.mark.asyncio
    async def test_create_image_rejected(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, fake_images: Any, tmp_path: Path,
        write_jpeg: Callable[..., Path],
    ) -> None:
        """Test a rejected record leaves the store untouched."""
        self._prepare(controller, fake_renderer, write_jpeg(tmp_path / "photo.jpg"))
        fake_images.create_error = ValidationError(
            "URL and location are required", service="images", status_code=400
        )
        generation = store.generation

        assert await controller.upload() is None

        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.VALIDATION_ERROR
        assert store.generation == generation
        assert fake_images.list_calls == 0

    @pytest.mark.asyncio
    async def test_create_image_unavailable(
        self, controller: GlobeController, fake_renderer: Any, fake_images: Any,
        tmp_path: Path, write_jpeg: Callable[..., Path],
    ) -> None:
        """Test an unreachable image API yields a service notice."""
        self._prepare(controller, fake_renderer, write_jpeg(tmp_path / "photo.jpg"))
        fake_images.create_error = ServiceUnavailable("down", service="images")

        assert await controller.upload() is None
        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.SERVICE_UNAVAILABLE


class TestRefresh:
    """Fetching the image list."""

    @pytest.mark.asyncio
    async def test_loaded(
        self, controller: GlobeController, store: GeoPointStore, fake_images: Any
    ) -> None:
        """Test located records replace the store contents."""
        fake_images.records = [_record("a", 10.0, 10.0), _record("b", 20.0, 20.0)]

        assert await controller.refresh() is FetchStatus.LOADED

        assert [p.id for p in store.all()] == ["a", "b"]
        assert controller.last_notice is not None
        assert controller.last_notice.message == "Loaded 2 images"

    @pytest.mark.asyncio
    async def test_skips_unlocated_and_invalid(
        self, controller: GlobeController, store: GeoPointStore, fake_images: Any
    ) -> None:
        """Test records without or with impossible coordinates are dropped."""
        fake_images.records = [
            _record("ok", 10.0, 10.0),
            _record("nowhere", None, None),
            _record("bad", 95.0, 10.0),
        ]

        assert await controller.refresh() is FetchStatus.LOADED

        assert [p.id for p in store.all()] == ["ok"]
        assert controller.last_notice is not None
        assert "1 without location" in controller.last_notice.message
        assert "1 invalid" in controller.last_notice.message

    @pytest.mark.asyncio
    async def test_empty_is_not_failure(
        self, controller: GlobeController, fake_images: Any
    ) -> None:
        """Test an empty list is EMPTY with a warning, not FAILED."""
        assert await controller.refresh() is FetchStatus.EMPTY
        notice = controller.last_notice
        assert notice is not None
        assert notice.level is NoticeLevel.WARNING
        assert notice.code is NoticeCode.IMAGES_EMPTY

    @pytest.mark.asyncio
    async def test_failure(
        self, controller: GlobeController, store: GeoPointStore,
        fake_images: Any, scenario_points: list[GeoPoint],
    ) -> None:
        """Test an unreachable server is FAILED and keeps current points."""
        store.replace_all(scenario_points)
        fake_images.list_error = ServiceUnavailable("down", service="images")

        assert await controller.refresh() is FetchStatus.FAILED

        assert len(store) == 3
        notice = controller.last_notice
        assert notice is not None
        assert notice.level is NoticeLevel.ERROR
        assert notice.code is NoticeCode.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_fetch_discarded_after_clear(
        self, controller: GlobeController, store: GeoPointStore, fake_images: Any
    ) -> None:
        """Test a fetch completing after clear() does not repopulate."""
        fake_images.records = [_record("a", 10.0, 10.0)]
        fake_images.gate = asyncio.Event()

        task = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0)
        assert controller.fetch_status is FetchStatus.LOADING

        controller.clear()
        fake_images.gate.set()
        await task

        assert len(store) == 0
        assert controller.fetch_status is FetchStatus.IDLE

    @pytest.mark.asyncio
    async def test_older_fetch_discarded(
        self, controller: GlobeController, store: GeoPointStore, fake_images: Any
    ) -> None:
        """Test a slow earlier fetch cannot overwrite a newer one."""
        fake_images.records = [_record("old", 10.0, 10.0)]
        gate = asyncio.Event()
        fake_images.gate = gate

        slow = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0)

        fake_images.gate = None
        fake_images.records = [_record("new", 20.0, 20.0)]
        assert await controller.refresh() is FetchStatus.LOADED

        gate.set()
        await slow

        assert [p.id for p in store.all()] == ["new"]
        assert controller.fetch_status is FetchStatus.LOADED


class TestClear:
    """Clearing markers and session state."""

    @pytest.mark.asyncio
    async def test_clear(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, fake_images: Any,
    ) -> None:
        """Test clear() removes points, markers and the pending location."""
        fake_images.records = [_record("a", 10.0, 10.0)]
        await controller.refresh()
        controller.render_frame()
        fake_renderer.globe_at[CLICK.to_tuple()] = LatLon(latitude=1.0, longitude=1.0)
        controller.secondary_pick(CLICK)

        controller.clear()

        assert len(store) == 0
        assert fake_renderer.markers == {}
        assert fake_renderer.remove_all_calls == 1
        assert controller.pending_location is None
        assert controller.fetch_status is FetchStatus.IDLE
        assert controller.cluster_cache.clusters() == []
        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.MARKERS_CLEARED

    @pytest.mark.asyncio
    async def test_redraws_after_clear(
        self, controller: GlobeController, fake_renderer: Any, fake_images: Any
    ) -> None:
        """Test markers are drawn again after clear() and a new fetch."""
        fake_images.records = [_record("a", 10.0, 10.0)]
        await controller.refresh()
        controller.render_frame()
        controller.clear()

        await controller.refresh()
        controller.render_frame()
        assert "cluster:cluster-0" in fake_renderer.markers
        assert "point:a" in fake_renderer.markers


class TestSearch:
    """Address search."""

    @pytest.mark.asyncio
    async def test_found(
        self, controller: GlobeController, fake_renderer: Any,
        test_settings: Settings,
    ) -> None:
        """Test a match flies the camera there."""
        result = await controller.search("Paris")

        assert result is not None
        (position, altitude), = fake_renderer.flights
        assert position == LatLon(latitude=48.8566, longitude=2.3522)
        assert altitude == test_settings.FLY_TO_ALTITUDE_M
        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.LOCATION_FOUND
        assert controller.last_notice.message == "Paris, France"

    @pytest.mark.asyncio
    async def test_not_found(
        self, controller: GlobeController, fake_renderer: Any
    ) -> None:
        """Test no match warns and leaves the camera alone."""
        assert await controller.search("Atlantis") is None
        assert fake_renderer.flights == []
        notice = controller.last_notice
        assert notice is not None
        assert notice.level is NoticeLevel.WARNING
        assert notice.code is NoticeCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unavailable(
        self, controller: GlobeController, fake_geocoder: Any
    ) -> None:
        """Test geocoder failures become an error notice."""
        fake_geocoder.error = ServiceUnavailable("down", service="geocoder")
        assert await controller.search("Paris") is None
        assert controller.last_notice is not None
        assert controller.last_notice.code is NoticeCode.SERVICE_UNAVAILABLE


class TestRenderFrame:
    """Per-frame evaluation through the controller."""

    def test_zoomed_out_frame(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, scenario_points: list[GeoPoint],
    ) -> None:
        """Test a high camera shows aggregates and hides members."""
        store.replace_all(scenario_points)

        frame = controller.render_frame()

        assert frame.zoomed_out
        assert fake_renderer.markers["cluster:cluster-0"].visible
        assert fake_renderer.markers["cluster:cluster-0"].label == "2"
        assert not fake_renderer.markers["point:a"].visible

    def test_unchanged_frame_sends_nothing(
        self, controller: GlobeController, store: GeoPointStore,
        fake_renderer: Any, scenario_points: list[GeoPoint],
    ) -> None:
        """Test repeated frames with no change issue no marker updates."""
        store.replace_all(scenario_points)
        controller.render_frame()
        calls = fake_renderer.set_calls
        controller.render_frame()
        assert fake_renderer.set_calls == calls

    def test_notices_drain(self, controller: GlobeController) -> None:
        """Test drain_notices() empties the notice queue."""
        controller.clear()
        drained = controller.drain_notices()
        assert [n.code for n in drained] == [NoticeCode.MARKERS_CLEARED]
        assert controller.notices == ()
