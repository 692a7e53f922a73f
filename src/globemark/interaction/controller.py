"""Interaction layer: translates user gestures into state changes.

GlobeController owns the session state a globe UI needs (selected image,
pending upload location, selected file, fetch status, notices) and
coordinates the store, the renderer and the external services.

Guarantees:
    - Service errors never escape; they become Notices.
    - render_frame() never awaits and never faults on stored points.
    - A fetch that completes after a newer fetch, a clear, or a store
      mutation is discarded (request token + store generation).
"""

from __future__ import annotations

import itertools
import logging
import uuid
from collections import deque
from contextlib import AbstractContextManager
from pathlib import Path

from globemark.config import ConfigError, Settings, settings
from globemark.core import (
    ClusterCache,
    ClustererProtocol,
    FrameVisibility,
    VisibilityEvaluator,
)
from globemark.geometry import CoordinateValidator, GeoPoint, LatLon, ScreenPosition
from globemark.interaction.notices import (
    FetchStatus,
    Notice,
    NoticeCode,
    NoticeLevel,
    PreconditionFailed,
)
from globemark.media import MediaError, SelectedImage, read_image
from globemark.renderer import (
    PENDING_ENTITY_ID,
    MarkerStyle,
    MarkerSync,
    Renderer,
    parse_entity_id,
)
from globemark.services import (
    AssetHost,
    CreateImageRequest,
    GeocodeResult,
    Geocoder,
    ImageRecord,
    ImageService,
    NotFound,
    ServiceError,
    UploadError,
    ValidationError,
    located_points,
)
from globemark.store import GeoPointStore
from globemark.utils.logging import request_scope

logger = logging.getLogger(__name__)

_MAX_NOTICES = 100


class GlobeController:
    """Session controller for one globe view.

    Usage:
        controller = GlobeController(store, renderer, images, assets, geocoder)
        await controller.refresh()
        controller.render_frame()
        controller.secondary_pick(ScreenPosition(x=640, y=360))
        controller.select_file("photo.jpg")
        await controller.upload()
    """

    def __init__(
        self,
        store: GeoPointStore,
        renderer: Renderer,
        image_service: ImageService,
        asset_host: AssetHost,
        geocoder: Geocoder,
        *,
        settings: Settings = settings,
        clusterer: ClustererProtocol | None = None,
        evaluator: VisibilityEvaluator | None = None,
        session_id: str | None = None,
    ) -> None:
        self._store = store
        self._renderer = renderer
        self._images = image_service
        self._assets = asset_host
        self._geocoder = geocoder
        self._settings = settings

        self._cache = ClusterCache(
            store, threshold_km=settings.CLUSTER_THRESHOLD_KM, clusterer=clusterer
        )
        self._evaluator = evaluator or VisibilityEvaluator()
        self._sync = MarkerSync(renderer)
        self._validator = CoordinateValidator()

        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._request_ids = itertools.count(1)
        self._fetch_token = 0
        self._fetch_status = FetchStatus.IDLE
        self._selected: GeoPoint | None = None
        self._pending_location: LatLon | None = None
        self._selected_file: SelectedImage | None = None
        self._notices: deque[Notice] = deque(maxlen=_MAX_NOTICES)

    # -- state ----------------------------------------------------------

    @property
    def selected(self) -> GeoPoint | None:
        """Image shown full-screen, if any."""
        return self._selected

    @property
    def pending_location(self) -> LatLon | None:
        """Location the next upload will be registered at."""
        return self._pending_location

    @property
    def selected_file(self) -> SelectedImage | None:
        """File chosen for the next upload."""
        return self._selected_file

    @property
    def fetch_status(self) -> FetchStatus:
        return self._fetch_status

    @property
    def notices(self) -> tuple[Notice, ...]:
        """Notices in emission order (most recent last)."""
        return tuple(self._notices)

    @property
    def last_notice(self) -> Notice | None:
        return self._notices[-1] if self._notices else None

    @property
    def cluster_cache(self) -> ClusterCache:
        return self._cache

    def drain_notices(self) -> list[Notice]:
        """Return and forget all pending notices."""
        drained = list(self._notices)
        self._notices.clear()
        return drained

    def _notify(self, level: NoticeLevel, code: NoticeCode, message: str) -> Notice:
        notice = Notice(level=level, code=code, message=message)
        self._notices.append(notice)
        log_level = {
            NoticeLevel.INFO: logging.INFO,
            NoticeLevel.WARNING: logging.WARNING,
            NoticeLevel.ERROR: logging.ERROR,
        }[level]
        logger.log(log_level, "[%s] %s", code.value, message)
        return notice

    def _request_scope(self) -> AbstractContextManager[int]:
        return request_scope(self.session_id, next(self._request_ids))

    # -- picking --------------------------------------------------------

    def primary_pick(self, screen: ScreenPosition) -> GeoPoint | None:
        """Handle a primary click.

        A point marker (or a single-member aggregate) selects its image. A
        multi-member aggregate flies the camera to the cluster centre, low
        enough for the cluster to split. Misses are ignored.

        Returns:
            The newly selected GeoPoint, or None.
        """
        entity_id = self._renderer.pick_entity_at(screen)
        if entity_id is None:
            return None
        ref = parse_entity_id(entity_id)
        if ref is None or ref.kind == "pending":
            return None

        point: GeoPoint | None = None
        if ref.kind == "point":
            point = self._store.find(ref.key)
        else:
            cluster = self._cache.cluster_by_id(ref.key)
            if cluster is None:
                return None
            if cluster.is_singleton:
                point = cluster.members[0]
            else:
                logger.debug(
                    "Zooming into %s (%d members)",
                    cluster.cluster_id,
                    cluster.member_count,
                )
                self._renderer.fly_to(
                    LatLon(latitude=cluster.center_lat, longitude=cluster.center_lon),
                    altitude=self._settings.FLY_TO_ALTITUDE_M,
                )
                return None

        if point is None or not point.url:
            return None
        self._selected = point
        return point

    def close_selection(self) -> None:
        """Dismiss the full-screen image."""
        self._selected = None

    def secondary_pick(self, screen: ScreenPosition) -> LatLon | None:
        """Handle a secondary click: set the pending upload location.

        Returns:
            The picked location, or None if the click missed the globe.
        """
        hit = self._renderer.pick_globe_at(screen)
        if hit is None:
            return None
        self._set_pending(hit)
        return hit

    def _set_pending(self, location: LatLon) -> None:
        self._pending_location = location
        self._renderer.set_marker(
            PENDING_ENTITY_ID, location, MarkerStyle.PENDING, True
        )
        self._notify(
            NoticeLevel.INFO,
            NoticeCode.PENDING_LOCATION_SET,
            f"Location set at ({location.latitude:.4f}, {location.longitude:.4f})",
        )

    def _clear_pending(self) -> None:
        if self._pending_location is not None:
            self._renderer.remove_marker(PENDING_ENTITY_ID)
        self._pending_location = None

    # -- upload ---------------------------------------------------------

    def select_file(self, path: str | Path) -> SelectedImage | None:
        """Choose the file for the next upload.

        An EXIF GPS position becomes the pending location unless one was
        already picked on the globe.
        """
        try:
            image = read_image(path)
        except MediaError as e:
            self._notify(NoticeLevel.ERROR, NoticeCode.VALIDATION_ERROR, str(e))
            return None

        self._selected_file = image
        if image.gps is not None and self._pending_location is None:
            self._set_pending(image.gps)
        return image

    def _require_upload_inputs(self) -> tuple[SelectedImage, LatLon]:
        missing: list[str] = []
        if self._selected_file is None:
            missing.append("file")
        if self._pending_location is None:
            missing.append("location")
        if self._selected_file is None or self._pending_location is None:
            raise PreconditionFailed(
                f"Select a {' and a '.join(missing)} before uploading",
                missing=tuple(missing),
            )
        return self._selected_file, self._pending_location

    async def upload(self) -> GeoPoint | None:
        """Upload the selected file at the pending location.

        Nothing is sent unless both a file and a location are set. On
        success the point is added to the store and the image list is
        refreshed. The pending location and file are cleared only if the
        user has not replaced them while the upload was in flight.

        Returns:
            The stored GeoPoint, or None if the upload did not happen.
        """
        try:
            image, location = self._require_upload_inputs()
        except PreconditionFailed as e:
            self._notify(NoticeLevel.WARNING, NoticeCode.PRECONDITION_FAILED, str(e))
            return None

        with self._request_scope() as request_id:
            logger.info("Uploading %s (request %d)", image.filename, request_id)
            record = await self._send_upload(image, location)
        if record is None:
            return None

        point = GeoPoint(
            id=record.id or uuid.uuid4().hex,
            url=record.url,
            latitude=location.latitude,
            longitude=location.longitude,
        )
        self._store.add(point)
        if self._pending_location == location:
            self._clear_pending()
        if self._selected_file is image:
            self._selected_file = None
        self._notify(
            NoticeLevel.INFO, NoticeCode.UPLOAD_COMPLETE, "Image uploaded successfully"
        )

        await self.refresh()
        return point

    async def _send_upload(
        self, image: SelectedImage, location: LatLon
    ) -> ImageRecord | None:
        try:
            url = await self._assets.upload_asset(image.data, image.filename)
        except (UploadError, ConfigError) as e:
            self._notify(
                NoticeLevel.ERROR, NoticeCode.UPLOAD_ERROR, f"Upload failed: {e}"
            )
            return None
        except ServiceError as e:
            self._notify(NoticeLevel.ERROR, NoticeCode.SERVICE_UNAVAILABLE, e.message)
            return None

        request = CreateImageRequest(
            url=url, latitude=location.latitude, longitude=location.longitude
        )
        try:
            return await self._images.create_image(request)
        except ValidationError as e:
            self._notify(NoticeLevel.ERROR, NoticeCode.VALIDATION_ERROR, e.message)
        except ServiceError as e:
            self._notify(NoticeLevel.ERROR, NoticeCode.SERVICE_UNAVAILABLE, e.message)
        return None

    # -- fetch / clear --------------------------------------------------

    async def refresh(self) -> FetchStatus:
        """Fetch the image list and replace the store contents.

        Returns:
            The resulting status. A superseded fetch leaves state untouched
            and returns the current status.
        """
        self._fetch_token += 1
        token = self._fetch_token
        generation = self._store.generation
        self._fetch_status = FetchStatus.LOADING

        with self._request_scope():
            try:
                records = await self._images.list_images()
            except ServiceError as e:
                if self._is_superseded(token, generation):
                    return self._fetch_status
                self._fetch_status = FetchStatus.FAILED
                self._notify(
                    NoticeLevel.ERROR,
                    NoticeCode.SERVICE_UNAVAILABLE,
                    f"Could not load images: {e.message}",
                )
                return self._fetch_status

            if self._is_superseded(token, generation):
                return self._fetch_status

            located = located_points(records, self._validator)
            self._store.replace_all(located.points)

            if not located.points:
                self._fetch_status = FetchStatus.EMPTY
                self._notify(
                    NoticeLevel.WARNING, NoticeCode.IMAGES_EMPTY, "No images found"
                )
            else:
                self._fetch_status = FetchStatus.LOADED
                message = f"Loaded {len(located.points)} images"
                if located.skipped or located.rejected:
                    message += (
                        f" ({located.skipped} without location,"
                        f" {located.rejected} invalid)"
                    )
                self._notify(NoticeLevel.INFO, NoticeCode.IMAGES_LOADED, message)
            return self._fetch_status

    def _is_superseded(self, token: int, generation: int) -> bool:
        if token != self._fetch_token or generation != self._store.generation:
            logger.debug("Discarding stale fetch %d", token)
            return True
        return False

    def clear(self) -> None:
        """Remove every marker and forget all session state.

        An in-flight fetch is discarded when it completes.
        """
        self._fetch_token += 1
        self._store.clear()
        self._cache.invalidate()
        self._renderer.remove_all_markers()
        self._sync.reset()
        self._selected = None
        self._pending_location = None
        self._selected_file = None
        self._fetch_status = FetchStatus.IDLE
        self._notify(NoticeLevel.INFO, NoticeCode.MARKERS_CLEARED, "Markers cleared")

    # -- search ---------------------------------------------------------

    async def search(self, address: str) -> GeocodeResult | None:
        """Geocode ``address`` and fly the camera there."""
        with self._request_scope():
            try:
                result = await self._geocoder.geocode(address)
            except NotFound as e:
                self._notify(NoticeLevel.WARNING, NoticeCode.NOT_FOUND, e.message)
                return None
            except ServiceError as e:
                self._notify(
                    NoticeLevel.ERROR, NoticeCode.SERVICE_UNAVAILABLE, e.message
                )
                return None

            self._renderer.fly_to(
                LatLon(latitude=result.latitude, longitude=result.longitude),
                altitude=self._settings.FLY_TO_ALTITUDE_M,
            )
            self._notify(
                NoticeLevel.INFO,
                NoticeCode.LOCATION_FOUND,
                result.display_name or address,
            )
            return result

    # -- frame ----------------------------------------------------------

    def render_frame(self) -> FrameVisibility:
        """Evaluate and apply visibility for the current camera."""
        clusters = self._cache.clusters()
        camera = self._renderer.current_camera_state()
        frame = self._evaluator.evaluate(
            clusters, camera, self._settings.ALTITUDE_THRESHOLD_M
        )
        self._sync.apply(clusters, frame)
        return frame
