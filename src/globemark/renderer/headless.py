"""Headless in-memory globe renderer.

Implements the Renderer protocol without a display: markers are kept in a
dict, and picking uses a pinhole camera hovering above a point and looking
straight down at the Earth's centre. Used by the CLI and tests.

Screen Conventions:
    - (0, 0) is the top-left pixel; the view centre is the nadir point.
    - Screen "up" points north (towards +z), except over the poles where
      the +x axis is used instead.
"""

from __future__ import annotations

import logging
import math

from globemark.geometry import (
    EARTH_RADIUS_M,
    CameraState,
    Cartesian3,
    LatLon,
    ScreenPosition,
    camera_above,
    cartesian_to_geodetic,
    geodetic_to_cartesian,
    ray_sphere_intersection,
)
from globemark.renderer.protocol import Marker, MarkerStyle

logger = logging.getLogger(__name__)

_DEFAULT_ALTITUDE_M = 20_000_000.0
_POLE_EPSILON = 1e-9


class HeadlessRenderer:
    """Renderer protocol implementation with a nadir-looking pinhole camera.

    Usage:
        renderer = HeadlessRenderer(width=1280, height=720)
        renderer.fly_to(LatLon(latitude=48.8, longitude=2.3), altitude=1e6)
        hit = renderer.pick_globe_at(ScreenPosition(x=640, y=360))
    """

    def __init__(
        self,
        *,
        width: int = 1280,
        height: int = 720,
        fov_degrees: float = 60.0,
        pick_radius_px: float = 16.0,
        target: LatLon | None = None,
        altitude: float = _DEFAULT_ALTITUDE_M,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")
        if not 0.0 < fov_degrees < 180.0:
            raise ValueError(f"fov_degrees must be in (0, 180), got {fov_degrees}")
        if altitude <= 0.0:
            raise ValueError(f"altitude must be positive, got {altitude}")
        self.width = width
        self.height = height
        self.pick_radius_px = pick_radius_px
        self._tan_half_fov = math.tan(math.radians(fov_degrees) / 2)
        self._target = target or LatLon(latitude=0.0, longitude=0.0)
        self._altitude = altitude
        self._markers: dict[str, Marker] = {}

    # -- camera ---------------------------------------------------------

    @property
    def target(self) -> LatLon:
        """Point on the globe directly below the camera."""
        return self._target

    def current_camera_state(self) -> CameraState:
        position = camera_above(
            self._target.latitude, self._target.longitude, self._altitude
        )
        return CameraState(position=position, altitude=self._altitude)

    def fly_to(self, position: LatLon, altitude: float | None = None) -> None:
        if altitude is not None:
            if altitude <= 0.0:
                raise ValueError(f"altitude must be positive, got {altitude}")
            self._altitude = altitude
        self._target = position
        logger.debug(
            "Camera moved to (%.4f, %.4f) at %.0f m",
            position.latitude,
            position.longitude,
            self._altitude,
        )

    def _basis(self) -> tuple[Cartesian3, Cartesian3, Cartesian3, Cartesian3]:
        """Return (eye, forward, right, up) for the current camera."""
        eye = self.current_camera_state().position
        forward = eye.scale(-1.0).normalized()
        world_up = Cartesian3(x=0.0, y=0.0, z=1.0)
        if forward.cross(world_up).magnitude < _POLE_EPSILON:
            world_up = Cartesian3(x=1.0, y=0.0, z=0.0)
        right = forward.cross(world_up).normalized()
        up = right.cross(forward)
        return eye, forward, right, up

    def _aspect(self) -> float:
        return self.width / self.height

    def ray_through(self, screen: ScreenPosition) -> tuple[Cartesian3, Cartesian3]:
        """Return (origin, direction) of the pick ray through a pixel."""
        eye, forward, right, up = self._basis()
        ndc_x = (2.0 * screen.x / self.width - 1.0) * self._tan_half_fov * self._aspect()
        ndc_y = (1.0 - 2.0 * screen.y / self.height) * self._tan_half_fov
        direction = forward + right.scale(ndc_x) + up.scale(ndc_y)
        return eye, direction

    def project(self, position: LatLon) -> ScreenPosition | None:
        """Project a surface position to pixels.

        Returns:
            Screen position, or None if the point is behind the camera.
        """
        eye, forward, right, up = self._basis()
        point = geodetic_to_cartesian(position.latitude, position.longitude)
        view = point - eye
        depth = view.dot(forward)
        if depth <= 0.0:
            return None
        x = view.dot(right) / depth
        y = view.dot(up) / depth
        sx = (x / (self._tan_half_fov * self._aspect()) + 1.0) * self.width / 2.0
        sy = (1.0 - y / self._tan_half_fov) * self.height / 2.0
        return ScreenPosition(x=sx, y=sy)

    # -- picking --------------------------------------------------------

    def pick_globe_at(self, screen: ScreenPosition) -> LatLon | None:
        origin, direction = self.ray_through(screen)
        hit = ray_sphere_intersection(origin, direction, radius=EARTH_RADIUS_M)
        if hit is None:
            return None
        latlon, _ = cartesian_to_geodetic(hit, radius=EARTH_RADIUS_M)
        return latlon

    def pick_entity_at(self, screen: ScreenPosition) -> str | None:
        eye = self.current_camera_state().position
        best_id: str | None = None
        best_key: tuple[float, float] | None = None
        for marker in self._markers.values():
            if not marker.visible:
                continue
            projected = self.project(marker.position)
            if projected is None:
                continue
            offset = math.hypot(projected.x - screen.x, projected.y - screen.y)
            if offset > self.pick_radius_px:
                continue
            # Closest to the pointer wins; ties go to the marker nearer the eye.
            point = geodetic_to_cartesian(
                marker.position.latitude, marker.position.longitude
            )
            key = (offset, (point - eye).magnitude)
            if best_key is None or key < best_key:
                best_key = key
                best_id = marker.entity_id
        return best_id

    # -- markers --------------------------------------------------------

    def set_marker(
        self,
        entity_id: str,
        position: LatLon,
        style: MarkerStyle,
        visible: bool,
        *,
        label: str | None = None,
    ) -> None:
        self._markers[entity_id] = Marker(
            entity_id=entity_id,
            position=position,
            style=style,
            visible=visible,
            label=label,
        )

    def remove_marker(self, entity_id: str) -> None:
        self._markers.pop(entity_id, None)

    def remove_all_markers(self) -> None:
        self._markers.clear()

    @property
    def markers(self) -> dict[str, Marker]:
        """Copy of every marker currently set."""
        return dict(self._markers)

    def visible_markers(self) -> list[Marker]:
        """Markers currently drawn."""
        return [m for m in self._markers.values() if m.visible]
