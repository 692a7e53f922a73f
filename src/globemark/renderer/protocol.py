"""Renderer capability surface consumed by GLOBEMARK.

The globe renderer is an external, mutable resource. The core only talks to
it through this protocol, which keeps clustering and visibility testable
without any real rendering surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from globemark.geometry import CameraState, LatLon, ScreenPosition


class MarkerStyle(str, Enum):
    """Visual primitive used for a marker."""

    CLUSTER = "cluster"  # Aggregate marker labelled with its member count
    POINT = "point"  # Individual image marker
    PENDING = "pending"  # Provisional marker for the next upload


@dataclass(frozen=True)
class Marker:
    """A marker as last set on the renderer.

    Attributes:
        entity_id: Renderer entity identifier.
        position: Geodetic position on the globe surface.
        style: Visual primitive.
        visible: Whether the marker is drawn.
        label: Optional text (member count for aggregates).
    """

    entity_id: str
    position: LatLon
    style: MarkerStyle
    visible: bool
    label: str | None = None


class Renderer(Protocol):
    """Protocol defining the drawing/picking interface of a globe renderer.

    This protocol allows for dependency injection and testing with
    fake implementations.
    """

    def pick_entity_at(self, screen: ScreenPosition) -> str | None:
        """Return the id of the visible entity under ``screen``, if any."""
        ...

    def pick_globe_at(self, screen: ScreenPosition) -> LatLon | None:
        """Intersect the pick ray through ``screen`` with the globe.

        Returns:
            The geodetic intersection, or None if the ray misses the globe.
        """
        ...

    def current_camera_state(self) -> CameraState:
        """Return this frame's camera snapshot."""
        ...

    def set_marker(
        self,
        entity_id: str,
        position: LatLon,
        style: MarkerStyle,
        visible: bool,
        *,
        label: str | None = None,
    ) -> None:
        """Create or update a marker."""
        ...

    def remove_marker(self, entity_id: str) -> None:
        """Remove a marker; unknown ids are ignored."""
        ...

    def remove_all_markers(self) -> None:
        """Remove every marker."""
        ...

    def fly_to(self, position: LatLon, altitude: float | None = None) -> None:
        """Move the camera above ``position``.

        Args:
            position: Target position on the globe.
            altitude: Camera altitude in metres; None keeps the current one.
        """
        ...
