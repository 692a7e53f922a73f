"""Renderer abstraction for GLOBEMARK.

The globe renderer is an external capability; this package defines the
protocol the core drives, a headless implementation, and the glue that
pushes per-frame visibility onto any renderer.

Key Components:
    - Renderer: Protocol for picking, camera snapshots and markers
    - HeadlessRenderer: In-memory renderer with a pinhole camera
    - MarkerSync: Applies FrameVisibility to a Renderer
    - Entity ids: cluster_entity_id, point_entity_id, parse_entity_id
"""

from globemark.renderer.headless import HeadlessRenderer
from globemark.renderer.protocol import Marker, MarkerStyle, Renderer
from globemark.renderer.sync import (
    PENDING_ENTITY_ID,
    EntityRef,
    MarkerSync,
    cluster_entity_id,
    parse_entity_id,
    point_entity_id,
)

__all__ = [
    "PENDING_ENTITY_ID",
    "EntityRef",
    "HeadlessRenderer",
    "Marker",
    "MarkerStyle",
    "MarkerSync",
    "Renderer",
    "cluster_entity_id",
    "parse_entity_id",
    "point_entity_id",
]
