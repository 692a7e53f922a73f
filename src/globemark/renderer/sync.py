"""Apply per-frame visibility decisions to a renderer.

Entity ids encode what a renderer entity stands for, so a pick can be
mapped back to the originating cluster or image:

    cluster:<cluster_id>   aggregate marker of a cluster
    point:<point_id>       individual image marker
    pending                provisional marker of the next upload
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Literal, NamedTuple

from globemark.core import Cluster, FrameVisibility
from globemark.geometry import GeoPoint, LatLon
from globemark.renderer.protocol import MarkerStyle, Renderer

logger = logging.getLogger(__name__)

PENDING_ENTITY_ID = "pending"
_CLUSTER_PREFIX = "cluster:"
_POINT_PREFIX = "point:"


class EntityRef(NamedTuple):
    """Decoded renderer entity id."""

    kind: Literal["cluster", "point", "pending"]
    key: str


def cluster_entity_id(cluster: Cluster) -> str:
    """Entity id of a cluster's aggregate marker."""
    return f"{_CLUSTER_PREFIX}{cluster.cluster_id}"


def point_entity_id(point: GeoPoint) -> str:
    """Entity id of an individual image marker."""
    return f"{_POINT_PREFIX}{point.id}"


def parse_entity_id(entity_id: str) -> EntityRef | None:
    """Decode an entity id; None for entities GLOBEMARK did not create."""
    if entity_id == PENDING_ENTITY_ID:
        return EntityRef(kind="pending", key="")
    if entity_id.startswith(_CLUSTER_PREFIX):
        return EntityRef(kind="cluster", key=entity_id[len(_CLUSTER_PREFIX) :])
    if entity_id.startswith(_POINT_PREFIX):
        return EntityRef(kind="point", key=entity_id[len(_POINT_PREFIX) :])
    return None


class _MarkerState(NamedTuple):
    position: LatLon
    style: MarkerStyle
    visible: bool
    label: str | None


class MarkerSync:
    """Pushes a FrameVisibility onto a Renderer.

    Only markers whose state changed since the previous frame are sent, and
    entities from an earlier clustering pass that no longer exist are
    removed.
    """

    __slots__ = ("_drawn", "_renderer")

    def __init__(self, renderer: Renderer) -> None:
        self._renderer = renderer
        self._drawn: dict[str, _MarkerState] = {}

    def apply(self, clusters: Sequence[Cluster], frame: FrameVisibility) -> int:
        """Apply one frame.

        Args:
            clusters: The clusters the frame was evaluated over.
            frame: Visibility decisions for those clusters.

        Returns:
            Number of set_marker/remove_marker calls issued.
        """
        wanted: dict[str, _MarkerState] = {}
        for cluster in clusters:
            decision = frame.get(cluster.cluster_id)
            if decision is None:
                continue
            wanted[cluster_entity_id(cluster)] = _MarkerState(
                position=LatLon(
                    latitude=cluster.center_lat, longitude=cluster.center_lon
                ),
                style=MarkerStyle.CLUSTER,
                visible=decision.aggregate_visible,
                label=str(cluster.member_count),
            )
            for member, visible in zip(
                cluster.members, decision.member_visible, strict=True
            ):
                wanted[point_entity_id(member)] = _MarkerState(
                    position=LatLon(
                        latitude=member.latitude, longitude=member.longitude
                    ),
                    style=MarkerStyle.POINT,
                    visible=visible,
                    label=None,
                )

        calls = 0
        for entity_id in [e for e in self._drawn if e not in wanted]:
            self._renderer.remove_marker(entity_id)
            del self._drawn[entity_id]
            calls += 1

        for entity_id, state in wanted.items():
            if self._drawn.get(entity_id) == state:
                continue
            self._renderer.set_marker(
                entity_id,
                state.position,
                state.style,
                state.visible,
                label=state.label,
            )
            self._drawn[entity_id] = state
            calls += 1

        if calls:
            logger.debug("Marker sync issued %d renderer calls", calls)
        return calls

    def reset(self) -> None:
        """Forget what was drawn (after the renderer was cleared)."""
        self._drawn.clear()
