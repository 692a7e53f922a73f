"""Per-frame marker visibility for GLOBEMARK.

For every cluster the evaluator makes two independent decisions and
composes them:

Aggregation:
    The camera is "zoomed out" when its altitude is strictly above the
    altitude threshold. Zoomed out shows the aggregate marker and hides the
    members; zoomed in hides the aggregate and evaluates every member.

Occlusion:
    A marker at surface position P is front-facing iff

        dot(normalize(P), normalize(camera - P)) > 0

    i.e. the camera lies on the outward side of the tangent plane at P.
    The boundary (dot == 0) is hidden. Back-facing markers are hidden
    regardless of the aggregation decision.

The evaluator is a pure function of its inputs: no drawing and no state
carried between frames. Markers whose position cannot be resolved this frame
(None, NaN, zero-length vectors) are treated as not visible.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt

from globemark.core.clusterer import Cluster
from globemark.geometry import CameraState, Cartesian3, geodetic_to_cartesian

PositionResolver = Callable[[float, float], Cartesian3 | None]


def _surface_position(latitude: float, longitude: float) -> Cartesian3 | None:
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    return geodetic_to_cartesian(latitude, longitude)


@dataclass(frozen=True)
class VisibilityDecision:
    """Visibility of one cluster's markers for one frame.

    Attributes:
        show_aggregate: Aggregation chose the aggregate marker.
        show_members: Aggregation chose the individual member markers.
        aggregate_visible: Aggregate marker is drawn (chosen and
            front-facing).
        member_visible: Per member, in member order: drawn (chosen and
            front-facing).
    """

    show_aggregate: bool
    show_members: bool
    aggregate_visible: bool
    member_visible: tuple[bool, ...]

    @property
    def visible_count(self) -> int:
        """Number of markers this cluster puts on screen."""
        return int(self.aggregate_visible) + sum(self.member_visible)


@dataclass(frozen=True)
class FrameVisibility(Mapping[str, VisibilityDecision]):
    """Visibility decisions for every cluster in one frame, keyed by id.

    Iteration follows cluster order. Frames compare by their decisions and zoom
    state. Like a dict they are unhashable.
    """

    decisions: dict[str, VisibilityDecision]
    zoomed_out: bool

    __hash__ = None  # type: ignore[assignment]

    def __getitem__(self, cluster_id: str) -> VisibilityDecision:
        return self.decisions[cluster_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self.decisions)

    def __len__(self) -> int:
        return len(self.decisions)

    @property
    def visible_count(self) -> int:
        """Total markers on screen this frame."""
        return sum(d.visible_count for d in self.decisions.values())


def front_facing_mask(
    positions: npt.NDArray[np.float64],
    camera_position: npt.NDArray[np.float64],
) -> npt.NDArray[np.bool_]:
    """Vectorized front-face test.

    Args:
        positions: (N, 3) surface positions; rows may contain NaN for
            markers whose position is unresolved.
        camera_position: (3,) camera position.

    Returns:
        (N,) boolean mask, True where the marker faces the camera.
    """
    if positions.shape[0] == 0:
        return np.zeros(0, dtype=bool)

    to_camera = camera_position[np.newaxis, :] - positions
    normal_len = np.linalg.norm(positions, axis=1)
    view_len = np.linalg.norm(to_camera, axis=1)
    raw_dot = np.einsum("ij,ij->i", positions, to_camera)

    with np.errstate(invalid="ignore", divide="ignore"):
        cosine = raw_dot / (normal_len * view_len)

    resolvable = (
        np.isfinite(positions).all(axis=1)
        & np.isfinite(camera_position).all()
        & (normal_len > 0.0)
        & (view_len > 0.0)
        & np.isfinite(cosine)
    )
    return resolvable & (cosine > 0.0)


def is_front_facing(position: Cartesian3 | None, camera_position: Cartesian3) -> bool:
    """Scalar form of :func:`front_facing_mask` for a single marker."""
    if position is None:
        return False
    mask = front_facing_mask(
        np.array([position.to_tuple()], dtype=np.float64),
        np.array(camera_position.to_tuple(), dtype=np.float64),
    )
    return bool(mask[0])


class VisibilityEvaluator:
    """Decides, per frame, which cluster and member markers are drawn.

    The camera snapshot is passed in on every call; nothing is read from
    ambient renderer state.

    Example:
        >>> evaluator = VisibilityEvaluator()
        >>> frame = evaluator.evaluate(clusters, camera, altitude_threshold=7e6)
        >>> frame["cluster-0"].show_aggregate
        True
    """

    __slots__ = ("_resolve",)

    def __init__(self, position_resolver: PositionResolver | None = None) -> None:
        """Initialize the evaluator.

        Args:
            position_resolver: Maps (latitude, longitude) to a cartesian
                surface position, or None when the position is unresolvable
                this frame. Defaults to the spherical globe transform.
        """
        self._resolve = position_resolver or _surface_position

    def evaluate(
        self,
        clusters: Sequence[Cluster],
        camera: CameraState,
        altitude_threshold: float,
    ) -> FrameVisibility:
        """Compute visibility for every cluster.

        Args:
            clusters: Clusters from the latest clustering pass.
            camera: Camera snapshot for this frame.
            altitude_threshold: Altitude above which clusters aggregate, in
                the same unit as camera.altitude.

        Returns:
            FrameVisibility keyed by cluster_id, in cluster order.
        """
        zoomed_out = camera.altitude > altitude_threshold
        camera_xyz = np.array(camera.position.to_tuple(), dtype=np.float64)

        # One batched front-face test: aggregates when zoomed out, members
        # otherwise.
        if zoomed_out:
            coords = [(c.center_lat, c.center_lon) for c in clusters]
        else:
            coords = [(m.latitude, m.longitude) for c in clusters for m in c.members]
        facing = front_facing_mask(self._resolve_all(coords), camera_xyz)

        decisions: dict[str, VisibilityDecision] = {}
        offset = 0
        for index, cluster in enumerate(clusters):
            if zoomed_out:
                decisions[cluster.cluster_id] = VisibilityDecision(
                    show_aggregate=True,
                    show_members=False,
                    aggregate_visible=bool(facing[index]),
                    member_visible=(False,) * cluster.member_count,
                )
            else:
                count = cluster.member_count
                decisions[cluster.cluster_id] = VisibilityDecision(
                    show_aggregate=False,
                    show_members=True,
                    aggregate_visible=False,
                    member_visible=tuple(
                        bool(v) for v in facing[offset : offset + count]
                    ),
                )
                offset += count

        return FrameVisibility(decisions=decisions, zoomed_out=zoomed_out)

    def _resolve_all(
        self, coords: list[tuple[float, float]]
    ) -> npt.NDArray[np.float64]:
        """Resolve (lat, lon) pairs to an (N, 3) array, NaN where unresolved."""
        out = np.full((len(coords), 3), np.nan, dtype=np.float64)
        for row, (lat, lon) in enumerate(coords):
            position = self._resolve(lat, lon)
            if position is not None:
                out[row] = position.to_tuple()
        return out


def summarize(frame: FrameVisibility) -> dict[str, Any]:
    """Compact, JSON-friendly summary of a frame (used by the CLI)."""
    return {
        "zoomed_out": frame.zoomed_out,
        "visible_markers": frame.visible_count,
        "clusters": {
            cluster_id: {
                "show_aggregate": d.show_aggregate,
                "show_members": d.show_members,
                "aggregate_visible": d.aggregate_visible,
                "member_visible": list(d.member_visible),
            }
            for cluster_id, d in frame.items()
        },
    }
