"""Core algorithms for GLOBEMARK.

This package contains the clustering and per-frame visibility engine.

Public API:
    - GreedyClusterer: Single-pass first-fit distance-threshold clustering.
    - Cluster: Frozen result of one clustering pass.
    - ClusterCache: Lazily re-clusters a GeoPointStore after it changes.
    - ClustererProtocol: Protocol for dependency injection.
    - VisibilityEvaluator: Aggregate-vs-members and occlusion decisions.
    - VisibilityDecision / FrameVisibility: Per-frame outputs.
"""

from globemark.core.clusterer import (
    Cluster,
    ClusterCache,
    ClustererProtocol,
    GreedyClusterer,
)
from globemark.core.visibility import (
    FrameVisibility,
    PositionResolver,
    VisibilityDecision,
    VisibilityEvaluator,
    front_facing_mask,
    is_front_facing,
)

__all__ = [
    "Cluster",
    "ClusterCache",
    "ClustererProtocol",
    "FrameVisibility",
    "GreedyClusterer",
    "PositionResolver",
    "VisibilityDecision",
    "VisibilityEvaluator",
    "front_facing_mask",
    "is_front_facing",
]
