"""Greedy marker clustering for GLOBEMARK.

This module groups located images into clusters with a single greedy pass.
Each point joins the first existing cluster whose centre lies within the
distance threshold; otherwise it starts a new cluster.

Algorithm:
    1. Start with an empty ordered list of clusters.
    2. For each point in input order, scan clusters in creation order and
       take the FIRST whose centre is strictly closer than threshold_km
       (haversine, R = 6371 km). This is first-fit, not nearest-fit.
    3. On a match, append the point and move the centre to the arithmetic
       mean of member latitudes and member longitudes.
    4. Otherwise open a new cluster centred on the point.

Invariant:
    Every input point lands in exactly one cluster, so
    sum(c.member_count for c in clusters) == len(points).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from globemark.geometry import CoordinateValidator, GeoPoint, haversine_km
from globemark.store import GeoPointStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cluster:
    """A group of nearby points, frozen after the clustering pass.

    Attributes:
        cluster_id: Identifier unique within one clustering pass.
        center_lat: Arithmetic mean latitude of the members.
        center_lon: Arithmetic mean longitude of the members.
        members: Member points in assignment order.
    """

    cluster_id: str
    center_lat: float
    center_lon: float
    members: tuple[GeoPoint, ...]

    @property
    def member_count(self) -> int:
        """Number of points in the cluster."""
        return len(self.members)

    @property
    def is_singleton(self) -> bool:
        """True for the degenerate one-point cluster."""
        return len(self.members) == 1

    @property
    def center(self) -> tuple[float, float]:
        """Return the centre as (latitude, longitude)."""
        return (self.center_lat, self.center_lon)


@dataclass
class _ClusterBuilder:
    """Mutable accumulator used only inside one clustering pass."""

    members: list[GeoPoint] = field(default_factory=list)
    lat_sum: float = 0.0
    lon_sum: float = 0.0

    @property
    def center_lat(self) -> float:
        return self.lat_sum / len(self.members)

    @property
    def center_lon(self) -> float:
        return self.lon_sum / len(self.members)

    def add(self, point: GeoPoint) -> None:
        self.members.append(point)
        self.lat_sum += point.latitude
        self.lon_sum += point.longitude

    def freeze(self, index: int) -> Cluster:
        return Cluster(
            cluster_id=f"cluster-{index}",
            center_lat=self.center_lat,
            center_lon=self.center_lon,
            members=tuple(self.members),
        )


class ClustererProtocol(Protocol):
    """Protocol defining the interface for clusterers.

    This protocol allows for dependency injection and alternative
    implementations (e.g., for testing).
    """

    def cluster(
        self,
        points: Sequence[GeoPoint],
        threshold_km: float,
    ) -> list[Cluster]:
        """Group points into clusters.

        Args:
            points: Points in processing order.
            threshold_km: Join distance in kilometres.

        Returns:
            Clusters in creation order.
        """
        ...


class GreedyClusterer:
    """Single-pass, first-fit, distance-threshold clusterer.

    Output is fully determined by the input order and the threshold.

    Example:
        >>> clusterer = GreedyClusterer()
        >>> clusters = clusterer.cluster(points, threshold_km=50.0)
        >>> [c.member_count for c in clusters]
        [2, 1]
    """

    def __init__(self, validator: CoordinateValidator | None = None) -> None:
        self._validator = validator or CoordinateValidator()

    def cluster(
        self,
        points: Sequence[GeoPoint],
        threshold_km: float,
    ) -> list[Cluster]:
        """Group points into clusters.

        Args:
            points: Points in processing order.
            threshold_km: A point joins a cluster only if its haversine
                distance to the cluster centre is strictly below this value.

        Returns:
            Clusters in creation order; empty for empty input.

        Raises:
            ValueError: If threshold_km is not positive.
            InvalidCoordinate: If any point is out of range. Validation runs
                over the whole input before clustering starts.
        """
        if threshold_km <= 0:
            raise ValueError(f"threshold_km must be positive, got {threshold_km}")

        validated = self._validator.validate_points(points)
        builders: list[_ClusterBuilder] = []

        for point in validated:
            target = self._first_fit(point, builders, threshold_km)
            if target is None:
                target = _ClusterBuilder()
                builders.append(target)
            target.add(point)

        clusters = [builder.freeze(i) for i, builder in enumerate(builders)]
        logger.debug(
            "Clustered %d points into %d clusters (threshold %.1f km)",
            len(validated),
            len(clusters),
            threshold_km,
        )
        return clusters

    def _first_fit(
        self,
        point: GeoPoint,
        builders: list[_ClusterBuilder],
        threshold_km: float,
    ) -> _ClusterBuilder | None:
        """Return the first cluster in creation order within threshold.

        Deliberately not the nearest: an earlier cluster wins even when a
        later one is closer.
        """
        for builder in builders:
            distance = haversine_km(
                point.latitude,
                point.longitude,
                builder.center_lat,
                builder.center_lon,
            )
            if distance < threshold_km:
                return builder
        return None


class ClusterCache:
    """Re-clusters a GeoPointStore lazily, on the first read after a change.

    The cache compares the store's generation counter with the generation it
    last clustered, so the (rare) clustering work happens outside the
    per-frame path.

    Usage:
        cache = ClusterCache(store, threshold_km=50.0)
        clusters = cache.clusters()  # recomputed only if the store changed
    """

    __slots__ = ("_clusterer", "_clusters", "_generation", "_store", "threshold_km")

    def __init__(
        self,
        store: GeoPointStore,
        *,
        threshold_km: float,
        clusterer: ClustererProtocol | None = None,
    ) -> None:
        self._store = store
        self._clusterer = clusterer or GreedyClusterer()
        self.threshold_km = threshold_km
        self._clusters: list[Cluster] = []
        self._generation: int | None = None

    @property
    def is_stale(self) -> bool:
        """True if the next read will re-cluster."""
        return self._generation != self._store.generation

    def clusters(self) -> list[Cluster]:
        """Return the clusters for the store's current contents."""
        generation, points = self._store.snapshot()
        if generation != self._generation:
            self._clusters = self._clusterer.cluster(points, self.threshold_km)
            self._generation = generation
        return list(self._clusters)

    def invalidate(self) -> None:
        """Force the next read to re-cluster."""
        self._generation = None
        self._clusters = []

    def cluster_by_id(self, cluster_id: str) -> Cluster | None:
        """Look up a cluster from the current pass by id."""
        for cluster in self.clusters():
            if cluster.cluster_id == cluster_id:
                return cluster
        return None
