"""In-memory store for located images.

The store is pure data: it holds the current GeoPoints and a generation
counter that advances on every mutation. Consumers (the cluster cache, the
fetch bookkeeping in the controller) compare generations to tell whether the
contents changed since they last looked. The store never calls back into
them.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator

from globemark.geometry import CoordinateValidator, GeoPoint

logger = logging.getLogger(__name__)


class GeoPointStore:
    """Holds the current set of located images.

    All mutations are serialized through a single re-entrant lock so a host
    that mutates from several threads still hands the clusterer a consistent
    snapshot.

    Usage:
        store = GeoPointStore()
        store.replace_all(points)
        store.add(point)
        snapshot = store.all()
        store.clear()
    """

    __slots__ = ("_generation", "_lock", "_points", "_validator")

    def __init__(self, points: Iterable[GeoPoint] = ()) -> None:
        self._lock = threading.RLock()
        self._validator = CoordinateValidator()
        self._points: tuple[GeoPoint, ...] = ()
        self._generation = 0
        initial = tuple(points)
        if initial:
            self.replace_all(initial)

    @property
    def generation(self) -> int:
        """Mutation counter; changes whenever the contents change."""
        with self._lock:
            return self._generation

    def replace_all(self, points: Iterable[GeoPoint]) -> None:
        """Replace the whole point set.

        Every point is validated before the store is touched, so a bad
        point leaves the previous contents in place.

        Raises:
            InvalidCoordinate: If any point is out of range.
        """
        validated = tuple(self._validator.validate_points(points))
        with self._lock:
            self._points = validated
            self._generation += 1
            logger.debug(
                "Store replaced: %d points (generation %d)",
                len(validated),
                self._generation,
            )

    def add(self, point: GeoPoint) -> None:
        """Append one point.

        Raises:
            InvalidCoordinate: If the point is out of range.
        """
        self._validator.validate_point(point)
        with self._lock:
            self._points = (*self._points, point)
            self._generation += 1

    def clear(self) -> None:
        """Drop every point."""
        with self._lock:
            self._points = ()
            self._generation += 1
            logger.debug("Store cleared (generation %d)", self._generation)

    def all(self) -> tuple[GeoPoint, ...]:
        """Return an immutable snapshot of the current points, in order."""
        with self._lock:
            return self._points

    def snapshot(self) -> tuple[int, tuple[GeoPoint, ...]]:
        """Return (generation, points) read under one lock acquisition."""
        with self._lock:
            return self._generation, self._points

    def find(self, point_id: str) -> GeoPoint | None:
        """Look up a point by id."""
        for point in self.all():
            if point.id == point_id:
                return point
        return None

    def __len__(self) -> int:
        return len(self.all())

    def __iter__(self) -> Iterator[GeoPoint]:
        return iter(self.all())
