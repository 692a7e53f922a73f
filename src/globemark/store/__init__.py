"""GeoPoint storage for GLOBEMARK."""

from globemark.store.points import GeoPointStore

__all__ = ["GeoPointStore"]
