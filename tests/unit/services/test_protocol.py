"""Tests for globemark.services.protocol module."""

from __future__ import annotations

import math
from unittest.mock import MagicMock

import pytest

from globemark.geometry import CoordinateValidator
from globemark.services import ImageRecord, located_points


def _record(image_id: str, lat: float | None, lon: float | None) -> ImageRecord:
    return ImageRecord(
        _id=image_id, url=f"https://cdn.test/{image_id}.jpg", latitude=lat, longitude=lon
    )


class TestLocatedPoints:
    """Tests for filtering server records into drawable points."""

    def test_mixed_listing(self) -> None:
        """Test unlocated and out-of-range records are counted separately."""
        result = located_points(
            [
                _record("a", 10.0, 10.0),
                _record("b", 95.0, 10.0),
                _record("c", None, None),
                _record("d", 0.0, math.nan),
                _record("e", -33.9, 151.2),
            ]
        )
        assert [p.id for p in result.points] == ["a", "e"]
        assert result.skipped == 1
        assert result.rejected == 2

    def test_rejection_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a rejected record names the image in a warning."""
        with caplog.at_level("WARNING"):
            located_points([_record("bad", 10.0, 200.0)])
        assert "bad" in caplog.text

    def test_custom_validator(self) -> None:
        """Test a supplied validator decides which records are kept."""
        validator = MagicMock(spec=CoordinateValidator)
        validator.is_valid.return_value = False
        result = located_points([_record("a", 10.0, 10.0)], validator)
        validator.is_valid.assert_called_once_with(10.0, 10.0)
        assert result.points == []
        assert result.rejected == 1
