"""Reading selected image files for upload.

A selected file must decode as an image (Pillow). When the image carries
EXIF GPS tags, its position is extracted so it can stand in for a pending
location picked on the globe.

EXIF GPS stores each coordinate as three rationals (degrees, minutes,
seconds) plus a hemisphere reference:

    decimal = degrees + minutes / 60 + seconds / 3600, negated for S or W
"""

from __future__ import annotations

import io
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import GPS, IFD

from globemark.geometry import LatLon

logger = logging.getLogger(__name__)

_NEGATIVE_REFS = frozenset({"S", "W"})


class MediaError(ValueError):
    """Raised when a selected file cannot be read or is not an image."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


@dataclass(frozen=True)
class SelectedImage:
    """A file chosen for upload.

    Attributes:
        path: Source path.
        data: Raw file bytes, uploaded unchanged.
        image_format: Pillow format name (e.g. "JPEG").
        width: Pixel width.
        height: Pixel height.
        gps: EXIF GPS position, if present and valid.
    """

    path: Path
    data: bytes
    image_format: str
    width: int
    height: int
    gps: LatLon | None = None

    @property
    def filename(self) -> str:
        return self.path.name


def dms_to_decimal(dms: Sequence[float], ref: str | bytes | None) -> float:
    """Convert an EXIF degrees/minutes/seconds triple to decimal degrees.

    Args:
        dms: (degrees, minutes, seconds), each rational-like.
        ref: Hemisphere reference ("N", "S", "E", "W").

    Raises:
        ValueError: If the triple is malformed.
    """
    if len(dms) != 3:
        raise ValueError(f"Expected 3 DMS components, got {len(dms)}")
    degrees, minutes, seconds = (float(v) for v in dms)
    value = degrees + minutes / 60.0 + seconds / 3600.0
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref and ref.strip().upper() in _NEGATIVE_REFS:
        value = -value
    return value


def extract_gps(image: Image.Image) -> LatLon | None:
    """Return the EXIF GPS position of ``image``, or None if absent/invalid."""
    gps_ifd = image.getexif().get_ifd(IFD.GPSInfo)
    if not gps_ifd:
        return None

    lat_dms = gps_ifd.get(GPS.GPSLatitude)
    lon_dms = gps_ifd.get(GPS.GPSLongitude)
    if lat_dms is None or lon_dms is None:
        return None

    try:
        latitude = dms_to_decimal(lat_dms, gps_ifd.get(GPS.GPSLatitudeRef))
        longitude = dms_to_decimal(lon_dms, gps_ifd.get(GPS.GPSLongitudeRef))
    except (TypeError, ValueError, ZeroDivisionError) as e:
        logger.warning("Ignoring malformed EXIF GPS: %s", e)
        return None

    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        logger.warning("Ignoring out-of-range EXIF GPS (%s, %s)", latitude, longitude)
        return None
    return LatLon(latitude=latitude, longitude=longitude)


def read_image(path: str | Path) -> SelectedImage:
    """Read and validate an image file.

    Args:
        path: File to read.

    Returns:
        SelectedImage with the raw bytes and any EXIF GPS position.

    Raises:
        MediaError: If the file cannot be read or is not a decodable image.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise MediaError(f"Cannot read {path}: {e}", path=path) from e

    try:
        with Image.open(io.BytesIO(data)) as probe:
            probe.verify()
        # verify() leaves the image unusable; reopen for metadata
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format or "UNKNOWN"
            width, height = image.size
            gps = extract_gps(image)
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise MediaError(f"{path.name} is not a valid image: {e}", path=path) from e

    logger.debug(
        "Read %s (%s %dx%d, gps=%s)", path.name, image_format, width, height, gps
    )
    return SelectedImage(
        path=path,
        data=data,
        image_format=image_format,
        width=width,
        height=height,
        gps=gps,
    )
