"""External service clients for GLOBEMARK.

Key Components:
    - ImageService / HttpImageService: list and create image records
    - AssetHost / CloudinaryAssetHost: unsigned image upload
    - Geocoder / NominatimGeocoder: address search
    - ServiceError taxonomy and the per-service CircuitBreaker
"""

from globemark.services.asset_host import CloudinaryAssetHost
from globemark.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from globemark.services.exceptions import (
    CircuitBreakerOpenError,
    NotFound,
    ServiceError,
    ServiceUnavailable,
    UploadError,
    ValidationError,
)
from globemark.services.geocoder import NominatimGeocoder
from globemark.services.http import HttpService
from globemark.services.image_api import HttpImageService
from globemark.services.protocol import (
    AssetHost,
    CreateImageRequest,
    GeocodeResult,
    Geocoder,
    ImageRecord,
    ImageService,
    LocatedPoints,
    located_points,
)

__all__ = [
    "AssetHost",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpenError",
    "CircuitState",
    "CloudinaryAssetHost",
    "CreateImageRequest",
    "GeocodeResult",
    "Geocoder",
    "HttpImageService",
    "HttpService",
    "ImageRecord",
    "ImageService",
    "LocatedPoints",
    "NominatimGeocoder",
    "NotFound",
    "ServiceError",
    "ServiceUnavailable",
    "UploadError",
    "ValidationError",
    "located_points",
]
