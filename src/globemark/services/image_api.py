"""HTTP client for the image record API.

Endpoints:
- GET  /images  -> ``{"images": [...]}`` or a bare list; 404 when empty
- POST /upload  -> ``{"image": {...}}`` with body ``{url, location}``
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from globemark.config import Settings, settings
from globemark.geometry import CoordinateValidator, InvalidCoordinate
from globemark.services.exceptions import ServiceUnavailable, ValidationError
from globemark.services.http import HttpService
from globemark.services.protocol import CreateImageRequest, ImageRecord

logger = logging.getLogger(__name__)

SERVICE_NAME = "images"

_NOT_FOUND = 404
_BAD_REQUEST = 400


class HttpImageService:
    """ImageService backed by the REST image API.

    Usage:
        async with HttpImageService() as images:
            records = await images.list_images()
    """

    def __init__(
        self,
        settings: Settings = settings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Application settings (IMAGE_API_URL, HTTP_*).
            client: Optional shared httpx client.
        """
        self._http = HttpService(
            service_name=SERVICE_NAME,
            base_url=settings.IMAGE_API_URL,
            settings=settings,
            client=client,
        )
        self._validator = CoordinateValidator()

    @property
    def http(self) -> HttpService:
        """Underlying transport (circuit breaker, client)."""
        return self._http

    async def list_images(self) -> list[ImageRecord]:
        """Fetch every image record.

        A 404 answer means the server has no images and yields an empty list.

        Raises:
            ServiceUnavailable: On transport failure, 5xx, other 4xx, or an
                undecodable body.
        """
        response = await self._http.request("GET", self._http.url("/images"))

        if response.status_code == _NOT_FOUND:
            logger.info("Image API reports no images")
            return []
        if response.is_error:
            raise ServiceUnavailable(
                f"Image API rejected listing with HTTP {response.status_code}",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        body = self._http.json(response)
        raw_records = body.get("images", []) if isinstance(body, dict) else body
        if not isinstance(raw_records, list):
            raise ServiceUnavailable(
                "Image API returned an unexpected listing shape",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        records = [self._parse_record(raw) for raw in raw_records]
        logger.debug("Fetched %d image records", len(records))
        return records

    async def create_image(self, request: CreateImageRequest) -> ImageRecord:
        """Register a hosted image at a location.

        Missing fields and out-of-range coordinates are rejected before any
        request is sent.

        Raises:
            ValidationError: If a field is missing or invalid, or on HTTP 400.
            ServiceUnavailable: On transport failure, 5xx, or a bad body.
        """
        missing = request.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                fields=missing,
                service=SERVICE_NAME,
            )
        assert request.latitude is not None and request.longitude is not None
        try:
            self._validator.validate(request.latitude, request.longitude)
        except InvalidCoordinate as e:
            raise ValidationError(
                str(e), fields=("latitude", "longitude"), service=SERVICE_NAME
            ) from e

        response = await self._http.request(
            "POST", self._http.url("/upload"), json=request.to_payload()
        )

        if response.status_code == _BAD_REQUEST:
            raise ValidationError(
                _error_message(response, default="Image API rejected the upload"),
                service=SERVICE_NAME,
                status_code=response.status_code,
            )
        if response.is_error:
            raise ServiceUnavailable(
                f"Image API rejected upload with HTTP {response.status_code}",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        body = self._http.json(response)
        raw = body.get("image", body) if isinstance(body, dict) else body
        record = self._parse_record(raw)
        logger.info("Registered image %s", record.id or record.url)
        return record

    def _parse_record(self, raw: Any) -> ImageRecord:
        try:
            return ImageRecord.model_validate(raw)
        except PydanticValidationError as e:
            raise ServiceUnavailable(
                f"Image API returned a malformed record: {e.error_count()} error(s)",
                service=SERVICE_NAME,
                cause=e,
            ) from e

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> HttpImageService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _error_message(response: httpx.Response, *, default: str) -> str:
    """Best-effort extraction of ``{"error": ...}`` from a response body."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return default
