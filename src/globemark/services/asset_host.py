"""Unsigned image upload to a Cloudinary-style asset host.

The upload is a multipart POST of ``file`` plus ``upload_preset`` to
``{ASSET_HOST_URL}/{cloud_name}/image/upload``; the hosted URL comes back as
``secure_url``.
"""

from __future__ import annotations

import logging
import mimetypes

import httpx

from globemark.config import Settings, settings
from globemark.services.exceptions import ServiceUnavailable, UploadError
from globemark.services.http import HttpService

logger = logging.getLogger(__name__)

SERVICE_NAME = "assets"


class CloudinaryAssetHost:
    """AssetHost for unsigned Cloudinary uploads.

    Configuration is resolved lazily so that constructing the client never
    fails; a missing cloud name or preset raises ConfigError on upload.
    """

    def __init__(
        self,
        settings: Settings = settings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http = HttpService(
            service_name=SERVICE_NAME,
            base_url=settings.ASSET_HOST_URL,
            settings=settings,
            client=client,
        )

    @property
    def http(self) -> HttpService:
        return self._http

    async def upload_asset(self, data: bytes, filename: str) -> str:
        """Upload image bytes.

        Args:
            data: Raw image file content.
            filename: Original file name, used for the multipart part.

        Returns:
            The ``secure_url`` of the hosted image.

        Raises:
            ConfigError: If the asset host is not configured.
            UploadError: If the host rejects, fails, or answers without a URL.
        """
        config = self._settings.require_asset_host()
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        try:
            response = await self._http.request(
                "POST",
                config.upload_url,
                data={"upload_preset": config.upload_preset},
                files={"file": (filename, data, content_type)},
            )
        except ServiceUnavailable as e:
            raise UploadError(
                f"Upload of {filename} failed: {e.message}",
                service=SERVICE_NAME,
                status_code=e.status_code,
                cause=e,
            ) from e

        if response.is_error:
            raise UploadError(
                f"Asset host rejected {filename} with HTTP {response.status_code}",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UploadError(
                "Asset host returned an invalid JSON body",
                service=SERVICE_NAME,
                status_code=response.status_code,
                cause=e,
            ) from e

        url = body.get("secure_url") if isinstance(body, dict) else None
        if not isinstance(url, str) or not url:
            raise UploadError(
                "Asset host response has no secure_url",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        logger.info("Uploaded %s (%d bytes)", filename, len(data))
        return url

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> CloudinaryAssetHost:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
