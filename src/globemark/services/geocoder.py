"""Nominatim (OpenStreetMap) geocoder client.

Requests are rate-limited with aiolimiter (GEOCODER_RPS, 1/s by default per
the Nominatim usage policy) and carry an identifying User-Agent.
"""

from __future__ import annotations

import logging

import httpx
from aiolimiter import AsyncLimiter

from globemark.config import Settings, settings
from globemark.services.exceptions import NotFound, ServiceUnavailable
from globemark.services.http import HttpService
from globemark.services.protocol import GeocodeResult

logger = logging.getLogger(__name__)

SERVICE_NAME = "geocoder"


class NominatimGeocoder:
    """Geocoder backed by the Nominatim ``/search`` endpoint."""

    def __init__(
        self,
        settings: Settings = settings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._http = HttpService(
            service_name=SERVICE_NAME,
            base_url=settings.GEOCODER_URL,
            settings=settings,
            client=client,
            headers={"User-Agent": settings.GEOCODER_USER_AGENT},
        )
        self._user_agent = settings.GEOCODER_USER_AGENT
        self._limiter = AsyncLimiter(max_rate=settings.GEOCODER_RPS, time_period=1)

    @property
    def http(self) -> HttpService:
        return self._http

    async def geocode(self, text: str) -> GeocodeResult:
        """Resolve address text to the best-ranked match.

        Args:
            text: Free-form address.

        Returns:
            GeocodeResult of the first match.

        Raises:
            NotFound: If the text is blank or nothing matches.
            ServiceUnavailable: On transport failure, HTTP error, or a bad body.
        """
        query = text.strip()
        if not query:
            raise NotFound("Address is empty", service=SERVICE_NAME)

        params = {"q": query, "format": "json", "limit": 1}
        async with self._limiter:
            response = await self._http.request(
                "GET",
                self._http.url("/search"),
                params=params,
                headers={"User-Agent": self._user_agent},
            )

        if response.is_error:
            raise ServiceUnavailable(
                f"Geocoder failed with HTTP {response.status_code}",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        matches = self._http.json(response)
        if not isinstance(matches, list) or not matches:
            raise NotFound(f"Address not found: {query}", service=SERVICE_NAME)

        best = matches[0]
        try:
            result = GeocodeResult(
                latitude=float(best["lat"]),
                longitude=float(best["lon"]),
                display_name=best.get("display_name", query),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ServiceUnavailable(
                "Geocoder returned a malformed match",
                service=SERVICE_NAME,
                cause=e,
            ) from e

        logger.debug(
            "Geocoded %r -> (%.5f, %.5f)", query, result.latitude, result.longitude
        )
        return result

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> NominatimGeocoder:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
