"""Shared httpx plumbing for GLOBEMARK service clients.

Every client sends requests through :class:`HttpService`, which provides:
- Retry of transport errors via tenacity (HTTP_MAX_ATTEMPTS, default 1)
- A per-service circuit breaker
- Mapping of transport errors and 5xx answers to ServiceUnavailable
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Self

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from globemark.config import Settings, settings
from globemark.services.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from globemark.services.exceptions import ServiceUnavailable

logger = logging.getLogger(__name__)

_SERVER_ERROR = 500


@dataclass
class HttpService:
    """Transport shared by the httpx-backed service clients.

    Each client owns one HttpService and sends through :meth:`request`. An
    ``httpx.AsyncClient`` may be injected (tests, connection sharing);
    otherwise one is created and owned by the service.
    """

    service_name: str
    base_url: str
    settings: Settings = field(default_factory=lambda: settings)
    client: httpx.AsyncClient | None = None
    headers: dict[str, str] = field(default_factory=dict)
    breaker_config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    # Internal state
    _owns_client: bool = field(default=False, init=False, repr=False)
    _circuit_breaker: CircuitBreaker = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
                headers=self.headers,
            )
            self._owns_client = True
        self._circuit_breaker = CircuitBreaker(
            service_name=self.service_name,
            config=self.breaker_config,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """The breaker guarding this service."""
        return self._circuit_breaker

    def url(self, path: str) -> str:
        """Join a path onto the service base URL."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retry and circuit breaking.

        Returns:
            The response for any status below 500; callers map 4xx.

        Raises:
            CircuitBreakerOpenError: If the circuit is open.
            ServiceUnavailable: On transport failure after retries or a 5xx.
        """
        assert self.client is not None
        self._circuit_breaker.check()
        start_time = time.perf_counter()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(1, self.settings.HTTP_MAX_ATTEMPTS)),
                wait=wait_random_exponential(min=0.5, max=10),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            self._circuit_breaker.record_failure()
            raise ServiceUnavailable(
                f"{self.service_name} unreachable: {e}",
                service=self.service_name,
                cause=e,
            ) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "%s %s -> %d (%.0f ms)",
            method,
            url,
            response.status_code,
            latency_ms,
            extra={"service": self.service_name},
        )

        if response.status_code >= _SERVER_ERROR:
            self._circuit_breaker.record_failure()
            raise ServiceUnavailable(
                f"{self.service_name} failed with HTTP {response.status_code}",
                service=self.service_name,
                status_code=response.status_code,
            )

        self._circuit_breaker.record_success()
        return response

    def json(self, response: httpx.Response) -> Any:
        """Decode a JSON body, mapping garbage to ServiceUnavailable."""
        try:
            return response.json()
        except ValueError as e:
            raise ServiceUnavailable(
                f"{self.service_name} returned an invalid JSON body",
                service=self.service_name,
                status_code=response.status_code,
                cause=e,
            ) from e

    async def aclose(self) -> None:
        """Close the underlying client if this service created it."""
        if self._owns_client and self.client is not None:
            await self.client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
