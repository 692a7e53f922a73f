"""Per-service circuit breaker for the image API, asset host and geocoder.

A globe session talks to three independent services. When one of them goes
down, every fetch, upload or search against it would otherwise sit out the
full HTTP timeout before the user sees a notice. The breaker counts
consecutive failures per service and, past a threshold, rejects calls
locally until a cooldown has passed:

    CLOSED --(failure_threshold failures)--> OPEN
    OPEN --(cooldown_seconds elapsed)--> HALF_OPEN
    HALF_OPEN --(success_threshold successes)--> CLOSED
    HALF_OPEN --(any failure)--> OPEN

Only failures the service is responsible for count: transport errors and
5xx answers (see HttpService.request). A 4xx is the caller's fault and
counts as a success for breaker purposes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from globemark.services.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Thresholds for one service's breaker.

    The defaults suit interactive use: five failed calls in a row stop
    traffic for 30 s, then a single trial call decides whether to resume.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        cooldown_seconds: How long the circuit stays open.
        half_open_max_calls: Trial calls admitted while half-open.
        success_threshold: Trial successes needed to close again.
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 30.0
    half_open_max_calls: int = 1
    success_threshold: int = 1


@dataclass
class CircuitBreaker:
    """Failure counter and gate for a single named service.

    HttpService owns one breaker per client and drives it:

        breaker.check()               # raises CircuitBreakerOpenError
        response = await send()
        if response.status_code >= 500:
            breaker.record_failure()
        else:
            breaker.record_success()
    """

    service_name: str
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _trial_successes: int = field(default=0, init=False)
    _trial_calls: int = field(default=0, init=False)
    _opened_at: float | None = field(default=None, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state; an expired cooldown moves OPEN to HALF_OPEN."""
        if self._state is CircuitState.OPEN and self.cooldown_remaining == 0.0:
            self._set_state(CircuitState.HALF_OPEN)
        return self._state

    @property
    def is_closed(self) -> bool:
        return self.state is CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    @property
    def cooldown_remaining(self) -> float:
        """Seconds until an open circuit admits a trial call (0 if not open)."""
        if self._state is not CircuitState.OPEN or self._opened_at is None:
            return 0.0
        elapsed = time.monotonic() - self._opened_at
        return max(0.0, self.config.cooldown_seconds - elapsed)

    def _set_state(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._trial_calls = 0
        self._trial_successes = 0
        if new_state is CircuitState.OPEN:
            self._opened_at = time.monotonic()
        elif new_state is CircuitState.CLOSED:
            self._consecutive_failures = 0
            self._opened_at = None

        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            "%s circuit %s -> %s (%d consecutive failures)",
            self.service_name,
            old_state.value,
            new_state.value,
            self._consecutive_failures,
            extra={"service": self.service_name},
        )

    def check(self) -> None:
        """Admit or reject the next call.

        Raises:
            CircuitBreakerOpenError: While open, or while half-open with all
                trial calls already in flight.
        """
        state = self.state
        if state is CircuitState.CLOSED:
            return

        if state is CircuitState.OPEN:
            remaining = self.cooldown_remaining
            raise CircuitBreakerOpenError(
                f"{self.service_name} is unavailable after "
                f"{self._consecutive_failures} failed calls; "
                f"retrying in {remaining:.0f}s",
                cooldown_remaining_seconds=remaining,
                service=self.service_name,
            )

        if self._trial_calls >= self.config.half_open_max_calls:
            raise CircuitBreakerOpenError(
                f"{self.service_name} is being retried; try again shortly",
                cooldown_remaining_seconds=0.0,
                service=self.service_name,
            )
        self._trial_calls += 1

    def record_success(self) -> None:
        if self._state is CircuitState.HALF_OPEN:
            self._trial_successes += 1
            if self._trial_successes >= self.config.success_threshold:
                self._set_state(CircuitState.CLOSED)
        else:
            self._consecutive_failures = 0

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._state is CircuitState.HALF_OPEN:
            self._set_state(CircuitState.OPEN)
        elif (
            self._state is CircuitState.CLOSED
            and self._consecutive_failures >= self.config.failure_threshold
        ):
            self._set_state(CircuitState.OPEN)

    def reset(self) -> None:
        """Forget all failures and close the circuit."""
        self._consecutive_failures = 0
        self._set_state(CircuitState.CLOSED)
