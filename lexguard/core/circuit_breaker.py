"""Circuit breaker for generative content provider calls.

Implements the Circuit Breaker pattern to stop calling a failing provider
for a cool-down window. One breaker is constructed per provider and injected
where it is needed, so a failing provider never blocks a fallback provider.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from .errors import ProviderUnavailableError

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states.

    CLOSED: Normal operation, calls pass through
    OPEN: Provider failing, calls rejected immediately
    HALF_OPEN: Cool-down elapsed, a single probe call is allowed
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Per-provider circuit breaker.

    Shared by every concurrent request that talks to the same provider, so all
    transitions happen under a lock (single writer at a time).

    Example:
        >>> breaker = CircuitBreaker(name="openrouter", failure_threshold=5, timeout=60.0)
        >>> text = await breaker.call(provider.complete, system, user, 4000)

    Attributes:
        name: Provider name, used in logs and errors
        failure_threshold: Consecutive failures before opening the circuit
        timeout: Cool-down seconds before a probe call is allowed
        clock: Monotonic time source (injectable for tests)
    """

    name: str = "provider"
    failure_threshold: int = 5
    timeout: float = 60.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    last_failure_time: float | None = field(default=None, init=False)
    _probe_in_flight: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def guard(self) -> None:
        """Admit or reject a call attempt.

        Raises:
            ProviderUnavailableError: If the circuit is open and the cool-down
                has not elapsed, or a half-open probe is already in flight
        """
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return

            if self.state == CircuitState.OPEN:
                remaining = self._remaining_cooldown()
                if remaining > 0:
                    raise ProviderUnavailableError(self.name, retry_after=remaining)
                self.state = CircuitState.HALF_OPEN
                self._probe_in_flight = True
                logger.info("circuit_breaker_half_open", name=self.name)
                return

            # HALF_OPEN: exactly one probe at a time
            if self._probe_in_flight:
                raise ProviderUnavailableError(self.name, retry_after=self.timeout)
            self._probe_in_flight = True

    def on_success(self) -> None:
        """Record a successful call - reset state to CLOSED."""
        with self._lock:
            if self.state != CircuitState.CLOSED:
                logger.info("circuit_breaker_closed", name=self.name)
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self._probe_in_flight = False

    def on_failure(self) -> None:
        """Record a failed call - increment count and possibly OPEN circuit."""
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = self.clock()
            self._probe_in_flight = False

            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self.state = CircuitState.OPEN
                logger.warning(
                    "circuit_breaker_open",
                    name=self.name,
                    failures=self.failure_count,
                    cooldown_seconds=self.timeout,
                )
            else:
                logger.warning(
                    "circuit_breaker_failure",
                    name=self.name,
                    failures=self.failure_count,
                    threshold=self.failure_threshold,
                )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute an async function with circuit breaker protection.

        Args:
            func: Async function to call
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Function result if successful

        Raises:
            ProviderUnavailableError: If the circuit rejects the attempt
            Exception: Whatever func raised (recorded as a failure)
        """
        self.guard()

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            # A cancelled probe says nothing about provider health
            self._release_probe()
            raise
        except Exception:
            self.on_failure()
            raise

        self.on_success()
        return result

    def _release_probe(self) -> None:
        with self._lock:
            self._probe_in_flight = False

    def _remaining_cooldown(self) -> float:
        if self.last_failure_time is None:
            return 0.0
        return self.timeout - (self.clock() - self.last_failure_time)
