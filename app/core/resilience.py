"""Circuit breaker for calls to external services (Auth0 JWKS, document parser)."""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CircuitBreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(RuntimeError):
    """Raised instead of calling a service whose breaker is open."""


class CircuitBreaker:
    """Async circuit breaker.

    ``failure_threshold`` consecutive failures open the breaker. While open,
    calls fail fast with ``CircuitBreakerOpenError``. Once ``timeout_seconds``
    have passed a single probe call is let through (HALF_OPEN): success closes
    the breaker, failure opens it again for another full timeout.

    Only exceptions of type ``expected_exception`` count as failures.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        timeout_seconds: float = 60,
        expected_exception: type[Exception] = Exception,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout_seconds = timeout_seconds
        self.expected_exception = expected_exception
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        return self._state is CircuitBreakerState.OPEN

    def _cooled_down(self) -> bool:
        if self._opened_at is None:
            return True
        return time.monotonic() - self._opened_at >= self.timeout_seconds

    def _open(self) -> None:
        self._state = CircuitBreakerState.OPEN
        self._opened_at = time.monotonic()
        logger.error(
            "Circuit breaker %s opened after %d consecutive failures",
            self.name,
            self._failure_count,
        )

    async def _before_call(self) -> None:
        async with self._lock:
            if self.is_open and self._cooled_down():
                self._state = CircuitBreakerState.HALF_OPEN
                logger.info("Circuit breaker %s half-open, sending probe call", self.name)
            if self.is_open:
                raise CircuitBreakerOpenError(f"{self.name} is unavailable (circuit open)")

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if (
                self._state is CircuitBreakerState.HALF_OPEN
                or self._failure_count >= self.failure_threshold
            ):
                self._open()
            else:
                logger.warning(
                    "Circuit breaker %s failure %d of %d",
                    self.name,
                    self._failure_count,
                    self.failure_threshold,
                )

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state is CircuitBreakerState.HALF_OPEN:
                logger.info("Circuit breaker %s closed after successful probe", self.name)
            self.reset()

    async def call(
        self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        """Await ``func(*args, **kwargs)`` unless the breaker is open."""
        await self._before_call()

        awaitable = func(*args, **kwargs)
        if not inspect.isawaitable(awaitable):
            raise TypeError(f"{self.name}: CircuitBreaker.call() needs an async callable")

        try:
            result = await awaitable
        except self.expected_exception:
            await self._on_failure()
            raise

        await self._on_success()
        return result

    def reset(self) -> None:
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._opened_at = None
