"""Circuit breaker for the Gemini API.

Three states:
  CLOSED    — calls pass through; consecutive failures are counted
  OPEN      — threshold reached, calls fail fast without reaching the API
  HALF_OPEN — cooldown elapsed, the next call is let through as a probe

A breaker never retries; it only decides whether a call is attempted.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised instead of calling the protected function while the circuit is OPEN."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit breaker '{name}' is OPEN — retry in {retry_after:.0f}s")
        self.breaker_name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Async-safe circuit breaker wrapping an awaitable factory."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        cooldown_seconds: float = 60,
        ignore: tuple[type[BaseException], ...] = (),
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        # Exceptions that propagate without counting as an upstream failure
        self.ignore = ignore

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN circuit reads as HALF_OPEN once the cooldown has elapsed."""
        if self._state == CircuitState.OPEN and self._cooldown_remaining() <= 0:
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _cooldown_remaining(self) -> float:
        return self.cooldown_seconds - (time.monotonic() - self._opened_at)

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Await ``func(*args, **kwargs)`` unless the circuit is OPEN."""
        async with self._lock:
            current = self.state
            if current == CircuitState.OPEN:
                raise CircuitBreakerOpen(self.name, self._cooldown_remaining())
            if current == CircuitState.HALF_OPEN:
                logger.info("Circuit '%s' HALF_OPEN — allowing probe request", self.name)

        try:
            result = await func(*args, **kwargs)
        except self.ignore:
            raise
        except Exception:
            await self._record_failure()
            raise

        await self._record_success()
        return result

    async def _record_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("Circuit '%s' recovered — CLOSED", self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0

    async def _record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            probe_failed = self.state == CircuitState.HALF_OPEN

            if probe_failed or self._failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning(
                    "Circuit '%s' OPEN after %d failures (cooldown %ds)",
                    self.name, self._failure_count, self.cooldown_seconds,
                )

    def reset(self) -> None:
        """Force the circuit back to CLOSED (used by tests)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
