"""
Circuit Breaker Core
====================
Per-backend circuit breaker.

A backend that keeps failing is skipped for `timeout` seconds instead of
making every request wait for its I/O timeout. Rejected calls surface as
CircuitOpenError, which the orchestrator treats as an abstention.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog

from .models import BreakerStats, CircuitBreakerConfig, CircuitOpenError, CircuitState

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitBreaker:
    """
    Async circuit breaker guarding one backend.

    The lock serialises admission. Outcome bookkeeping has no await points,
    so a cancelled caller can never leave it half done.

    Example:
        breaker = CircuitBreaker("postgres")
        allowed = await breaker.call(backend.check_acl, username, topic, client_id, access)
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = asyncio.Lock()
        self.reset()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def metrics(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._consecutive_failures,
            "total_calls": self.stats.calls,
            "total_failures": self.stats.failures,
            "total_rejections": self.stats.rejections,
            "last_failure": self.stats.last_failure_at,
        }

    def reset(self) -> None:
        """Return to the closed state (tests and admin tooling)."""
        self._state = CircuitState.CLOSED
        self._changed_at = self._clock()
        self._consecutive_failures = 0
        self._trial_successes = 0
        self._trials = 0
        self.stats = BreakerStats()

    def _enter(self, state: CircuitState) -> None:
        self._state = state
        self._changed_at = self._clock()
        self._trial_successes = 0
        self._trials = 0

    def _release_trial(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._trials = max(0, self._trials - 1)

    def _retry_after(self) -> float:
        return max(0.0, self.config.timeout - (self._clock() - self._changed_at))

    async def _admit(self) -> bool:
        async with self._lock:
            if self._state == CircuitState.OPEN and self._retry_after() == 0.0:
                self._enter(CircuitState.HALF_OPEN)
                logger.info("circuit_half_open", backend=self.name)

            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN and self._trials < self.config.half_open_max_calls:
                self._trials += 1
                return True

            self.stats.rejections += 1
            return False

    def _succeeded(self) -> None:
        self.stats.calls += 1
        self._consecutive_failures = 0
        if self._state != CircuitState.HALF_OPEN:
            return

        self._trial_successes += 1
        if self._trial_successes >= self.config.success_threshold:
            self._enter(CircuitState.CLOSED)
            logger.info("circuit_closed", backend=self.name)

    def _failed(self, exc: Exception) -> None:
        self.stats.calls += 1
        if isinstance(exc, self.config.excluded_exceptions):
            # The backend answered
            self._release_trial()
            return

        self.stats.failures += 1
        self.stats.last_failure_at = self._clock()
        self._consecutive_failures += 1

        if self._state == CircuitState.HALF_OPEN:
            self._enter(CircuitState.OPEN)
            logger.warning("circuit_reopened", backend=self.name, error=str(exc))
        elif self._state == CircuitState.CLOSED and self._consecutive_failures >= self.config.fail_threshold:
            self._enter(CircuitState.OPEN)
            logger.warning("circuit_opened", backend=self.name, failures=self._consecutive_failures)

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Call an async function under circuit breaker protection.

        Raises:
            CircuitOpenError: If the circuit rejects the call
        """
        if not await self._admit():
            raise CircuitOpenError(self.name, self._state, self._retry_after())

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            # Cancelled callers got no answer; neither success nor failure
            self._release_trial()
            raise
        except Exception as e:
            self._failed(e)
            raise

        self._succeeded()
        return result
