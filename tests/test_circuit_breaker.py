"""
Unit Tests for Circuit Breakers
===============================
"""

from unittest.mock import AsyncMock

import pytest


class TestCircuitBreaker:
    """Tests for per-backend circuit breakers."""

    @pytest.mark.asyncio
    async def test_passes_results_through(self, clock):
        """Should return the guarded call's result."""
        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitState

        breaker = CircuitBreaker("files", clock=clock)
        func = AsyncMock(return_value=True)

        assert await breaker.call(func, "alice") is True
        func.assert_awaited_once_with("alice")
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, clock):
        """Should reject calls once failures reach the threshold."""
        from mqauth_core.circuit_breaker import (
            CircuitBreaker,
            CircuitBreakerConfig,
            CircuitOpenError,
            CircuitState,
        )
        from mqauth_core.errors import BackendUnavailable

        breaker = CircuitBreaker("redis", CircuitBreakerConfig(fail_threshold=2, timeout=10), clock=clock)
        failing = AsyncMock(side_effect=BackendUnavailable("down", backend="redis"))

        for _ in range(2):
            with pytest.raises(BackendUnavailable):
                await breaker.call(failing)

        assert breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.call(failing)

        assert failing.await_count == 2
        assert exc_info.value.backend == "redis"
        assert breaker.metrics["total_rejections"] == 1

    @pytest.mark.asyncio
    async def test_half_open_recovery(self, clock):
        """A successful trial call after the timeout should close the circuit."""
        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker("http", CircuitBreakerConfig(fail_threshold=1, timeout=10), clock=clock)

        with pytest.raises(RuntimeError):
            await breaker.call(AsyncMock(side_effect=RuntimeError("boom")))
        assert breaker.state == CircuitState.OPEN

        clock.advance(10)

        assert await breaker.call(AsyncMock(return_value=True)) is True
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_trial_reopens(self, clock):
        """A failing trial call should reopen the circuit."""
        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker("http", CircuitBreakerConfig(fail_threshold=1, timeout=10), clock=clock)
        failing = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await breaker.call(failing)
        clock.advance(10)
        with pytest.raises(RuntimeError):
            await breaker.call(failing)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_cancelled_trial_frees_slot(self, clock):
        """A trial call cancelled by its caller should not wedge the circuit half-open."""
        import asyncio

        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker("postgres", CircuitBreakerConfig(fail_threshold=1, timeout=10), clock=clock)

        async def slow():
            await asyncio.sleep(10)
            return True

        with pytest.raises(RuntimeError):
            await breaker.call(AsyncMock(side_effect=RuntimeError("boom")))
        clock.advance(10)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(breaker.call(slow), 0.01)
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.stats.failures == 1

        assert await breaker.call(AsyncMock(return_value=True)) is True
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_not_found_is_not_a_failure(self, clock):
        """Missing rows should never trip the breaker."""
        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
        from mqauth_core.errors import NotFound

        breaker = CircuitBreaker("postgres", CircuitBreakerConfig(fail_threshold=1), clock=clock)

        with pytest.raises(NotFound):
            await breaker.call(AsyncMock(side_effect=NotFound("no such user")))

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_reset(self, clock):
        """Should return to closed on demand."""
        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker("jwt", CircuitBreakerConfig(fail_threshold=1), clock=clock)
        with pytest.raises(RuntimeError):
            await breaker.call(AsyncMock(side_effect=RuntimeError("boom")))

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.metrics["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_stats_count_calls_and_failures(self, clock):
        """Lifetime counters should survive state changes."""
        from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig

        breaker = CircuitBreaker("mysql", CircuitBreakerConfig(fail_threshold=3), clock=clock)

        await breaker.call(AsyncMock(return_value=False))
        with pytest.raises(RuntimeError):
            await breaker.call(AsyncMock(side_effect=RuntimeError("boom")))

        assert breaker.stats.calls == 2
        assert breaker.stats.failures == 1
        assert breaker.metrics["failure_count"] == 1
