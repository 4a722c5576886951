"""
Circuit Breaker Models
======================
Data models and enums for per-backend circuit breakers.
"""

from dataclasses import dataclass
from enum import Enum

from mqauth_core.errors import BackendUnavailable, NotFound


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Backend is consulted
    OPEN = "open"            # Backend is skipped
    HALF_OPEN = "half_open"  # Trying recovery


class CircuitOpenError(BackendUnavailable):
    """Raised when a backend's circuit rejects a call."""

    def __init__(self, backend: str, state: CircuitState, retry_after: float):
        self.state = state
        self.retry_after = retry_after
        super().__init__(
            f"circuit is {state.value}, retry after {retry_after:.1f}s",
            backend=backend,
        )


@dataclass
class CircuitBreakerConfig:
    """Configuration for a backend circuit breaker."""
    fail_threshold: int = 5            # Consecutive failures before opening
    success_threshold: int = 1         # Trial successes needed to close
    timeout: float = 30.0              # Seconds to stay open before a trial call
    half_open_max_calls: int = 1       # Concurrent trial calls while half-open
    excluded_exceptions: tuple = (NotFound,)  # Negative answers, not failures


@dataclass
class BreakerStats:
    """Lifetime counters of one breaker."""
    calls: int = 0
    failures: int = 0
    rejections: int = 0
    last_failure_at: float = 0.0
