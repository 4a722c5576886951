"""
mqauth-core - Circuit Breaker
=============================
Per-backend circuit breakers for the backend chain.

States:

1. CLOSED: Normal operation, calls reach the backend
2. OPEN: Backend is failing, calls are rejected (the backend abstains)
3. HALF-OPEN: A trial call tests whether the backend has recovered
"""

from .models import (
    CircuitState,
    CircuitOpenError,
    CircuitBreakerConfig,
    BreakerStats,
)
from .breaker import CircuitBreaker

__all__ = [
    "CircuitState",
    "CircuitOpenError",
    "CircuitBreakerConfig",
    "BreakerStats",
    "CircuitBreaker",
]
