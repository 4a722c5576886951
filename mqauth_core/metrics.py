"""
Prometheus Metrics
==================
Decision, cache and backend-error counters.

Each orchestrator owns its registry so independent orchestrators (tests,
multiple listeners) never collide on metric names.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, generate_latest

from mqauth_core.models import CheckKind


class DecisionMetrics:
    """Counters for one orchestrator."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.decisions = Counter(
            "mqauth_decisions_total",
            "Decisions produced, by kind and outcome",
            ["kind", "outcome"],
            registry=self.registry,
        )
        self.cache_lookups = Counter(
            "mqauth_cache_lookups_total",
            "Decision cache lookups, by kind and result",
            ["kind", "result"],
            registry=self.registry,
        )
        self.backend_errors = Counter(
            "mqauth_backend_errors_total",
            "Backend abstentions, by backend and kind",
            ["backend", "kind"],
            registry=self.registry,
        )

    def record_decision(self, kind: CheckKind, allowed: bool) -> None:
        self.decisions.labels(kind=kind.value, outcome="allow" if allowed else "deny").inc()

    def record_cache(self, kind: CheckKind, hit: bool) -> None:
        self.cache_lookups.labels(kind=kind.value, result="hit" if hit else "miss").inc()

    def record_backend_error(self, backend: str, kind: CheckKind) -> None:
        self.backend_errors.labels(backend=backend, kind=kind.value).inc()

    def value(self, name: str, **labels) -> float:
        """Current value of a sample (0.0 when absent)."""
        return self.registry.get_sample_value(name, labels) or 0.0

    def render(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)
