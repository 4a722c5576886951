"""
Decision Models
===============
Data models and enums for orchestrated decisions.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class CheckKind(str, Enum):
    """Kinds of decisions the orchestrator produces."""
    AUTH = "auth"
    SUPERUSER = "superuser"
    ACL = "acl"


class AggregationPolicy(str, Enum):
    """How the results of the backend chain are combined."""
    ANY = "any"  # First backend that allows wins
    ALL = "all"  # Every backend must allow


@dataclass(frozen=True)
class Decision:
    """Result of a check plus its provenance."""
    allowed: bool
    backend: Optional[str] = None
    cached: bool = False
    created_at: float = field(default_factory=time.time)

    def from_cache(self) -> "Decision":
        return replace(self, cached=True)


DENIED = Decision(allowed=False)
