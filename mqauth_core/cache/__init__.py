"""
mqauth-core - Decision Cache
============================
Memoization of auth, superuser and ACL decisions with TTL expiry.
"""

from .base import DecisionCache, make_key
from .memory import MemoryDecisionCache
from .redis_cache import RedisDecisionCache

__all__ = [
    "DecisionCache",
    "make_key",
    "MemoryDecisionCache",
    "RedisDecisionCache",
]
