"""
In-Memory Decision Cache
========================
TTL cache with striped locks.

Keys are spread over independent buckets, each guarded by its own lock, so
concurrent requests only contend when they land in the same bucket. Locks are
held for dictionary operations only, never across an await or backend call.
"""

import random
import threading
import time
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

import structlog

from mqauth_core.models import CheckKind, Decision

logger = structlog.get_logger(__name__)

_Entry = Tuple[float, Decision]  # (expires_at, decision)


class MemoryDecisionCache:
    """
    Process-local decision cache.

    Expiry is lazy on read; sweep() removes every expired entry. When a bucket
    grows past its share of max_entries, its oldest entries are evicted.
    """

    def __init__(
        self,
        auth_ttl: float = 30.0,
        acl_ttl: float = 30.0,
        max_entries: int = 10000,
        stripes: int = 16,
        jitter: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if stripes <= 0:
            raise ValueError("stripes must be positive")

        self.auth_ttl = auth_ttl
        self.acl_ttl = acl_ttl
        self.jitter = jitter
        self._clock = clock
        self._bucket_capacity = max(1, max_entries // stripes)
        self._buckets: List["OrderedDict[str, _Entry]"] = [OrderedDict() for _ in range(stripes)]
        self._locks = [threading.Lock() for _ in range(stripes)]

    def _slot(self, key: str) -> int:
        return hash(key) % len(self._buckets)

    def ttl_for(self, kind: CheckKind) -> float:
        """TTL for a decision kind; auth and superuser share the auth TTL."""
        ttl = self.acl_ttl if kind == CheckKind.ACL else self.auth_ttl
        if ttl > 0 and self.jitter > 0:
            ttl += random.uniform(0, self.jitter)
        return ttl

    def lookup(self, key: str) -> Optional[Decision]:
        slot = self._slot(key)
        with self._locks[slot]:
            bucket = self._buckets[slot]
            entry = bucket.get(key)
            if entry is None:
                return None

            expires_at, decision = entry
            if self._clock() >= expires_at:
                del bucket[key]
                return None
            return decision

    def store(self, key: str, decision: Decision, kind: CheckKind) -> None:
        ttl = self.ttl_for(kind)
        if ttl <= 0:
            return

        slot = self._slot(key)
        with self._locks[slot]:
            bucket = self._buckets[slot]
            bucket[key] = (self._clock() + ttl, decision)
            bucket.move_to_end(key)
            while len(bucket) > self._bucket_capacity:
                bucket.popitem(last=False)

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        removed = 0
        for lock, bucket in zip(self._locks, self._buckets):
            with lock:
                now = self._clock()
                expired = [key for key, (expires_at, _) in bucket.items() if now >= expires_at]
                for key in expired:
                    del bucket[key]
                removed += len(expired)

        if removed:
            logger.debug("cache_swept", removed=removed)
        return removed

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets)

    async def get(self, key: str) -> Optional[Decision]:
        return self.lookup(key)

    async def set(self, key: str, decision: Decision, kind: CheckKind) -> None:
        self.store(key, decision, kind)

    async def clear(self) -> None:
        for lock, bucket in zip(self._locks, self._buckets):
            with lock:
                bucket.clear()

    async def close(self) -> None:
        await self.clear()
