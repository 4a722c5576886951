"""
Redis Decision Cache
====================
Decision cache shared between broker instances through Redis.

The cache is advisory: Redis failures are logged and behave like a miss.
"""

import json
import random
from typing import Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from mqauth_core.models import CheckKind, Decision

logger = structlog.get_logger(__name__)

KEY_PREFIX = "mqauth:decision:"


class RedisDecisionCache:
    """Redis-backed decision cache using SET ... EX expiry."""

    def __init__(
        self,
        redis_client: Redis,
        auth_ttl: float = 30.0,
        acl_ttl: float = 30.0,
        jitter: float = 0.0,
    ):
        """
        Args:
            redis_client: Async Redis client
            auth_ttl: Seconds to keep auth and superuser decisions
            acl_ttl: Seconds to keep ACL decisions
            jitter: Random seconds added to every TTL
        """
        self.redis = redis_client
        self.auth_ttl = auth_ttl
        self.acl_ttl = acl_ttl
        self.jitter = jitter
        self._closed = False

    @classmethod
    def from_url_parts(
        cls,
        host: str = "localhost",
        port: int = 6379,
        db: int = 3,
        password: Optional[str] = None,
        **kwargs,
    ) -> "RedisDecisionCache":
        client = Redis(host=host, port=port, db=db, password=password, socket_timeout=2.0)
        return cls(client, **kwargs)

    def ttl_for(self, kind: CheckKind) -> float:
        ttl = self.acl_ttl if kind == CheckKind.ACL else self.auth_ttl
        if ttl > 0 and self.jitter > 0:
            ttl += random.uniform(0, self.jitter)
        return ttl

    async def get(self, key: str) -> Optional[Decision]:
        try:
            raw = await self.redis.get(KEY_PREFIX + key)
        except RedisError as e:
            logger.warning("cache_read_failed", error=str(e))
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
            return Decision(
                allowed=bool(data["allowed"]),
                backend=data.get("backend"),
                created_at=float(data["created_at"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("cache_entry_corrupt", key=key[:12])
            return None

    async def set(self, key: str, decision: Decision, kind: CheckKind) -> None:
        ttl_ms = int(self.ttl_for(kind) * 1000)
        if ttl_ms <= 0:
            return

        payload = json.dumps({
            "allowed": decision.allowed,
            "backend": decision.backend,
            "created_at": decision.created_at,
        })
        try:
            await self.redis.set(KEY_PREFIX + key, payload, px=ttl_ms)
        except RedisError as e:
            logger.warning("cache_write_failed", error=str(e))

    async def clear(self) -> None:
        try:
            async for key in self.redis.scan_iter(match=KEY_PREFIX + "*"):
                await self.redis.delete(key)
        except RedisError as e:
            logger.warning("cache_clear_failed", error=str(e))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.redis.aclose()
