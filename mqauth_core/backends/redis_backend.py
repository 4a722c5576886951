"""
Redis Backend
=============
Credentials and ACLs stored in Redis.

Layout:
    <username>          -> stored password hash (string)
    <username>:su       -> "true" for superusers
    <username>:racls    -> set of readable topic patterns
    <username>:wacls    -> set of writable topic patterns
    <username>:rwacls   -> set of read/write topic patterns
    common:racls, common:wacls, common:rwacls
                        -> pattern rules applying to every user
"""

from typing import Any, List, Mapping, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from mqauth_core.config import option_float, option_int, option_salt_encoding, option_str
from mqauth_core.errors import BackendUnavailable
from mqauth_core.hashing import verify_password_async
from mqauth_core.topics import Access, AclRequest, AclRule, rules_permit
from .base import BackendKind

logger = structlog.get_logger(__name__)

ACL_SUFFIXES = {
    "racls": Access.READ,
    "wacls": Access.WRITE,
    "rwacls": Access.READWRITE,
}


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class RedisBackend:
    """Redis credential store."""

    kind = BackendKind.REDIS

    def __init__(
        self,
        options: Mapping[str, Any],
        name: str = "redis",
        redis_client: Optional[Redis] = None,
    ):
        self.name = name
        self.salt_encoding = option_salt_encoding(options, backend=name)
        self.redis = redis_client or Redis(
            host=option_str(options, "redis_host", "localhost"),
            port=option_int(options, "redis_port", 6379, backend=name),
            db=option_int(options, "redis_db", 2, backend=name),
            password=option_str(options, "redis_password"),
            socket_timeout=option_float(options, "redis_timeout", 5.0, backend=name),
        )
        self._closed = False

    def _unavailable(self, operation: str, exc: Exception) -> BackendUnavailable:
        logger.warning("redis_error", backend=self.name, operation=operation, error=str(exc))
        return BackendUnavailable(f"{operation} failed: {exc}", backend=self.name)

    async def authenticate(self, username: str, password: str) -> bool:
        try:
            stored = await self.redis.get(username)
        except RedisError as e:
            raise self._unavailable("authenticate", e)

        if stored is None:
            return False
        return await verify_password_async(password, _text(stored), self.salt_encoding)

    async def is_superuser(self, username: str) -> bool:
        try:
            flag = await self.redis.get(f"{username}:su")
        except RedisError as e:
            raise self._unavailable("is_superuser", e)

        return flag is not None and _text(flag).lower() == "true"

    async def rules_for(self, username: str) -> List[AclRule]:
        """User rules followed by the common pattern rules."""
        rules: List[AclRule] = []
        try:
            for owner, prefix in ((username, username), (None, "common")):
                for suffix, access in ACL_SUFFIXES.items():
                    members = await self.redis.smembers(f"{prefix}:{suffix}")
                    rules.extend(
                        AclRule(pattern=_text(member), access=access, username=owner)
                        for member in members
                    )
        except RedisError as e:
            raise self._unavailable("check_acl", e)
        return rules

    async def check_acl(self, username: str, topic: str, client_id: str, access: Access) -> bool:
        request = AclRequest(username=username, topic=topic, client_id=client_id, access=access)
        return rules_permit(await self.rules_for(username), request)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.redis.aclose()
