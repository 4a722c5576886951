"""
Unit Tests for the Redis Backend
================================
The Redis client is an AsyncMock serving a small keyspace.
"""

from unittest.mock import AsyncMock

import pytest


def make_client(values=None, sets=None):
    values = values or {}
    sets = sets or {}
    client = AsyncMock()
    client.get.side_effect = lambda key: values.get(key)
    client.smembers.side_effect = lambda key: sets.get(key, set())
    return client


class TestRedisBackend:
    """Tests for RedisBackend."""

    @pytest.mark.asyncio
    async def test_authenticate(self, fast_pbkdf2):
        """Should verify the hash stored under the username."""
        from mqauth_core.backends import RedisBackend

        client = make_client(values={"alice": fast_pbkdf2("alicepw").encode()})
        backend = RedisBackend({}, redis_client=client)

        assert await backend.authenticate("alice", "alicepw") is True
        assert await backend.authenticate("alice", "wrong") is False
        assert await backend.authenticate("bob", "alicepw") is False

    def test_invalid_salt_encoding(self):
        """Should refuse salt encodings the hash parser does not know."""
        from mqauth_core.backends import RedisBackend
        from mqauth_core.errors import ConfigError

        with pytest.raises(ConfigError) as exc_info:
            RedisBackend({"salt_encoding": "hex"}, redis_client=make_client())

        assert exc_info.value.option == "salt_encoding"

    @pytest.mark.asyncio
    async def test_utf8_salt_encoding(self, fast_pbkdf2):
        """Should verify hashes with plain text salts."""
        from mqauth_core.backends import RedisBackend

        stored = fast_pbkdf2("alicepw", salt_encoding="utf-8")
        backend = RedisBackend({"salt_encoding": "UTF-8"}, redis_client=make_client(values={"alice": stored}))

        assert backend.salt_encoding == "utf-8"
        assert await backend.authenticate("alice", "alicepw") is True

    @pytest.mark.asyncio
    async def test_superuser(self):
        """Should read the :su flag."""
        from mqauth_core.backends import RedisBackend

        client = make_client(values={"admin:su": b"true", "alice:su": b"false"})
        backend = RedisBackend({}, redis_client=client)

        assert await backend.is_superuser("admin") is True
        assert await backend.is_superuser("alice") is False
        assert await backend.is_superuser("bob") is False

    @pytest.mark.asyncio
    async def test_check_acl(self):
        """Should combine user sets with common pattern sets."""
        from mqauth_core.backends import RedisBackend
        from mqauth_core.topics import Access

        client = make_client(sets={
            "alice:racls": {b"news/#"},
            "alice:rwacls": {b"alice/#"},
            "common:wacls": {b"status/%u"},
        })
        backend = RedisBackend({}, redis_client=client)

        assert await backend.check_acl("alice", "news/today", "c1", Access.READ) is True
        assert await backend.check_acl("alice", "news/today", "c1", Access.WRITE) is False
        assert await backend.check_acl("alice", "alice/x", "c1", Access.WRITE) is True
        assert await backend.check_acl("alice", "status/alice", "c1", Access.WRITE) is True
        assert await backend.check_acl("bob", "status/bob", "c1", Access.WRITE) is True
        assert await backend.check_acl("bob", "status/alice", "c1", Access.WRITE) is False

    @pytest.mark.asyncio
    async def test_redis_errors_abstain(self):
        """Connection problems should raise BackendUnavailable."""
        from redis.exceptions import ConnectionError

        from mqauth_core.backends import RedisBackend
        from mqauth_core.errors import BackendUnavailable
        from mqauth_core.topics import Access

        client = AsyncMock()
        client.get.side_effect = ConnectionError("refused")
        client.smembers.side_effect = ConnectionError("refused")
        backend = RedisBackend({}, name="cache-redis", redis_client=client)

        with pytest.raises(BackendUnavailable) as exc_info:
            await backend.authenticate("alice", "pw")
        assert exc_info.value.backend == "cache-redis"

        with pytest.raises(BackendUnavailable):
            await backend.check_acl("alice", "a/b", "c1", Access.READ)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Should close the client once."""
        from mqauth_core.backends import RedisBackend

        client = make_client()
        backend = RedisBackend({}, redis_client=client)

        await backend.close()
        await backend.close()

        client.aclose.assert_awaited_once()
