"""
Unit Tests for the Decision Cache
=================================
"""

import json
from unittest.mock import AsyncMock

import pytest


class TestMakeKey:
    """Tests for request fingerprints."""

    def test_auth_key_covers_password(self):
        """Different passwords should never share a key."""
        from mqauth_core.cache import make_key
        from mqauth_core.models import CheckKind

        first = make_key(CheckKind.AUTH, "alice", password="secret")
        second = make_key(CheckKind.AUTH, "alice", password="other")

        assert first != second
        assert first == make_key(CheckKind.AUTH, "alice", password="secret")
        assert "secret" not in first
        assert len(first) == 64

    def test_acl_key_covers_request(self):
        """Every ACL request field should contribute to the key."""
        from mqauth_core.cache import make_key
        from mqauth_core.models import CheckKind
        from mqauth_core.topics import Access

        base = make_key(CheckKind.ACL, "alice", topic="a/b", client_id="c1", access=Access.READ)

        assert base != make_key(CheckKind.ACL, "alice", topic="a/c", client_id="c1", access=Access.READ)
        assert base != make_key(CheckKind.ACL, "alice", topic="a/b", client_id="c2", access=Access.READ)
        assert base != make_key(CheckKind.ACL, "alice", topic="a/b", client_id="c1", access=Access.WRITE)
        assert base != make_key(CheckKind.ACL, "bob", topic="a/b", client_id="c1", access=Access.READ)

    def test_kinds_do_not_collide(self):
        """The same user should get distinct keys per kind."""
        from mqauth_core.cache import make_key
        from mqauth_core.models import CheckKind

        assert make_key(CheckKind.SUPERUSER, "alice") != make_key(CheckKind.AUTH, "alice")


class TestMemoryDecisionCache:
    """Tests for the in-memory cache."""

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self, clock):
        """Should return stored decisions until they expire."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(auth_ttl=10, acl_ttl=5, clock=clock)
        await cache.set("k", Decision(allowed=True, backend="files"), CheckKind.ACL)

        clock.advance(4.9)
        cached = await cache.get("k")
        assert cached is not None
        assert cached.allowed is True
        assert cached.backend == "files"

        clock.advance(0.2)
        assert await cache.get("k") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_ttl_per_kind(self, clock):
        """Superuser decisions should use the auth TTL."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(auth_ttl=10, acl_ttl=1, clock=clock)
        await cache.set("su", Decision(allowed=True), CheckKind.SUPERUSER)
        await cache.set("acl", Decision(allowed=True), CheckKind.ACL)

        clock.advance(5)

        assert await cache.get("su") is not None
        assert await cache.get("acl") is None

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_caching(self, clock):
        """A non-positive TTL should store nothing."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(auth_ttl=0, acl_ttl=0, clock=clock)
        await cache.set("k", Decision(allowed=True), CheckKind.AUTH)

        assert await cache.get("k") is None

    def test_jitter_bounds(self):
        """Jitter should only ever lengthen the TTL."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind

        cache = MemoryDecisionCache(auth_ttl=10, acl_ttl=10, jitter=2)

        for _ in range(50):
            assert 10 <= cache.ttl_for(CheckKind.AUTH) <= 12

    def test_eviction_of_oldest(self, clock):
        """A full bucket should evict its oldest entries."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(max_entries=2, stripes=1, clock=clock)
        for key in ("a", "b", "c"):
            cache.store(key, Decision(allowed=True), CheckKind.AUTH)

        assert len(cache) == 2
        assert cache.lookup("a") is None
        assert cache.lookup("c") is not None

    def test_sweep(self, clock):
        """Should drop every expired entry."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(auth_ttl=10, acl_ttl=1, clock=clock)
        cache.store("auth", Decision(allowed=True), CheckKind.AUTH)
        cache.store("acl-1", Decision(allowed=False), CheckKind.ACL)
        cache.store("acl-2", Decision(allowed=True), CheckKind.ACL)

        clock.advance(2)

        assert cache.sweep() == 2
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_clear(self, clock):
        """Should empty every bucket."""
        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(clock=clock)
        for index in range(20):
            await cache.set(f"k{index}", Decision(allowed=True), CheckKind.AUTH)

        await cache.clear()

        assert len(cache) == 0

    def test_concurrent_store_lookup_and_sweep(self):
        """Threads hitting shared buckets should never see another key's decision."""
        from concurrent.futures import ThreadPoolExecutor

        from mqauth_core.cache import MemoryDecisionCache
        from mqauth_core.models import CheckKind, Decision

        cache = MemoryDecisionCache(auth_ttl=60, acl_ttl=60, max_entries=100000, stripes=4)
        keys_per_worker = 300

        def worker(worker_id):
            mismatches = 0
            for index in range(keys_per_worker):
                key = f"w{worker_id}-k{index}"
                cache.store(key, Decision(allowed=index % 2 == 0, backend=key), CheckKind.ACL)
                cached = cache.lookup(key)
                if cached is None or cached.backend != key:
                    mismatches += 1
                if index % 50 == 0:
                    cache.sweep()
            return mismatches

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(worker, range(8)))

        assert results == [0] * 8
        assert len(cache) == 8 * keys_per_worker
        assert cache.lookup("w3-k10").allowed is True
        assert cache.lookup("w3-k11").allowed is False

    def test_invalid_stripes(self):
        """Should refuse a cache without buckets."""
        from mqauth_core.cache import MemoryDecisionCache

        with pytest.raises(ValueError):
            MemoryDecisionCache(stripes=0)


class TestRedisDecisionCache:
    """Tests for the Redis cache with a mocked client."""

    @pytest.mark.asyncio
    async def test_set_uses_expiry(self):
        """Should store JSON with a millisecond expiry."""
        from mqauth_core.cache import RedisDecisionCache
        from mqauth_core.cache.redis_cache import KEY_PREFIX
        from mqauth_core.models import CheckKind, Decision

        client = AsyncMock()
        cache = RedisDecisionCache(client, auth_ttl=30, acl_ttl=5)

        await cache.set("k", Decision(allowed=True, backend="redis"), CheckKind.ACL)

        client.set.assert_awaited_once()
        args, kwargs = client.set.call_args
        assert args[0] == KEY_PREFIX + "k"
        assert json.loads(args[1])["allowed"] is True
        assert kwargs["px"] == 5000

    @pytest.mark.asyncio
    async def test_get_decodes_entry(self):
        """Should rebuild decisions from stored JSON."""
        from mqauth_core.cache import RedisDecisionCache

        client = AsyncMock()
        client.get.return_value = json.dumps(
            {"allowed": False, "backend": "http", "created_at": 12.5}
        ).encode()
        cache = RedisDecisionCache(client)

        decision = await cache.get("k")

        assert decision.allowed is False
        assert decision.backend == "http"
        assert decision.created_at == 12.5

    @pytest.mark.asyncio
    async def test_miss_and_corrupt_entries(self):
        """Missing and corrupt entries should be misses."""
        from mqauth_core.cache import RedisDecisionCache

        client = AsyncMock()
        cache = RedisDecisionCache(client)

        client.get.return_value = None
        assert await cache.get("k") is None

        client.get.return_value = b"not json"
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_redis_errors_are_misses(self):
        """Redis outages should never break a decision."""
        from redis.exceptions import ConnectionError

        from mqauth_core.cache import RedisDecisionCache
        from mqauth_core.models import CheckKind, Decision

        client = AsyncMock()
        client.get.side_effect = ConnectionError("down")
        client.set.side_effect = ConnectionError("down")
        cache = RedisDecisionCache(client)

        assert await cache.get("k") is None
        await cache.set("k", Decision(allowed=True), CheckKind.AUTH)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Should close the client once."""
        from mqauth_core.cache import RedisDecisionCache

        client = AsyncMock()
        cache = RedisDecisionCache(client)

        await cache.close()
        await cache.close()

        client.aclose.assert_awaited_once()
