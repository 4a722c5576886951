"""
Orchestrator
============
Combines an ordered chain of backends into final auth, superuser and ACL
decisions.

Usage:
    settings = AuthSettings.from_options(options)
    async with Orchestrator.from_settings(settings) as orchestrator:
        if await orchestrator.authenticate("alice", "secret"):
            ...
        allowed = await orchestrator.check_acl("alice", "sensors/alice/temp", "client-1", Access.WRITE)

Per-request failures never escape: they are logged and the request is denied.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import structlog

from mqauth_core.backends import Backend, build_backends
from mqauth_core.cache import DecisionCache, MemoryDecisionCache, RedisDecisionCache, make_key
from mqauth_core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from mqauth_core.config import AuthSettings
from mqauth_core.errors import BackendUnavailable, ConfigError, NotFound
from mqauth_core.log_config import setup_logging
from mqauth_core.metrics import DecisionMetrics
from mqauth_core.models import DENIED, AggregationPolicy, CheckKind, Decision
from mqauth_core.topics import Access

logger = structlog.get_logger(__name__)

BackendCall = Callable[[Backend], Callable[..., Awaitable[bool]]]


class Orchestrator:
    """
    Multi-backend decision engine.

    ANY: backends are asked in order, the first allow wins, failing backends
    abstain. ALL: every backend must allow; a deny or an abstention fails the
    check. Decisions are cached unless an abstention produced them.
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        *,
        auth_policy: AggregationPolicy = AggregationPolicy.ANY,
        superuser_policy: AggregationPolicy = AggregationPolicy.ANY,
        acl_policy: AggregationPolicy = AggregationPolicy.ANY,
        cache: Optional[DecisionCache] = None,
        disable_superuser: bool = False,
        prefixes: Optional[Mapping[str, str]] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        metrics: Optional[DecisionMetrics] = None,
    ):
        if not backends:
            raise ConfigError("backend chain is empty", option="backends")

        names = [backend.name for backend in backends]
        if len(set(names)) != len(names):
            raise ConfigError(f"duplicate backend names: {names}", option="backends")

        unknown = set(prefixes or {}) - set(names)
        if unknown:
            raise ConfigError(f"prefixes given for unknown backends: {sorted(unknown)}", option="prefixes")

        self._backends: Tuple[Backend, ...] = tuple(backends)
        self._policies: Dict[CheckKind, AggregationPolicy] = {
            CheckKind.AUTH: AggregationPolicy(auth_policy),
            CheckKind.SUPERUSER: AggregationPolicy(superuser_policy),
            CheckKind.ACL: AggregationPolicy(acl_policy),
        }
        self.cache = cache
        self.disable_superuser = disable_superuser
        self.prefixes: Dict[str, str] = dict(prefixes or {})
        self._breakers: Dict[str, CircuitBreaker] = {
            name: CircuitBreaker(name, breaker_config) for name in names
        }
        self.metrics = metrics or DecisionMetrics()
        self._closed = False

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_settings(cls, settings: AuthSettings, configure_logging: bool = False) -> "Orchestrator":
        """
        Build the backend chain and cache described by settings.

        Args:
            settings: Parsed settings
            configure_logging: Apply log_level and log_json through setup_logging first.
                Plugin hosts that own no logging setup of their own pass True.

        Raises:
            ConfigError: If a backend cannot be constructed
        """
        if configure_logging:
            setup_logging(settings.log_level, settings.log_json)

        backends = build_backends(settings.backends, settings.backend_options)

        cache: Optional[DecisionCache] = None
        if settings.cache_enabled:
            if settings.cache_type == "redis":
                cache = RedisDecisionCache.from_url_parts(
                    host=settings.cache_redis_host,
                    port=settings.cache_redis_port,
                    db=settings.cache_redis_db,
                    password=settings.cache_redis_password,
                    auth_ttl=settings.auth_cache_seconds,
                    acl_ttl=settings.acl_cache_seconds,
                    jitter=settings.cache_jitter_seconds,
                )
            else:
                cache = MemoryDecisionCache(
                    auth_ttl=settings.auth_cache_seconds,
                    acl_ttl=settings.acl_cache_seconds,
                    max_entries=settings.cache_max_entries,
                    jitter=settings.cache_jitter_seconds,
                )

        logger.info(
            "orchestrator_configured",
            backends=settings.backends,
            cache=settings.cache_type if cache is not None else None,
            auth_policy=settings.auth_policy.value,
            acl_policy=settings.acl_policy.value,
        )
        return cls(
            backends,
            auth_policy=settings.auth_policy,
            superuser_policy=settings.superuser_policy,
            acl_policy=settings.acl_policy,
            cache=cache,
            disable_superuser=settings.disable_superuser,
            prefixes=settings.prefixes if settings.check_prefix else None,
            breaker_config=CircuitBreakerConfig(
                fail_threshold=settings.breaker_fail_threshold,
                timeout=settings.breaker_timeout,
            ),
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any], configure_logging: bool = False) -> "Orchestrator":
        return cls.from_settings(AuthSettings.from_options(options), configure_logging)

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def backends(self) -> Tuple[Backend, ...]:
        return self._backends

    @property
    def closed(self) -> bool:
        return self._closed

    def policy(self, kind: CheckKind) -> AggregationPolicy:
        return self._policies[kind]

    def breaker(self, name: str) -> CircuitBreaker:
        return self._breakers[name]

    def chain_for(self, username: str) -> Tuple[Backend, ...]:
        """Backends consulted for a username, honoring prefix routing."""
        if self.prefixes and username:
            for backend in self._backends:
                prefix = self.prefixes.get(backend.name)
                if prefix and username.startswith(f"{prefix}_"):
                    return (backend,)
        return self._backends

    # =========================================================================
    # Evaluation
    # =========================================================================

    async def _ask(self, backend: Backend, kind: CheckKind, call: BackendCall, *args: Any) -> Optional[bool]:
        """Ask one backend. Returns None when it abstains."""
        try:
            result = await self._breakers[backend.name].call(call(backend), *args)
        except NotFound:
            return False
        except BackendUnavailable as e:
            logger.warning("backend_abstained", backend=backend.name, kind=kind.value, error=e.message)
            self.metrics.record_backend_error(backend.name, kind)
            return None
        except Exception as e:
            logger.error(
                "backend_failed",
                backend=backend.name,
                kind=kind.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            self.metrics.record_backend_error(backend.name, kind)
            return None
        return result is True

    async def _evaluate(
        self,
        kind: CheckKind,
        username: str,
        call: BackendCall,
        *args: Any,
    ) -> Tuple[Decision, bool]:
        """Run the chain under the kind's policy. Returns (decision, abstained)."""
        chain = self.chain_for(username)
        abstained = False

        if self._policies[kind] == AggregationPolicy.ANY:
            for backend in chain:
                outcome = await self._ask(backend, kind, call, *args)
                if outcome is None:
                    abstained = True
                elif outcome:
                    return Decision(allowed=True, backend=backend.name), abstained
            return Decision(allowed=False), abstained

        for backend in chain:
            outcome = await self._ask(backend, kind, call, *args)
            if outcome is None:
                return Decision(allowed=False, backend=backend.name), True
            if not outcome:
                return Decision(allowed=False, backend=backend.name), abstained
        return Decision(allowed=True, backend=",".join(b.name for b in chain)), abstained

    async def _decide(
        self,
        kind: CheckKind,
        key: str,
        username: str,
        call: BackendCall,
        *args: Any,
    ) -> Decision:
        if self.cache is not None:
            cached = await self.cache.get(key)
            self.metrics.record_cache(kind, hit=cached is not None)
            if cached is not None:
                return cached.from_cache()

        decision, abstained = await self._evaluate(kind, username, call, *args)

        # A denial caused by an outage must not outlive the outage
        if self.cache is not None and (decision.allowed or not abstained):
            await self.cache.set(key, decision, kind)

        self.metrics.record_decision(kind, decision.allowed)
        logger.debug(
            "decision",
            kind=kind.value,
            username=username,
            allowed=decision.allowed,
            backend=decision.backend,
        )
        return decision

    async def _decide_acl(self, username: str, topic: str, client_id: str, access: Access) -> Decision:
        if not self.disable_superuser:
            superuser = await self._decide(
                CheckKind.SUPERUSER,
                make_key(CheckKind.SUPERUSER, username),
                username,
                lambda backend: backend.is_superuser,
                username,
            )
            if superuser.allowed:
                return superuser

        return await self._decide(
            CheckKind.ACL,
            make_key(CheckKind.ACL, username, topic=topic, client_id=client_id, access=access),
            username,
            lambda backend: backend.check_acl,
            username,
            topic,
            client_id,
            access,
        )

    async def decide(
        self,
        kind: CheckKind,
        username: str,
        password: Optional[str] = None,
        topic: Optional[str] = None,
        client_id: Optional[str] = None,
        access: Union[Access, int, str, None] = None,
    ) -> Decision:
        """
        Produce a decision with provenance. Never raises; fails closed.

        Args:
            kind: AUTH, SUPERUSER or ACL
            username: Client username
            password: Client password (AUTH only)
            topic: Requested topic (ACL only)
            client_id: Client identifier (ACL only)
            access: Requested access, READ or WRITE (ACL only)
        """
        if self._closed:
            return DENIED

        username = username or ""
        try:
            if kind == CheckKind.AUTH:
                password = password or ""
                return await self._decide(
                    kind,
                    make_key(kind, username, password=password),
                    username,
                    lambda backend: backend.authenticate,
                    username,
                    password,
                )

            if kind == CheckKind.SUPERUSER:
                if self.disable_superuser:
                    return DENIED
                return await self._decide(
                    kind,
                    make_key(kind, username),
                    username,
                    lambda backend: backend.is_superuser,
                    username,
                )

            try:
                requested = Access.parse(access)
            except (ValueError, TypeError):
                logger.warning("invalid_access_requested", access=str(access))
                return DENIED
            if requested == Access.READWRITE:
                logger.warning("invalid_access_requested", access=str(access))
                return DENIED
            return await self._decide_acl(username, topic or "", client_id or "", requested)

        except Exception:
            logger.exception("decision_failed", kind=CheckKind(kind).value)
            return DENIED

    # =========================================================================
    # Public operations
    # =========================================================================

    async def authenticate(self, username: str, password: str) -> bool:
        decision = await self.decide(CheckKind.AUTH, username, password=password)
        return decision.allowed

    async def is_superuser(self, username: str) -> bool:
        decision = await self.decide(CheckKind.SUPERUSER, username)
        return decision.allowed

    async def check_acl(
        self,
        username: str,
        topic: str,
        client_id: str,
        access: Union[Access, int, str],
    ) -> bool:
        decision = await self.decide(
            CheckKind.ACL,
            username,
            topic=topic,
            client_id=client_id,
            access=access,
        )
        return decision.allowed

    async def shutdown(self) -> None:
        """Close every backend and the cache. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        for backend in self._backends:
            try:
                await backend.close()
            except Exception as e:
                logger.error("backend_close_failed", backend=backend.name, error=str(e))

        if self.cache is not None:
            try:
                await self.cache.close()
            except Exception as e:
                logger.error("cache_close_failed", error=str(e))

        logger.info("orchestrator_shutdown", backends=[b.name for b in self._backends])

    async def __aenter__(self) -> "Orchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.shutdown()
        return False
