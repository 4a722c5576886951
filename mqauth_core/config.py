"""
Configuration
=============
Settings for the orchestrator and option helpers for backend construction.

Options follow the flat key/value style of mosquitto plugin options:

    backends = files, postgres
    cache = true
    auth_cache_seconds = 30
    acl_policy = any
    pg_host = localhost
    ...

Everything that is not an orchestrator setting is handed to the backends.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from mqauth_core.errors import ConfigError
from mqauth_core.hashing.models import SaltEncoding
from mqauth_core.models import AggregationPolicy


# =============================================================================
# Option helpers
# =============================================================================

def require_options(options: Mapping[str, Any], names: Sequence[str], backend: str) -> None:
    """Fail construction with a descriptive error when mandatory options are missing."""
    missing = [name for name in names if not str(options.get(name) or "").strip()]
    if missing:
        raise ConfigError(
            f"missing mandatory option(s): {', '.join(missing)}",
            backend=backend,
            option=missing[0],
        )


def option_str(options: Mapping[str, Any], name: str, default: Optional[str] = None) -> Optional[str]:
    value = options.get(name)
    if value is None or value == "":
        return default
    return str(value)


def option_int(options: Mapping[str, Any], name: str, default: int, backend: Optional[str] = None) -> int:
    value = options.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"option {name} must be an integer, got {value!r}", backend=backend, option=name)


def option_float(options: Mapping[str, Any], name: str, default: float, backend: Optional[str] = None) -> float:
    value = options.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"option {name} must be a number, got {value!r}", backend=backend, option=name)


def option_bool(options: Mapping[str, Any], name: str, default: bool = False) -> bool:
    value = options.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def option_list(options: Mapping[str, Any], name: str) -> List[str]:
    """Read a comma separated (or already split) list option."""
    value = options.get(name)
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


def option_salt_encoding(options: Mapping[str, Any], backend: Optional[str] = None) -> str:
    """Read salt_encoding, failing construction on values the hash parser cannot use."""
    value = option_str(options, "salt_encoding", SaltEncoding.BASE64.value)
    try:
        return SaltEncoding(value.strip().lower()).value
    except ValueError:
        raise ConfigError(
            f"option salt_encoding must be base64 or utf-8, got {value!r}",
            backend=backend,
            option="salt_encoding",
        )


def _policy(options: Mapping[str, Any], name: str) -> AggregationPolicy:
    value = option_str(options, name, AggregationPolicy.ANY.value)
    try:
        return AggregationPolicy(value.strip().lower())
    except ValueError:
        raise ConfigError(f"option {name} must be 'any' or 'all', got {value!r}", option=name)


# =============================================================================
# Settings
# =============================================================================

CACHE_TYPES = ("memory", "redis")


@dataclass
class AuthSettings:
    """Orchestrator settings plus the raw options handed to backends."""
    backends: List[str]
    cache_enabled: bool = False
    cache_type: str = "memory"
    auth_cache_seconds: float = 30.0
    acl_cache_seconds: float = 30.0
    cache_jitter_seconds: float = 0.0
    cache_max_entries: int = 10000
    cache_redis_host: str = "localhost"
    cache_redis_port: int = 6379
    cache_redis_db: int = 3
    cache_redis_password: Optional[str] = None
    auth_policy: AggregationPolicy = AggregationPolicy.ANY
    superuser_policy: AggregationPolicy = AggregationPolicy.ANY
    acl_policy: AggregationPolicy = AggregationPolicy.ANY
    disable_superuser: bool = False
    check_prefix: bool = False
    prefixes: Dict[str, str] = field(default_factory=dict)
    breaker_fail_threshold: int = 5
    breaker_timeout: float = 30.0
    salt_encoding: str = "base64"
    log_level: str = "INFO"
    log_json: bool = True
    backend_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "AuthSettings":
        """
        Build settings from a flat option mapping.

        Raises:
            ConfigError: If mandatory settings are missing or invalid
        """
        backends = [name.lower() for name in option_list(options, "backends")]
        if not backends:
            raise ConfigError("missing mandatory option: backends", option="backends")
        if len(set(backends)) != len(backends):
            raise ConfigError(f"duplicate backends configured: {backends}", option="backends")

        cache_type = option_str(options, "cache_type", "memory").lower()
        if cache_type not in CACHE_TYPES:
            raise ConfigError(f"option cache_type must be one of {CACHE_TYPES}", option="cache_type")

        check_prefix = option_bool(options, "check_prefix")
        prefixes: Dict[str, str] = {}
        if check_prefix:
            prefix_list = option_list(options, "prefixes")
            if len(prefix_list) != len(backends):
                raise ConfigError(
                    "option prefixes must list one prefix per backend",
                    option="prefixes",
                )
            prefixes = dict(zip(backends, prefix_list))

        salt_encoding = option_salt_encoding(options)

        return cls(
            backends=backends,
            cache_enabled=option_bool(options, "cache"),
            cache_type=cache_type,
            auth_cache_seconds=option_float(options, "auth_cache_seconds", 30.0),
            acl_cache_seconds=option_float(options, "acl_cache_seconds", 30.0),
            cache_jitter_seconds=option_float(options, "cache_jitter_seconds", 0.0),
            cache_max_entries=option_int(options, "cache_max_entries", 10000),
            cache_redis_host=option_str(options, "cache_redis_host", "localhost"),
            cache_redis_port=option_int(options, "cache_redis_port", 6379),
            cache_redis_db=option_int(options, "cache_redis_db", 3),
            cache_redis_password=option_str(options, "cache_redis_password"),
            auth_policy=_policy(options, "auth_policy"),
            superuser_policy=_policy(options, "superuser_policy"),
            acl_policy=_policy(options, "acl_policy"),
            disable_superuser=option_bool(options, "disable_superuser"),
            check_prefix=check_prefix,
            prefixes=prefixes,
            breaker_fail_threshold=option_int(options, "breaker_fail_threshold", 5),
            breaker_timeout=option_float(options, "breaker_timeout", 30.0),
            salt_encoding=salt_encoding,
            log_level=option_str(options, "log_level", "INFO").upper(),
            log_json=option_bool(options, "log_json", True),
            backend_options={
                **dict(options),
                "salt_encoding": salt_encoding,
            },
        )

    @classmethod
    def from_env(cls, prefix: str = "MQAUTH_", environ: Optional[Mapping[str, str]] = None) -> "AuthSettings":
        """
        Build settings from environment variables.

        MQAUTH_BACKENDS=files,redis becomes the option backends=files,redis.
        """
        environ = os.environ if environ is None else environ
        options = {
            key[len(prefix):].lower(): value
            for key, value in environ.items()
            if key.startswith(prefix)
        }
        return cls.from_options(options)
