"""
mqauth-core
===========
Authentication and authorization for MQTT brokers.
"""

__version__ = "0.1.0"

# Errors
from mqauth_core.errors import (
    AuthError,
    ConfigError,
    MalformedHash,
    BackendUnavailable,
    NotFound,
)

# Decisions
from mqauth_core.models import (
    CheckKind,
    AggregationPolicy,
    Decision,
)

# Configuration
from mqauth_core.config import AuthSettings

# Hashing
from mqauth_core.hashing import (
    HashAlgorithm,
    HashDescriptor,
    SaltEncoding,
    parse_hash,
    verify_password,
    verify_password_async,
    hash_password,
)

# Topics
from mqauth_core.topics import (
    Access,
    AclRule,
    AclRequest,
    topic_matches,
    rules_permit,
)

# Backends
from mqauth_core.backends import (
    Backend,
    BackendKind,
    build_backend,
    build_backends,
)

# Cache
from mqauth_core.cache import (
    DecisionCache,
    MemoryDecisionCache,
    RedisDecisionCache,
)

# Orchestration
from mqauth_core.orchestrator import Orchestrator

# Logging
from mqauth_core.log_config import setup_logging

__all__ = [
    "__version__",
    # Errors
    "AuthError",
    "ConfigError",
    "MalformedHash",
    "BackendUnavailable",
    "NotFound",
    # Decisions
    "CheckKind",
    "AggregationPolicy",
    "Decision",
    # Configuration
    "AuthSettings",
    # Hashing
    "HashAlgorithm",
    "HashDescriptor",
    "SaltEncoding",
    "parse_hash",
    "verify_password",
    "verify_password_async",
    "hash_password",
    # Topics
    "Access",
    "AclRule",
    "AclRequest",
    "topic_matches",
    "rules_permit",
    # Backends
    "Backend",
    "BackendKind",
    "build_backend",
    "build_backends",
    # Cache
    "DecisionCache",
    "MemoryDecisionCache",
    "RedisDecisionCache",
    # Orchestration
    "Orchestrator",
    # Logging
    "setup_logging",
]
