"""
mqauth-core - Backends
======================
Credential stores behind the orchestrator.

Every backend satisfies the Backend protocol and is tagged with a
BackendKind; the orchestrator depends only on the protocol.
"""

from .base import Backend, BackendKind
from .files import FilesBackend, parse_acl_file, parse_password_file
from .redis_backend import RedisBackend
from .http import HTTPBackend
from .jwt_backend import JWTBackend
from .sql import SQLBackend, convert_placeholders
from .registry import available_backends, build_backend, build_backends

__all__ = [
    # Contract
    "Backend",
    "BackendKind",
    # Adapters
    "FilesBackend",
    "RedisBackend",
    "HTTPBackend",
    "JWTBackend",
    "SQLBackend",
    # Helpers
    "parse_acl_file",
    "parse_password_file",
    "convert_placeholders",
    # Registry
    "available_backends",
    "build_backend",
    "build_backends",
]
