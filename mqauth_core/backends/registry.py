"""
Backend Registry
================
Builds backends from their configured names.
"""

from typing import Any, Callable, Dict, List, Mapping, Sequence

import structlog

from mqauth_core.errors import ConfigError
from .base import Backend, BackendKind
from .files import FilesBackend
from .http import HTTPBackend
from .jwt_backend import JWTBackend
from .redis_backend import RedisBackend
from .sql import SQLBackend

logger = structlog.get_logger(__name__)

BackendFactory = Callable[[Mapping[str, Any], str], Backend]

_FACTORIES: Dict[str, BackendFactory] = {
    BackendKind.FILES.value: lambda options, name: FilesBackend(options, name=name),
    BackendKind.REDIS.value: lambda options, name: RedisBackend(options, name=name),
    BackendKind.HTTP.value: lambda options, name: HTTPBackend(options, name=name),
    BackendKind.JWT.value: lambda options, name: JWTBackend(options, name=name),
    BackendKind.POSTGRES.value: lambda options, name: SQLBackend(options, BackendKind.POSTGRES, name=name),
    BackendKind.MYSQL.value: lambda options, name: SQLBackend(options, BackendKind.MYSQL, name=name),
    BackendKind.SQLITE.value: lambda options, name: SQLBackend(options, BackendKind.SQLITE, name=name),
}


def available_backends() -> List[str]:
    return sorted(_FACTORIES)


def build_backend(name: str, options: Mapping[str, Any]) -> Backend:
    """
    Construct one backend by name.

    Raises:
        ConfigError: If the name is unknown or mandatory options are missing
    """
    factory = _FACTORIES.get(name.lower())
    if factory is None:
        raise ConfigError(
            f"unknown backend {name!r}, expected one of {available_backends()}",
            option="backends",
        )
    backend = factory(options, name.lower())
    logger.info("backend_initialized", backend=backend.name, kind=backend.kind.value)
    return backend


def build_backends(names: Sequence[str], options: Mapping[str, Any]) -> List[Backend]:
    """Construct the backend chain in configured order."""
    return [build_backend(name, options) for name in names]
