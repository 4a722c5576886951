"""
Backend Contract
================
The capability set every credential store exposes to the orchestrator.

Backends are tagged with a BackendKind and satisfy the Backend protocol
structurally; there is no shared base class.
"""

from enum import Enum
from typing import Protocol, runtime_checkable

from mqauth_core.topics import Access


class BackendKind(str, Enum):
    """Credential store variants."""
    FILES = "files"
    REDIS = "redis"
    HTTP = "http"
    JWT = "jwt"
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"


@runtime_checkable
class Backend(Protocol):
    """
    Uniform shape of a credential store.

    "Not found" is a normal negative result (False). Connectivity and query
    failures raise BackendUnavailable.
    """

    name: str
    kind: BackendKind

    async def authenticate(self, username: str, password: str) -> bool:
        ...

    async def is_superuser(self, username: str) -> bool:
        ...

    async def check_acl(self, username: str, topic: str, client_id: str, access: Access) -> bool:
        ...

    async def close(self) -> None:
        ...
