"""
Decision Cache Contract
=======================
Request fingerprints and the interface shared by cache implementations.
"""

import hashlib
from typing import Optional, Protocol, runtime_checkable

from mqauth_core.models import CheckKind, Decision
from mqauth_core.topics import Access


def make_key(
    kind: CheckKind,
    username: str,
    password: Optional[str] = None,
    topic: Optional[str] = None,
    client_id: Optional[str] = None,
    access: Optional[Access] = None,
) -> str:
    """
    Fingerprint a request.

    AUTH fingerprints cover the password so a cached success never admits a
    different password; only the digest is kept.
    """
    parts = [kind.value, username]
    if kind == CheckKind.AUTH:
        parts.append(password or "")
    elif kind == CheckKind.ACL:
        parts.extend([topic or "", client_id or "", str(int(access or 0))])

    return hashlib.sha256("\x00".join(parts).encode("utf-8")).hexdigest()


@runtime_checkable
class DecisionCache(Protocol):
    """Async cache of decisions keyed by request fingerprint."""

    async def get(self, key: str) -> Optional[Decision]:
        ...

    async def set(self, key: str, decision: Decision, kind: CheckKind) -> None:
        ...

    async def clear(self) -> None:
        ...

    async def close(self) -> None:
        ...
