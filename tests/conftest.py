"""
Shared fixtures for mqauth-core tests.
"""

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_backend():
    """Factory for backends with AsyncMock operations."""

    def _make(
        name: str,
        auth: Any = False,
        superuser: Any = False,
        acl: Any = False,
    ) -> MagicMock:
        from mqauth_core.backends import BackendKind

        backend = MagicMock()
        backend.name = name
        backend.kind = BackendKind.FILES

        def _mock(outcome: Any) -> AsyncMock:
            if isinstance(outcome, (BaseException, list)):
                return AsyncMock(side_effect=outcome)
            return AsyncMock(return_value=outcome)

        backend.authenticate = _mock(auth)
        backend.is_superuser = _mock(superuser)
        backend.check_acl = _mock(acl)
        backend.close = AsyncMock(return_value=None)
        return backend

    return _make


@pytest.fixture
def fast_pbkdf2():
    """Hash passwords with a low iteration count to keep tests quick."""

    def _hash(password: str, **kwargs: Any) -> str:
        from mqauth_core.hashing import hash_password

        kwargs.setdefault("iterations", 1000)
        return hash_password(password, "pbkdf2", **kwargs)

    return _hash


@pytest.fixture
def files_options(tmp_path, fast_pbkdf2):
    """Options for a files backend with users alice (pw: alicepw) and bob (pw: bobpw)."""

    def _make(acl: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
        passwords = tmp_path / "passwords"
        passwords.write_text(
            "# broker users\n"
            f"alice:{fast_pbkdf2('alicepw')}\n"
            f"bob:{fast_pbkdf2('bobpw')}\n",
            encoding="utf-8",
        )
        options: Dict[str, Any] = {"files_password_path": str(passwords)}
        if acl is not None:
            acl_file = tmp_path / "acls"
            acl_file.write_text(acl, encoding="utf-8")
            options["files_acl_path"] = str(acl_file)
        options.update(extra)
        return options

    return _make
