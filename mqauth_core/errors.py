"""
Auth Errors
===========
Exception taxonomy shared by the verifier, the backends and the orchestrator.
"""

from typing import Optional


class AuthError(Exception):
    """Base exception for all mqauth-core errors."""
    pass


class ConfigError(AuthError):
    """Raised when mandatory options are missing or invalid."""

    def __init__(self, message: str, backend: Optional[str] = None, option: Optional[str] = None):
        self.message = message
        self.backend = backend
        self.option = option
        prefix = f"[{backend}] " if backend else ""
        super().__init__(f"{prefix}{message}")


class MalformedHash(AuthError):
    """Raised when a stored hash string cannot be parsed."""
    pass


class BackendUnavailable(AuthError):
    """Raised when a backend cannot produce a decision (I/O, timeouts)."""

    def __init__(self, message: str, backend: str = "unknown"):
        self.message = message
        self.backend = backend
        super().__init__(f"[{backend}] {message}")


class NotFound(AuthError):
    """No matching user or ACL row. A normal negative result."""
    pass
