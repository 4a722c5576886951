"""
ACL Models
==========
Data models for topic access rules and requests.
"""

from dataclasses import dataclass
from enum import IntFlag
from typing import Optional, Union


class Access(IntFlag):
    """Access bitmask as stored by credential stores."""
    NONE = 0
    READ = 1
    WRITE = 2
    READWRITE = 3

    @classmethod
    def parse(cls, value: Union["Access", int, str]) -> "Access":
        """Parse an access value from an int, a numeric string or a keyword."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in _KEYWORDS:
                return _KEYWORDS[text]
            if not text.isdigit():
                raise ValueError(f"Invalid access value: {value!r}")
            value = int(text)
        if value not in (1, 2, 3):
            raise ValueError(f"Invalid access value: {value!r}")
        return cls(value)


_KEYWORDS = {
    "read": Access.READ,
    "write": Access.WRITE,
    "readwrite": Access.READWRITE,
}


@dataclass(frozen=True)
class AclRule:
    """A topic pattern granted to a user (or to everyone, for pattern rules)."""
    pattern: str
    access: Access = Access.READWRITE
    username: Optional[str] = None

    @property
    def is_pattern_rule(self) -> bool:
        return self.username is None


@dataclass(frozen=True)
class AclRequest:
    """One authorization check."""
    username: str
    topic: str
    client_id: str
    access: Access
