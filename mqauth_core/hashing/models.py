"""
Hash Models
===========
Data models for stored password hashes.
"""

from dataclasses import dataclass
from enum import Enum


class HashAlgorithm(str, Enum):
    """Supported hash families."""
    PBKDF2 = "PBKDF2"
    BCRYPT = "bcrypt"
    SHA = "SHA"
    ARGON2 = "argon2"
    UNKNOWN = "unknown"


class SaltEncoding(str, Enum):
    """How the salt segment of PBKDF2/SHA strings is stored."""
    BASE64 = "base64"
    UTF8 = "utf-8"


# Inner digests accepted per family
PBKDF2_DIGESTS = ("sha256", "sha512")
SHA_DIGESTS = ("sha1", "sha256", "sha512")

BCRYPT_PREFIXES = ("2a", "2b", "2y")
BCRYPT_MIN_COST = 4
BCRYPT_MAX_COST = 31
ARGON2_PREFIXES = ("argon2id", "argon2i", "argon2d")


@dataclass(frozen=True)
class HashDescriptor:
    """Parsed form of a stored hash string."""
    algorithm: HashAlgorithm
    encoded: str
    digest: str = ""
    iterations: int = 0      # PBKDF2 rounds, bcrypt cost or argon2 time cost
    salt: bytes = b""
    hash: bytes = b""

    @property
    def key_length(self) -> int:
        return len(self.hash)

    def __repr__(self) -> str:
        # Keep key material out of tracebacks and logs
        return (
            f"HashDescriptor(algorithm={self.algorithm.value!r}, "
            f"digest={self.digest!r}, iterations={self.iterations})"
        )
