"""
Password Hasher
===============
Hash generation for every supported format.

Used to seed credential stores (see the mqauth-pw utility) and by tests.
"""

import base64
import hashlib
import secrets
from functools import lru_cache
from typing import Tuple, Union

import bcrypt
from argon2 import PasswordHasher, Type

from .models import PBKDF2_DIGESTS, SHA_DIGESTS, HashAlgorithm, SaltEncoding

DEFAULT_PBKDF2_DIGEST = "sha512"
DEFAULT_ITERATIONS = 100000
DEFAULT_SALT_SIZE = 16
DEFAULT_KEY_LENGTH = 64
DEFAULT_BCRYPT_COST = 10


@lru_cache(maxsize=1)
def get_cached_argon2_hasher() -> PasswordHasher:
    """Get cached Argon2id hasher instance."""
    return PasswordHasher(
        time_cost=3,        # Number of iterations
        memory_cost=65536,  # 64MB memory (64 * 1024 KB)
        parallelism=4,
        hash_len=32,
        salt_len=16,
        type=Type.ID,
    )


def _new_salt(salt_size: int, salt_encoding: SaltEncoding) -> Tuple[bytes, str]:
    """Return (salt bytes used for derivation, salt segment as stored)."""
    if salt_encoding == SaltEncoding.UTF8:
        segment = secrets.token_urlsafe(salt_size)[:salt_size]
        return segment.encode("utf-8"), segment

    raw = secrets.token_bytes(salt_size)
    return raw, base64.b64encode(raw).decode("ascii")


def hash_pbkdf2(
    password: str,
    digest: str = DEFAULT_PBKDF2_DIGEST,
    iterations: int = DEFAULT_ITERATIONS,
    salt_size: int = DEFAULT_SALT_SIZE,
    key_length: int = DEFAULT_KEY_LENGTH,
    salt_encoding: Union[SaltEncoding, str] = SaltEncoding.BASE64,
) -> str:
    """Hash a password as PBKDF2$<digest>$<iterations>$<salt>$<hash>."""
    if digest not in PBKDF2_DIGESTS:
        raise ValueError(f"Unsupported PBKDF2 digest: {digest}")
    if iterations <= 0 or key_length <= 0 or salt_size <= 0:
        raise ValueError("iterations, key_length and salt_size must be positive")

    salt, salt_segment = _new_salt(salt_size, SaltEncoding(salt_encoding))
    key = hashlib.pbkdf2_hmac(digest, password.encode("utf-8"), salt, iterations, dklen=key_length)
    encoded_key = base64.b64encode(key).decode("ascii")
    return f"PBKDF2${digest}${iterations}${salt_segment}${encoded_key}"


def hash_sha(
    password: str,
    digest: str = "sha256",
    salt_size: int = DEFAULT_SALT_SIZE,
    salt_encoding: Union[SaltEncoding, str] = SaltEncoding.BASE64,
) -> str:
    """Hash a password as SHA$<digest>$<salt>$<hash>."""
    if digest not in SHA_DIGESTS:
        raise ValueError(f"Unsupported SHA digest: {digest}")

    salt, salt_segment = _new_salt(salt_size, SaltEncoding(salt_encoding))
    hashed = hashlib.new(digest, salt + password.encode("utf-8")).digest()
    return f"SHA${digest}${salt_segment}${base64.b64encode(hashed).decode('ascii')}"


def hash_bcrypt(password: str, cost: int = DEFAULT_BCRYPT_COST) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("ascii")


def hash_argon2(password: str) -> str:
    """Hash a password with Argon2id."""
    return get_cached_argon2_hasher().hash(password)


def hash_password(
    password: str,
    algorithm: Union[HashAlgorithm, str] = HashAlgorithm.PBKDF2,
    **kwargs,
) -> str:
    """
    Hash a password in any supported format.

    Args:
        password: Plain text password to hash
        algorithm: pbkdf2, sha, bcrypt or argon2
        **kwargs: Algorithm specific parameters (digest, iterations, ...)

    Returns:
        Stored hash string
    """
    if not password:
        raise ValueError("Password cannot be empty")

    name = algorithm.value if isinstance(algorithm, HashAlgorithm) else str(algorithm)
    name = name.lower()

    if name == "pbkdf2":
        return hash_pbkdf2(password, **kwargs)
    if name == "sha":
        return hash_sha(password, **kwargs)
    if name == "bcrypt":
        return hash_bcrypt(password, **kwargs)
    if name == "argon2":
        return hash_argon2(password)

    raise ValueError(f"Unsupported hash algorithm: {algorithm}")
