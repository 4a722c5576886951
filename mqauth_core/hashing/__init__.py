"""
mqauth-core - Password Hashing
==============================
Verification of stored password hashes for broker clients.

Supported formats:
- PBKDF2$<digest>$<iterations>$<salt>$<hash>  (sha256/sha512)
- SHA$<digest>$<salt>$<hash>                  (salted sha1/sha256/sha512)
- bcrypt ($2a$, $2b$, $2y$)
- argon2 ($argon2id$, $argon2i$)

Unparseable or unknown hashes always fail verification.
"""

from .models import HashAlgorithm, HashDescriptor, SaltEncoding
from .parser import parse_hash, algorithm_tag
from .verifier import verify_password, verify_password_async
from .hasher import (
    get_cached_argon2_hasher,
    hash_password,
    hash_pbkdf2,
    hash_sha,
    hash_bcrypt,
    hash_argon2,
)

__all__ = [
    # Models
    "HashAlgorithm",
    "HashDescriptor",
    "SaltEncoding",
    # Parsing
    "parse_hash",
    "algorithm_tag",
    # Verification
    "verify_password",
    "verify_password_async",
    # Hashing
    "get_cached_argon2_hasher",
    "hash_password",
    "hash_pbkdf2",
    "hash_sha",
    "hash_bcrypt",
    "hash_argon2",
]
