"""
Password Verification
=====================
Constant-time verification of plaintext passwords against stored hashes.
"""

import asyncio
import hashlib
import hmac
from functools import partial
from typing import Callable, Dict, Union

import bcrypt
import structlog
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from mqauth_core.errors import MalformedHash
from .hasher import get_cached_argon2_hasher
from .models import HashAlgorithm, HashDescriptor, SaltEncoding
from .parser import algorithm_tag, parse_hash

logger = structlog.get_logger(__name__)


def _verify_pbkdf2(password: bytes, descriptor: HashDescriptor) -> bool:
    derived = hashlib.pbkdf2_hmac(
        descriptor.digest,
        password,
        descriptor.salt,
        descriptor.iterations,
        dklen=descriptor.key_length,
    )
    return hmac.compare_digest(derived, descriptor.hash)


def _verify_sha(password: bytes, descriptor: HashDescriptor) -> bool:
    derived = hashlib.new(descriptor.digest, descriptor.salt + password).digest()
    return hmac.compare_digest(derived, descriptor.hash)


def _verify_bcrypt(password: bytes, descriptor: HashDescriptor) -> bool:
    try:
        return bcrypt.checkpw(password, descriptor.encoded.encode("utf-8"))
    except ValueError:
        raise MalformedHash("bcrypt rejected the stored hash")


def _verify_argon2(password: bytes, descriptor: HashDescriptor) -> bool:
    try:
        return get_cached_argon2_hasher().verify(descriptor.encoded, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError):
        raise MalformedHash("argon2 rejected the stored hash")


def _verify_unknown(password: bytes, descriptor: HashDescriptor) -> bool:
    return False


_VERIFIERS: Dict[HashAlgorithm, Callable[[bytes, HashDescriptor], bool]] = {
    HashAlgorithm.PBKDF2: _verify_pbkdf2,
    HashAlgorithm.SHA: _verify_sha,
    HashAlgorithm.BCRYPT: _verify_bcrypt,
    HashAlgorithm.ARGON2: _verify_argon2,
    HashAlgorithm.UNKNOWN: _verify_unknown,
}


def verify_password(
    password: str,
    stored: str,
    salt_encoding: Union[SaltEncoding, str] = SaltEncoding.BASE64,
) -> bool:
    """
    Verify a password against a stored hash string.

    Malformed or unknown hashes never raise; they fail verification.

    Args:
        password: Plain text password
        stored: Stored hash (PBKDF2, SHA, bcrypt or argon2 format)
        salt_encoding: Encoding of the salt segment for PBKDF2/SHA strings

    Returns:
        True if the password matches
    """
    if not password or not stored:
        return False

    try:
        descriptor = parse_hash(stored, salt_encoding)
        if descriptor.algorithm == HashAlgorithm.UNKNOWN:
            logger.warning("unknown_hash_algorithm", tag=algorithm_tag(stored)[:16])
            return False
        return _VERIFIERS[descriptor.algorithm](password.encode("utf-8"), descriptor)
    except MalformedHash as e:
        logger.warning("malformed_hash", tag=algorithm_tag(stored)[:16], error=str(e))
        return False


async def verify_password_async(
    password: str,
    stored: str,
    salt_encoding: Union[SaltEncoding, str] = SaltEncoding.BASE64,
) -> bool:
    """Async version of verify_password; key derivation runs in the executor."""
    if not password or not stored:
        return False

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, partial(verify_password, password, stored, salt_encoding)
    )
