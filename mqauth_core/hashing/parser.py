"""
Hash Parser
===========
Tagged-variant parser for stored hash strings.

Formats:
    PBKDF2$<digest>$<iterations>$<salt>$<hash>
    SHA$<digest>$<salt>$<hash>
    $2b$<cost>$<salt+hash>            (bcrypt modular crypt)
    $argon2id$v=19$m=..,t=..,p=..$<salt>$<hash>   (argon2 PHC)
"""

import base64
import binascii
from typing import Callable, Dict, List, Union

from mqauth_core.errors import MalformedHash
from .models import (
    ARGON2_PREFIXES,
    BCRYPT_MAX_COST,
    BCRYPT_MIN_COST,
    BCRYPT_PREFIXES,
    PBKDF2_DIGESTS,
    SHA_DIGESTS,
    HashAlgorithm,
    HashDescriptor,
    SaltEncoding,
)


def _b64decode(segment: str, what: str) -> bytes:
    try:
        return base64.b64decode(segment.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raise MalformedHash(f"{what} is not valid base64")


def _decode_salt(segment: str, salt_encoding: SaltEncoding) -> bytes:
    if salt_encoding == SaltEncoding.UTF8:
        return segment.encode("utf-8")
    return _b64decode(segment, "salt")


def _parse_pbkdf2(stored: str, parts: List[str], salt_encoding: SaltEncoding) -> HashDescriptor:
    if len(parts) != 5:
        raise MalformedHash(f"PBKDF2 hash needs 5 segments, got {len(parts)}")

    _, digest, iterations, salt, hashed = parts
    if digest not in PBKDF2_DIGESTS:
        raise MalformedHash(f"unsupported PBKDF2 digest {digest!r}")
    if not iterations.isdigit() or int(iterations) <= 0:
        raise MalformedHash("PBKDF2 iterations must be a positive integer")

    key = _b64decode(hashed, "hash")
    if not key:
        raise MalformedHash("PBKDF2 hash segment is empty")

    return HashDescriptor(
        algorithm=HashAlgorithm.PBKDF2,
        encoded=stored,
        digest=digest,
        iterations=int(iterations),
        salt=_decode_salt(salt, salt_encoding),
        hash=key,
    )


def _parse_sha(stored: str, parts: List[str], salt_encoding: SaltEncoding) -> HashDescriptor:
    if len(parts) != 4:
        raise MalformedHash(f"SHA hash needs 4 segments, got {len(parts)}")

    _, digest, salt, hashed = parts
    if digest not in SHA_DIGESTS:
        raise MalformedHash(f"unsupported SHA digest {digest!r}")

    return HashDescriptor(
        algorithm=HashAlgorithm.SHA,
        encoded=stored,
        digest=digest,
        salt=_decode_salt(salt, salt_encoding),
        hash=_b64decode(hashed, "hash"),
    )


def _parse_bcrypt(stored: str, parts: List[str], salt_encoding: SaltEncoding) -> HashDescriptor:
    # "", "2b", "<cost>", "<22 char salt><31 char hash>"
    if len(parts) != 4 or len(parts[3]) != 53:
        raise MalformedHash("bcrypt hash is not in modular crypt format")

    cost = parts[2]
    if len(cost) != 2 or not cost.isdigit() or not BCRYPT_MIN_COST <= int(cost) <= BCRYPT_MAX_COST:
        raise MalformedHash(f"bcrypt cost must be {BCRYPT_MIN_COST}..{BCRYPT_MAX_COST}, got {cost!r}")

    return HashDescriptor(
        algorithm=HashAlgorithm.BCRYPT,
        encoded=stored,
        iterations=int(cost),
    )


def _parse_argon2(stored: str, parts: List[str], salt_encoding: SaltEncoding) -> HashDescriptor:
    # "", "argon2id", "v=19", "m=..,t=..,p=..", "<salt>", "<hash>"
    if len(parts) != 6:
        raise MalformedHash(f"argon2 hash needs 6 segments, got {len(parts)}")

    params = dict(
        item.split("=", 1) for item in parts[3].split(",") if "=" in item
    )
    if not params.get("t", "").isdigit():
        raise MalformedHash("argon2 hash has no time cost")

    return HashDescriptor(
        algorithm=HashAlgorithm.ARGON2,
        encoded=stored,
        digest=parts[1],
        iterations=int(params["t"]),
    )


_Parser = Callable[[str, List[str], SaltEncoding], HashDescriptor]

_PARSERS: Dict[str, _Parser] = {
    "PBKDF2": _parse_pbkdf2,
    "SHA": _parse_sha,
    **{prefix: _parse_bcrypt for prefix in BCRYPT_PREFIXES},
    **{prefix: _parse_argon2 for prefix in ARGON2_PREFIXES},
}


def algorithm_tag(stored: str) -> str:
    """Return the algorithm tag of a stored hash ("" when there is none)."""
    parts = stored.split("$")
    if stored.startswith("$"):
        return parts[1] if len(parts) > 1 else ""
    return parts[0]


def parse_hash(
    stored: str,
    salt_encoding: Union[SaltEncoding, str] = SaltEncoding.BASE64,
) -> HashDescriptor:
    """
    Parse a stored hash string into a HashDescriptor.

    Unknown tags produce an UNKNOWN descriptor, which never verifies.

    Raises:
        MalformedHash: If a known format has the wrong shape
    """
    if not stored:
        raise MalformedHash("stored hash is empty")

    salt_encoding = SaltEncoding(salt_encoding)
    tag = algorithm_tag(stored)
    parser = _PARSERS.get(tag)
    if parser is None:
        return HashDescriptor(algorithm=HashAlgorithm.UNKNOWN, encoded=stored)

    return parser(stored, stored.split("$"), salt_encoding)
