"""
mqauth-pw
=========
Prints a stored hash string for seeding password files and databases.

    mqauth-pw -p secret
    mqauth-pw -p secret -a pbkdf2 -d sha256 -i 200000 -s 16 -l 32 -e utf-8
    mqauth-pw -p secret -a bcrypt -c 12
    mqauth-pw -p secret -a argon2
"""

import argparse
import sys
from typing import List, Optional

from mqauth_core.hashing import hash_password
from mqauth_core.hashing.hasher import (
    DEFAULT_BCRYPT_COST,
    DEFAULT_ITERATIONS,
    DEFAULT_KEY_LENGTH,
    DEFAULT_PBKDF2_DIGEST,
    DEFAULT_SALT_SIZE,
)

EXIT_OK = 0
EXIT_USAGE = 2

ALGORITHMS = ("pbkdf2", "sha", "bcrypt", "argon2")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mqauth-pw", description="Generate password hashes for mqauth-core")
    p.add_argument("-p", "--password", required=True, help="Password to hash")
    p.add_argument("-a", "--algorithm", choices=ALGORITHMS, default="pbkdf2")
    p.add_argument("-d", "--digest", help=f"Digest for pbkdf2/sha (default {DEFAULT_PBKDF2_DIGEST} / sha256)")
    p.add_argument("-i", "--iterations", type=int, default=DEFAULT_ITERATIONS, help="PBKDF2 iterations")
    p.add_argument("-s", "--salt-size", type=int, default=DEFAULT_SALT_SIZE, help="Salt size in bytes")
    p.add_argument("-l", "--key-length", type=int, default=DEFAULT_KEY_LENGTH, help="PBKDF2 key length in bytes")
    p.add_argument("-e", "--salt-encoding", choices=("base64", "utf-8"), default="base64")
    p.add_argument("-c", "--cost", type=int, default=DEFAULT_BCRYPT_COST, help="bcrypt cost factor")
    return p


def make_hash(args: argparse.Namespace) -> str:
    if args.algorithm == "pbkdf2":
        return hash_password(
            args.password,
            "pbkdf2",
            digest=args.digest or DEFAULT_PBKDF2_DIGEST,
            iterations=args.iterations,
            salt_size=args.salt_size,
            key_length=args.key_length,
            salt_encoding=args.salt_encoding,
        )
    if args.algorithm == "sha":
        return hash_password(
            args.password,
            "sha",
            digest=args.digest or "sha256",
            salt_size=args.salt_size,
            salt_encoding=args.salt_encoding,
        )
    if args.algorithm == "bcrypt":
        return hash_password(args.password, "bcrypt", cost=args.cost)
    return hash_password(args.password, "argon2")


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        print(make_hash(args))
    except ValueError as e:
        print(f"mqauth-pw: {e}", file=sys.stderr)
        return EXIT_USAGE
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
