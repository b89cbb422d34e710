"""Password hashing helpers.

Stored hashes are self-describing (``pbkdf2_sha256$<iterations>$<salt>$<digest>``)
so the work factor can be raised without invalidating existing users.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
from typing import NamedTuple

SCHEME = "pbkdf2_sha256"
ITERATIONS = 390_000
_SALT_BYTES = 16


class _ParsedHash(NamedTuple):
    iterations: int
    salt: bytes
    digest: bytes


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _parse(stored_hash: str) -> _ParsedHash:
    try:
        scheme, iterations, salt_b64, digest_b64 = stored_hash.split("$")
        if scheme != SCHEME:
            raise ValueError(scheme)
        return _ParsedHash(int(iterations), base64.b64decode(salt_b64), base64.b64decode(digest_b64))
    except ValueError as exc:
        raise ValueError("Invalid stored password hash") from exc


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, *, iterations: int = ITERATIONS) -> str:
    """Return a salted PBKDF2 hash for *password*."""

    salt = os.urandom(_SALT_BYTES)
    digest = _derive(password, salt, iterations)
    return f"{SCHEME}${iterations}${_b64(salt)}${_b64(digest)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify *password* against the stored hash; malformed hashes never match."""

    try:
        parsed = _parse(stored_hash)
    except ValueError:
        return False
    check = _derive(password, parsed.salt, parsed.iterations)
    return hmac.compare_digest(parsed.digest, check)


def needs_rehash(stored_hash: str) -> bool:
    """Whether *stored_hash* was produced with a weaker work factor than today's."""

    try:
        return _parse(stored_hash).iterations < ITERATIONS
    except ValueError:
        return True
