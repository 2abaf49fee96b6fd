"""One-way password hashing backed by bcrypt."""

from __future__ import annotations

import bcrypt

BCRYPT_ROUNDS = 10
# bcrypt only consumes the first 72 bytes of a password.
_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash for ``password``."""
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a stored bcrypt hash.

    The comparison inside ``bcrypt.checkpw`` is constant-time.
    """
    return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
