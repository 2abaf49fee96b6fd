"""Utilities for issuing and validating access JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import Settings, get_settings

ALGORITHM = "HS256"


def issue_access_token(
    *, subject: str, role: str, settings: Settings | None = None
) -> tuple[str, int]:
    """Create a signed JWT representing an authenticated account.

    Parameters
    ----------
    subject:
        Account identifier to embed in the token `sub` claim.
    role:
        Authorization role copied verbatim from the account.
    settings:
        Configuration carrying the signing secret and TTL; defaults to the
        process settings.

    Returns
    -------
    tuple[str, int]
        A tuple containing the encoded JWT string and its TTL (in seconds).
    """

    settings = settings or get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + expires_in,
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer

    token = jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)
    return token, expires_in


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is invalid, expired, or signed by another issuer.
    """

    settings = settings or get_settings()
    options: dict[str, Any] = {"require": ["sub", "exp", "iat"]}
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        issuer=settings.jwt_issuer or None,
        options=options,
    )
