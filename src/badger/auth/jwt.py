"""
Access token handling for tokens issued by the identity provider.

Tokens carry the user's UUID in ``sub`` and an ``is_admin`` claim. The engine
only verifies tokens; ``create_access_token`` exists for local tooling and tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from badger.config import get_settings


def create_access_token(user_id: uuid.UUID, is_admin: bool = False) -> str:
    """
    Create a short-lived access token.

    Args:
        user_id: The user's UUID.
        is_admin: Whether the user holds the admin role.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "is_admin": is_admin,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, of the wrong
            type, or its subject is not a UUID.
    """
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        options={"require": ["sub", "exp", "iss"]},
    )
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Invalid token type")
    try:
        uuid.UUID(payload["sub"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("Invalid subject") from e
    return payload
