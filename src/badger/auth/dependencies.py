"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from badger.auth.identity import Identity
from badger.auth.jwt import verify_token
from badger.errors import AdminRequired

_bearer = HTTPBearer(auto_error=False)

async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> Identity:
    """Extract and verify the bearer token. Raises 401 on failure."""
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"}) from e

    return Identity(user_id=uuid.UUID(payload["sub"]), is_admin=bool(payload.get("is_admin", False)))


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Same as get_identity but additionally requires the admin role."""
    if not identity.is_admin:
        raise AdminRequired()
    return identity
