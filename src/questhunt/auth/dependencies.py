"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from questhunt.auth.jwt import verify_token
from questhunt.auth.principal import Access, Principal
from questhunt.errors import Unauthenticated

_bearer = HTTPBearer(auto_error=False)


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> Principal:
    """
    Extract and verify the bearer token, return the caller.

    Raises Unauthenticated (401) for a missing, malformed or invalid token.
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthenticated("Missing or malformed Authorization header")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise Unauthenticated(f"Invalid or expired token: {e}") from e
    return Principal(id=str(payload["sub"]), email=payload.get("email"))


async def get_scoped_access(principal: Principal = Depends(get_principal)) -> Access:
    """Caller-scoped data access for ownership-enforced reads and writes."""
    return Access.scoped_to(principal)
