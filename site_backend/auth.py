"""
Bearer-token guard for the admin-only endpoints.

Tokens are issued elsewhere; this only checks them. With no ``jwt_secret``
configured the guard is off.
"""

from __future__ import annotations

from typing import Any, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from site_backend.config import Settings


bearer = HTTPBearer(auto_error=False)


def decode_token(token: str, settings: Settings) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            leeway=settings.jwt_exp_leeway_seconds,
        )
    except jwt.PyJWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Token invalid or expired"
        ) from exc


def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[dict[str, Any]]:
    """Return the token claims, or None when the guard is disabled."""
    settings: Settings = request.app.state.context.settings
    if not settings.jwt_secret:
        return None
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")
    return decode_token(credentials.credentials, settings)
