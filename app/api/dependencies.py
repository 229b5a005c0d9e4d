"""
app/api/dependencies.py

Shared FastAPI dependencies for request authentication.
"""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import AuthSettings, get_auth_settings

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: str | None
    role: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: AuthSettings = Depends(get_auth_settings),
) -> AuthenticatedUser:
    """
    Decode the bearer token; claims are trusted as issued, no user lookup.
    """

    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authentication required.")
    if not settings.jwt_secret:
        raise _unauthorized("Token verification is not configured.")

    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError as exc:
        raise _unauthorized("Invalid or expired token.") from exc

    user_id = claims.get("userId") or claims.get("sub")
    if not user_id:
        raise _unauthorized("Token is missing the user id claim.")
    return AuthenticatedUser(
        user_id=str(user_id),
        email=claims.get("email"),
        role=str(claims.get("role") or "").upper(),
    )


def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    settings: AuthSettings = Depends(get_auth_settings),
) -> AuthenticatedUser:
    if user.role not in settings.admin_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required.",
        )
    return user
