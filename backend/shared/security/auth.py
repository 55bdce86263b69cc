"""
Authentication and authorization utilities.

Customer and staff identities come from an external auth layer as HS256
JWTs. This module only verifies them and maps the claims to CurrentUser;
sign_jwt exists for local development and tests.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Depends, Header, HTTPException, status

from shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET, settings
from shared.config.logging import get_logger
from shared.utils.exceptions import ForbiddenError
from shared.utils.schemas import CurrentUser

logger = get_logger(__name__)


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign a JWT with the given claims.

    Args:
        payload: Claims to include (sub, email, name, is_admin).
        ttl_seconds: Token lifetime. Defaults to the access token expiry.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError as e:
        # Log the real reason, return a generic message
        logger.warning("JWT validation failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing subject claim",
        )
    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: Bearer <token>",
        )
    return authorization.split(" ", 1)[1].strip()


# =============================================================================
# FastAPI dependencies
# =============================================================================


def current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> CurrentUser:
    """
    FastAPI dependency resolving the caller's identity.

    Usage:
        @router.get("/orders")
        def my_orders(user: CurrentUser = Depends(current_user)):
            ...
    """
    payload = verify_jwt(get_bearer_token(authorization))
    return CurrentUser(
        id=payload["sub"],
        email=payload.get("email"),
        name=payload.get("name"),
        is_admin=bool(payload.get("is_admin", False)),
    )


def require_admin(user: CurrentUser = Depends(current_user)) -> CurrentUser:
    """Dependency for staff-only endpoints."""
    if not user.is_admin:
        raise ForbiddenError("access admin endpoints", user_id=user.id)
    return user
