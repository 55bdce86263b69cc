"""
Rate limiting utilities using slowapi.

Claim endpoints spend loyalty points, so they are limited per caller: the
JWT subject when a valid token is present, the client IP otherwise.
"""

import jwt
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET
from shared.config.logging import get_logger

logger = get_logger(__name__)


def user_or_ip_key(request: Request) -> str:
    """Rate limit key: 'user:<sub>' for authenticated callers, else the IP."""
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        try:
            payload = jwt.decode(
                token,
                JWT_SECRET,
                algorithms=["HS256"],
                audience=JWT_AUDIENCE,
                issuer=JWT_ISSUER,
            )
        except jwt.InvalidTokenError:
            # The endpoint's own auth dependency rejects it
            return get_remote_address(request)
        sub = payload.get("sub")
        if sub:
            return f"user:{sub}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_ip_key)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns a JSON response with retry information.
    """
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        key=user_or_ip_key(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Try again later.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(exc.detail)},
    )


# Usage in a router:
#
# @router.post("/coupons/{coupon_id}/claim")
# @limiter.limit(settings.claim_rate_limit)
# def claim(request: Request, ...):
#     ...
