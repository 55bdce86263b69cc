"""
Security module: JWT verification, admin guard, rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user,
    require_admin,
)
from shared.security.rate_limit import (
    limiter,
    rate_limit_exceeded_handler,
    user_or_ip_key,
)

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user",
    "require_admin",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
    "user_or_ip_key",
]
