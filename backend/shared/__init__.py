"""
Shared module for code used across the storefront API.

STRUCTURE:
- shared.security: JWT verification, admin guard, rate limiting
  - auth.py: verify_jwt, current_user, require_admin
  - rate_limit.py: slowapi limiter keyed by user or IP

- shared.infrastructure: Database, locks and messaging
  - db.py: SQLAlchemy sessions, safe_commit()
  - locks.py: keyed in-process locks for stock and loyalty writes
  - correlation.py: X-Request-ID propagation
  - events/: Redis pub/sub, revision event publishing

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: OrderStatus, transitions, coupon types

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import current_user, require_admin
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, ORDER_TRANSITIONS
    from shared.utils.exceptions import NotFoundError, ConflictError
"""
