"""
Infrastructure module: database, locks and Redis/events.

Provides:
- Database sessions and transactions (db.py)
- Keyed locks for serializing stock and loyalty writes (locks.py)
- Request correlation IDs (correlation.py)
- Redis pub/sub for revision events (events/)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    safe_commit,
)
from shared.infrastructure.locks import get_lock_registry

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "get_db",
    "safe_commit",
    # locks
    "get_lock_registry",
]
