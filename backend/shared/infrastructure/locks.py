"""
Keyed lock registry for serializing read-modify-write cycles.

Stock adjustments are serialized per stock item name and coupon claims per
customer. Services run in FastAPI's worker threads, so these are
threading locks, re-entrant so a service holding a key may call another
service that takes the same key.

LOCK ORDERING:
==============
acquire_many() always takes locks in sorted key order. Code that needs more
than one key MUST go through acquire_many() rather than nesting acquire()
calls in arbitrary order, otherwise two checkouts touching the same stock
items in different orders can deadlock.

Key namespaces, in the order they sort:
- loyalty:<customer_id>   claim eligibility and redemption
- menu:availability       whole-catalog availability recomputation
- stock:<name>            one stock item read-modify-write

Every stock write recomputes availability inline, so stock writers take
menu:availability together with their stock keys.

The registry is process-local. Deployments with more than one worker
process rely on the row locks taken with SELECT ... FOR UPDATE.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager, ExitStack

from shared.config.logging import get_logger

logger = get_logger(__name__)


def stock_lock_key(stock_item_name: str) -> str:
    return f"stock:{stock_item_name}"


def loyalty_lock_key(customer_id: str) -> str:
    return f"loyalty:{customer_id}"


def catalog_lock_key() -> str:
    # Whole-catalog availability recomputation
    return "menu:availability"


class KeyedLockRegistry:
    """
    Manages one RLock per string key.

    Each key tracks how many callers are holding or waiting on it, and locks
    with no users are dropped once the cache passes cleanup_threshold, so the
    dictionary does not grow without bound as customers claim coupons.
    """

    def __init__(self, cleanup_threshold: int = 1000):
        self._cleanup_threshold = cleanup_threshold
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = {}
        # Guards the dictionaries, never held while waiting on a key
        self._meta_lock = threading.Lock()
        self._locks_cleaned = 0

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    @property
    def locks_cleaned_total(self) -> int:
        return self._locks_cleaned

    def _checkout(self, key: str) -> threading.RLock:
        with self._meta_lock:
            lock = self._locks.get(key)
            if lock is None:
                if len(self._locks) >= self._cleanup_threshold:
                    self._cleanup_unused_locks()
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._meta_lock:
            self._users[key] -= 1

    @contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        """Hold the lock for a single key."""
        lock = self._checkout(key)
        try:
            with lock:
                yield
        finally:
            self._checkin(key)

    @contextmanager
    def acquire_many(self, keys: Iterable[str]) -> Iterator[list[str]]:
        """
        Hold the locks for several keys at once.

        Keys are de-duplicated and taken in sorted order. Yields the ordered
        key list so callers can log what they hold.
        """
        ordered = sorted(set(keys))
        with ExitStack() as stack:
            for key in ordered:
                stack.enter_context(self.acquire(key))
            yield ordered

    def _cleanup_unused_locks(self) -> None:
        """Drop locks with no holders or waiters. Called under _meta_lock."""
        removable = [key for key in self._locks if self._users.get(key, 0) == 0]
        for key in removable:
            del self._locks[key]
            self._users.pop(key, None)
        self._locks_cleaned += len(removable)
        if removable:
            logger.debug("Cleaned up idle locks", count=len(removable))


_registry: KeyedLockRegistry | None = None
_registry_lock = threading.Lock()


def get_lock_registry() -> KeyedLockRegistry:
    """Get the process-wide lock registry (singleton)."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = KeyedLockRegistry()
    return _registry
