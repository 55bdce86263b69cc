"""
Concurrency tests: no overselling and no daily-cap overrun under parallel requests.

Uses a file-backed SQLite database so every worker thread gets its own
connection, the way FastAPI's threadpool does.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from storefront_api.models import Base, CustomerCoupon, Order, StockReservation
from storefront_api.seed import seed
from storefront_api.services.domain import LoyaltyService, OrderService, StockLedger
from shared.infrastructure.db import build_engine
from shared.infrastructure.locks import KeyedLockRegistry
from shared.utils.exceptions import DailyLimitExceededError, StockInsufficientError
from shared.utils.schemas import CartLine, PaymentConfirmation
from tests.conftest import delivered_order, make_coupon, menu_item, set_stock, stock_of


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'concurrency.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with factory() as db:
        seed(db)
    yield factory
    engine.dispose()


def run_parallel(fn, count: int) -> tuple[list, list[Exception]]:
    """Run fn(i) for i in range(count) on a thread pool, released together."""
    barrier = threading.Barrier(count)

    def task(i):
        barrier.wait()
        return fn(i)

    results, errors = [], []
    with ThreadPoolExecutor(max_workers=count) as pool:
        futures = [pool.submit(task, i) for i in range(count)]
        for future in futures:
            try:
                results.append(future.result())
            except Exception as e:  # collected for assertions
                errors.append(e)
    return results, errors


class TestNoOversell:
    def test_parallel_checkouts_never_oversell(self, session_factory):
        """Ten customers race for five steaks; exactly five orders go through."""
        with session_factory() as db:
            set_stock(db, "Steaks", reserve=2, active=3)
            steak_id = menu_item(db, "Steak Only").id

        def checkout(i):
            with session_factory() as db:
                order = OrderService(db).place_order(
                    f"cust-{i}",
                    [CartLine(menu_item_id=steak_id, quantity=1)],
                    payment=PaymentConfirmation(success=True, payment_id=f"pay_{i}"),
                )
                return order.id

        results, errors = run_parallel(checkout, 10)

        assert len(results) == 5
        assert len(errors) == 5
        assert all(isinstance(e, StockInsufficientError) for e in errors)
        with session_factory() as db:
            assert stock_of(db, "Steaks").total_quantity == 0
            assert db.scalar(select(func.count(Order.id))) == 5
            taken = db.scalar(
                select(func.sum(StockReservation.active_taken + StockReservation.reserve_taken))
            )
            assert taken == 5

    def test_parallel_adjustments_are_not_lost(self, session_factory):
        def bump(i):
            with session_factory() as db:
                StockLedger(db).adjust("Fries", delta_reserve=1, delta_active=1)

        _, errors = run_parallel(bump, 8)

        assert errors == []
        with session_factory() as db:
            fries = stock_of(db, "Fries")
            assert (fries.reserve_quantity, fries.active_quantity) == (8, 8)

    def test_cancel_racing_itself_restores_once(self, session_factory):
        with session_factory() as db:
            set_stock(db, "Steaks", reserve=0, active=4)
            order = OrderService(db).place_order(
                "cust-1",
                [CartLine(menu_item_id=menu_item(db, "Steak Only").id, quantity=3)],
                payment=PaymentConfirmation(success=True, payment_id="pay_1"),
            )
            order_id = order.id

        def cancel(i):
            with session_factory() as db:
                OrderService(db).cancel_order(order_id, actor_id=f"staff-{i}")

        _, errors = run_parallel(cancel, 4)

        assert errors == []
        with session_factory() as db:
            assert stock_of(db, "Steaks").total_quantity == 4


class TestDailyCapUnderContention:
    def test_parallel_claims_respect_daily_cap(self, session_factory):
        with session_factory() as db:
            delivered_order(db, "cust-1", 500_000)
            coupon_id = make_coupon(db, points_cost=10, max_per_account_per_day=2).id

        def claim(i):
            with session_factory() as db:
                return LoyaltyService(db).claim_coupon("cust-1", coupon_id).id

        results, errors = run_parallel(claim, 8)

        assert len(results) == 2
        assert len(errors) == 6
        assert all(isinstance(e, DailyLimitExceededError) for e in errors)
        with session_factory() as db:
            assert db.scalar(select(func.count(CustomerCoupon.id))) == 2
            assert LoyaltyService(db).points_balance("cust-1") == 480


class TestKeyedLockRegistry:
    def test_acquire_many_sorts_and_deduplicates(self):
        registry = KeyedLockRegistry()

        with registry.acquire_many(["stock:Fries", "loyalty:c1", "stock:Fries", "menu:availability"]) as held:
            assert held == ["loyalty:c1", "menu:availability", "stock:Fries"]

    def test_locks_are_reentrant(self):
        registry = KeyedLockRegistry()

        with registry.acquire("stock:Steaks"):
            with registry.acquire_many(["stock:Steaks", "menu:availability"]):
                pass

    def test_idle_locks_cleaned_past_threshold(self):
        registry = KeyedLockRegistry(cleanup_threshold=3)
        for i in range(3):
            with registry.acquire(f"loyalty:{i}"):
                pass

        with registry.acquire("loyalty:new"):
            assert registry.lock_count == 1

        assert registry.locks_cleaned_total == 3

    def test_held_lock_survives_cleanup(self):
        registry = KeyedLockRegistry(cleanup_threshold=2)

        with registry.acquire("stock:Steaks"):
            with registry.acquire("stock:Fries"):
                pass
            with registry.acquire("stock:Lamb"):
                assert registry.lock_count == 2
