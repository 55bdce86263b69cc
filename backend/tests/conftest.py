"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before any app module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENTS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import sign_jwt
from shared.security.rate_limit import limiter
from storefront_api.main import app
from storefront_api.models import Base, Coupon, Customer, MenuItem, Order, StockItem, utcnow
from storefront_api.seed import seed


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate limit counters live in memory and would leak across tests."""
    limiter.reset()
    yield


@pytest.fixture
def reject_mode(monkeypatch):
    monkeypatch.setattr(settings, "reject_insufficient_stock", True)


@pytest.fixture
def clamp_mode(monkeypatch):
    monkeypatch.setattr(settings, "reject_insufficient_stock", False)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Auth helpers
# =============================================================================


def token_for(user_id: str, is_admin: bool = False, name: str | None = None, email: str | None = None) -> str:
    return sign_jwt({"sub": user_id, "is_admin": is_admin, "name": name, "email": email})


def headers_for(user_id: str, is_admin: bool = False, **claims) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user_id, is_admin=is_admin, **claims)}"}


@pytest.fixture
def customer_headers():
    return headers_for("cust-1", name="Ada Customer", email="ada@example.com")


@pytest.fixture
def admin_headers():
    return headers_for("staff-1", is_admin=True, name="Sam Staff")


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def seeded(db_session):
    """Default stock items (all at zero) and the default menu."""
    seed(db_session)
    return db_session


def set_stock(db, name: str, reserve: int, active: int) -> StockItem:
    """Write counts directly, bypassing the ledger. Call recompute afterwards if needed."""
    item = db.scalar(select(StockItem).where(StockItem.name == name))
    item.reserve_quantity = reserve
    item.active_quantity = active
    db.commit()
    return item


def stock_of(db, name: str) -> StockItem:
    db.expire_all()
    return db.scalar(select(StockItem).where(StockItem.name == name))


def menu_item(db, name: str) -> MenuItem:
    return db.scalar(select(MenuItem).where(MenuItem.name == name))


def make_customer(db, customer_id: str = "cust-1", name: str = "Ada Customer") -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        customer = Customer(id=customer_id, name=name, email=f"{customer_id}@example.com")
        db.add(customer)
        db.commit()
    return customer


def delivered_order(db, customer_id: str, total_cents: int) -> Order:
    """A delivered order worth total_cents, for loyalty balance tests."""
    make_customer(db, customer_id)
    now = utcnow()
    order = Order(
        customer_id=customer_id,
        subtotal_cents=total_cents,
        discount_cents=0,
        total_cents=total_cents,
        status="delivered",
        order_date=now,
    )
    db.add(order)
    db.commit()
    return order


def make_coupon(
    db,
    name: str = "Free Fries",
    coupon_type: str = "percent_off",
    value: str = "10",
    points_cost: int = 20,
    duration_hours: int = 24,
    max_per_account_per_day: int = 1,
    is_active: bool = True,
) -> Coupon:
    coupon = Coupon(
        name=name,
        type=coupon_type,
        value=value,
        points_cost=points_cost,
        duration_hours=duration_hours,
        max_per_account_per_day=max_per_account_per_day,
        is_active=is_active,
    )
    db.add(coupon)
    db.commit()
    return coupon
