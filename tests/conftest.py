"""Shared test fixtures for all test modules."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from coupon_management.main import create_app
from coupon_management.models import Cart, CartItem, Coupon, UserContext
from coupon_management.storage import CouponCatalog, UsageLedger

# Fixed evaluation instant used by engine-level tests
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_coupon(code: str, **fields) -> Coupon:
    """Build a validated coupon; FLAT 10 unless told otherwise."""
    data = {"code": code, "description": f"{code} offer", "discountType": "FLAT", "discountValue": 10}
    data.update(fields)
    return Coupon.model_validate(data)


def make_cart(*items) -> Cart:
    """Build a cart from (category, unitPrice, quantity) tuples."""
    return Cart(
        items=[
            CartItem(productId=f"p{i}", category=category, unitPrice=price, quantity=qty)
            for i, (category, price, qty) in enumerate(items)
        ]
    )


@pytest.fixture
def catalog():
    return CouponCatalog()


@pytest.fixture
def ledger():
    return UsageLedger()


@pytest.fixture
def user():
    return UserContext(
        userId="u1",
        userTier="GOLD",
        country="IN",
        lifetimeSpend=5000,
        ordersPlaced=3,
    )


@pytest.fixture
def cart():
    """A cart worth 300 with 3 items."""
    return make_cart(("electronics", 100, 2), ("books", 100, 1))


@pytest.fixture
def client(catalog, ledger):
    """Test client wired to the per-test catalog and ledger."""
    return TestClient(create_app(catalog=catalog, ledger=ledger))
