"""Pytest fixtures for storefront tests."""

import pytest

from core import create_app
from storage import MemStorage


@pytest.fixture
def app():
    """Memory-backed app with no seed data."""
    return create_app({"TESTING": True, "STORAGE_BACKEND": "memory", "SEED_DATA": False})


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_storage(app):
    return app.extensions["storefront"]["storage"]


@pytest.fixture
def sql_app():
    """SQLite in-memory app, with an application context pushed for direct DbStorage calls."""
    app = create_app({
        "TESTING": True,
        "STORAGE_BACKEND": "sql",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SEED_DATA": False,
    })
    with app.app_context():
        yield app


@pytest.fixture
def mem_storage():
    return MemStorage()


@pytest.fixture(params=["memory", "sql"])
def any_storage(request):
    """Each storage adapter in turn, for parity tests."""
    if request.param == "memory":
        yield MemStorage()
    else:
        sql_app = request.getfixturevalue("sql_app")
        yield sql_app.extensions["storefront"]["storage"]


@pytest.fixture
def make_product():
    """Create a product in the given store with sensible defaults."""

    def _make(storage, **overrides):
        data = {
            "name": "Cimento Portland 50kg",
            "description": "Cimento CP-II para concreto",
            "category": "Construção",
            "price_mzn": 800,
            "price_usd": "12.50",
            "stock": 100,
        }
        data.update(overrides)
        return storage.create_product(data)

    return _make


@pytest.fixture
def order_payload():
    """Build a valid checkout body from (product, quantity) pairs."""

    def _payload(lines, **overrides):
        items = []
        for product, qty in lines:
            items.append({
                "product_id": product["id"],
                "product_name": product["name"],
                "price_mzn": product["price_mzn"],
                "price_usd": product["price_usd"],
                "quantity": qty,
                "total_mzn": product["price_mzn"] * qty,
                "total_usd": str(float(product["price_usd"]) * qty),
            })
        body = {
            "customer_name": "Ana Machava",
            "customer_email": "ana@example.co.mz",
            "customer_phone": "+258841234567",
            "delivery_address": "Av. Julius Nyerere 100",
            "delivery_city": "Maputo",
            "delivery_option": "standard",
            "payment_method": "cash",
            "items": items,
            "total_mzn": sum(i["total_mzn"] for i in items),
            "total_usd": "0.00",
        }
        body.update(overrides)
        return body

    return _payload
