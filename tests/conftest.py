"""Pytest fixtures for shopapi tests."""

import pytest
from fastapi.testclient import TestClient

from shopapi.api import create_app
from shopapi.cart_store import CartStore
from shopapi.config import Settings
from shopapi.order_engine import OrderEngine, OrderLine
from shopapi.product_store import ProductStore
from shopapi.user_store import UserStore


@pytest.fixture
def products():
    """Empty product store."""
    return ProductStore()


@pytest.fixture
def users():
    """Empty user store."""
    return UserStore()


@pytest.fixture
def engine(products, users):
    """Order engine over the product and user fixtures."""
    return OrderEngine(products, users)


@pytest.fixture
def carts(products):
    return CartStore(products)


@pytest.fixture
def widget(products):
    """A $10.00 product with 10 units in stock."""
    return products.create(
        name="Widget",
        price=1000,
        category="Gadgets",
        description="A small widget",
        sku="WID-001",
        stock=10,
        tags=["small", "metal"],
    )


@pytest.fixture
def gizmo(products):
    """A $25.00 product with 3 units in stock."""
    return products.create(
        name="Gizmo",
        price=2500,
        category="Gadgets",
        sku="GIZ-001",
        stock=3,
        tags=["metal"],
    )


@pytest.fixture
def customer(users):
    return users.create(email="jo@example.com", first_name="Jo", last_name="Bloggs")


@pytest.fixture
def place_order(engine, customer):
    """Factory placing an order for the customer fixture."""

    def _place(*lines, **kwargs):
        kwargs.setdefault("shipping_address", "1 Main St")
        return engine.create(
            user_id=customer.id,
            items=[OrderLine(product_id=pid, quantity=qty) for pid, qty in lines],
            **kwargs,
        )

    return _place


@pytest.fixture
def client():
    """Test client for a fresh, unseeded application."""
    app = create_app(Settings(seed=False))
    return TestClient(app)


@pytest.fixture
def seeded_client():
    """Test client for an application loaded with the sample catalog."""
    app = create_app(Settings(seed=True))
    return TestClient(app)


def create_product(client, **overrides) -> dict:
    """Create a product through the API and return its data."""
    body = {
        "name": "Widget",
        "price": 1000,
        "category": "Gadgets",
        "sku": "WID-001",
        "stock": 10,
    }
    body.update(overrides)
    response = client.post("/api/products", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_user(client, **overrides) -> dict:
    """Create a user through the API and return its data."""
    body = {"email": "jo@example.com", "first_name": "Jo", "last_name": "Bloggs"}
    body.update(overrides)
    response = client.post("/api/users", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]
