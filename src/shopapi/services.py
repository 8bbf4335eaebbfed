"""Wiring of stores and the order engine, plus sample data."""

import logging
from dataclasses import dataclass

from .cart_store import CartStore
from .models import UserRole
from .order_engine import OrderEngine
from .product_store import ProductStore
from .user_store import UserStore

logger = logging.getLogger(__name__)

SEED_PRODUCTS = [
    {
        "name": "Wireless Bluetooth Headphones",
        "description": "High-quality wireless Bluetooth headphones with noise cancellation and 30-hour battery life",
        "price": 9999,
        "category": "Electronics",
        "sku": "WBH-001-BLK",
        "stock": 50,
        "tags": ["electronics", "audio", "wireless", "bluetooth"],
    },
    {
        "name": "Gaming Mechanical Keyboard",
        "description": "RGB backlit mechanical gaming keyboard with Cherry MX switches",
        "price": 12999,
        "category": "Electronics",
        "sku": "GMK-002-RGB",
        "stock": 25,
        "tags": ["electronics", "gaming", "keyboard", "rgb"],
    },
    {
        "name": "Smartphone Case",
        "description": "Protective smartphone case with shock absorption",
        "price": 2499,
        "category": "Accessories",
        "sku": "SPC-003-BLU",
        "stock": 100,
        "tags": ["accessories", "smartphone", "protection"],
    },
    {
        "name": "Wireless Mouse",
        "description": "Ergonomic wireless mouse with precision tracking",
        "price": 4999,
        "category": "Electronics",
        "sku": "WM-004-WHT",
        "stock": 0,
        "tags": ["electronics", "mouse", "wireless"],
    },
    {
        "name": "MacBook Pro 14-inch",
        "description": "Apple MacBook Pro with M2 Pro chip, 16GB RAM, 512GB SSD",
        "price": 199999,
        "category": "Electronics",
        "sku": "MBP-005-SLV",
        "stock": 10,
        "tags": ["electronics", "laptop", "apple"],
    },
    {
        "name": "Running Shoes",
        "description": "Lightweight running shoes with breathable mesh upper",
        "price": 8999,
        "category": "Sports & Outdoors",
        "sku": "RS-006-BLK",
        "stock": 30,
        "tags": ["sports", "running", "shoes"],
    },
]

SEED_USERS = [
    {"email": "admin@example.com", "first_name": "Admin", "last_name": "User", "role": UserRole.ADMIN},
    {
        "email": "john.doe@example.com",
        "first_name": "John",
        "last_name": "Doe",
        "phone_number": "+1234567890",
        "shipping_address": "123 Main St, Apt 4B, New York, NY 10001, USA",
    },
    {
        "email": "jane.smith@example.com",
        "first_name": "Jane",
        "last_name": "Smith",
        "phone_number": "+1987654321",
        "shipping_address": "456 Oak Ave, Suite 200, Los Angeles, CA 90210, USA",
    },
]


@dataclass
class Services:
    """Everything the API needs, built once per application."""

    products: ProductStore
    users: UserStore
    orders: OrderEngine
    carts: CartStore


def build_services(seed: bool = False) -> Services:
    """Create fresh in-memory stores, optionally loaded with sample data."""
    products = ProductStore()
    users = UserStore()
    services = Services(
        products=products,
        users=users,
        orders=OrderEngine(products, users),
        carts=CartStore(products),
    )
    if seed:
        seed_services(services)
    return services


def seed_services(services: Services) -> None:
    """Load the sample catalog and users."""
    for fields in SEED_PRODUCTS:
        services.products.create(**fields)
    for fields in SEED_USERS:
        services.users.create(**fields)
    logger.info(
        "Seeded %d products and %d users", len(SEED_PRODUCTS), len(SEED_USERS)
    )
