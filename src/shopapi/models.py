"""Data models for shopapi."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid

from .utils import format_price


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new entity ID."""
    return str(uuid.uuid4())


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    MODERATOR = "moderator"


class ShippingMethod(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


@dataclass
class Product:
    """A catalog product. Prices are integer cents."""

    id: str
    name: str
    price: int
    category: str
    description: str = ""
    sku: str | None = None
    stock: int = 0
    tags: list[str] = field(default_factory=list)
    image_url: str | None = None
    is_active: bool = True
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @property
    def formatted_price(self) -> str:
        return format_price(self.price)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "formatted_price": self.formatted_price,
            "category": self.category,
            "sku": self.sku,
            "stock": self.stock,
            "in_stock": self.in_stock,
            "tags": list(self.tags),
            "image_url": self.image_url,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def create(
        cls,
        name: str,
        price: int,
        category: str,
        description: str = "",
        sku: str | None = None,
        stock: int = 0,
        tags: list[str] | None = None,
        image_url: str | None = None,
        is_active: bool = True,
    ) -> "Product":
        """Create a new product with generated ID and timestamps."""
        now = _utc_now()
        return cls(
            id=_generate_id(),
            name=name,
            price=price,
            category=category,
            description=description,
            sku=sku,
            stock=stock,
            tags=list(tags or []),
            image_url=image_url,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )


@dataclass
class User:
    """A registered user. Deactivated users keep their email reserved."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.CUSTOMER
    phone_number: str | None = None
    shipping_address: str | None = None
    is_active: bool = True
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "role": self.role.value,
            "phone_number": self.phone_number,
            "shipping_address": self.shipping_address,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def create(
        cls,
        email: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.CUSTOMER,
        phone_number: str | None = None,
        shipping_address: str | None = None,
    ) -> "User":
        """Create a new active user with generated ID and timestamps."""
        now = _utc_now()
        return cls(
            id=_generate_id(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            phone_number=phone_number,
            shipping_address=shipping_address,
            is_active=True,
            created_at=now,
            updated_at=now,
        )


@dataclass
class OrderItem:
    """One product line of an order, priced when the order was placed."""

    product_id: str
    product_name: str
    quantity: int
    unit_price: int
    sku: str | None = None

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "formatted_unit_price": format_price(self.unit_price),
            "total_price": self.total_price,
            "formatted_total_price": format_price(self.total_price),
        }


@dataclass
class Order:
    """
    A placed order.

    subtotal and total_amount are derived from the items and the stored
    surcharges, so they cannot drift from them.
    """

    id: str
    order_number: str
    user_id: str
    items: list[OrderItem]
    shipping_address: str
    status: OrderStatus = OrderStatus.PENDING
    tax_amount: int = 0
    shipping_cost: int = 0
    discount_amount: int = 0
    billing_address: str | None = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    payment_status: PaymentStatus = PaymentStatus.PENDING
    coupon_code: str | None = None
    notes: str | None = None
    tracking_number: str | None = None
    estimated_delivery_date: str | None = None  # YYYY-MM-DD
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    @property
    def subtotal(self) -> int:
        return sum(item.total_price for item in self.items)

    @property
    def total_amount(self) -> int:
        return self.subtotal + self.tax_amount + self.shipping_cost - self.discount_amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "status": self.status.value,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "shipping_cost": self.shipping_cost,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "formatted_total_amount": format_price(self.total_amount),
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "shipping_method": self.shipping_method.value,
            "payment_method": self.payment_method.value,
            "payment_status": self.payment_status.value,
            "coupon_code": self.coupon_code,
            "notes": self.notes,
            "tracking_number": self.tracking_number,
            "estimated_delivery_date": self.estimated_delivery_date,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class CartItem:
    """A product line in a cart."""

    product_id: str
    product_name: str
    unit_price: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "line_total": self.line_total,
        }


@dataclass
class Cart:
    """A shopping cart. total is recomputed by CartStore on every mutation."""

    id: str
    items: list[CartItem] = field(default_factory=list)
    total: int = 0
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def find_item(self, product_id: str) -> CartItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "formatted_total": format_price(self.total),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def create(cls) -> "Cart":
        """Create an empty cart with generated ID and timestamps."""
        now = _utc_now()
        return cls(id=_generate_id(), items=[], total=0, created_at=now, updated_at=now)
