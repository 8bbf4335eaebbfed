"""Order lifecycle: creation, status transitions, cancellation and queries."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .errors import (
    EmptyOrderError,
    InactiveUserError,
    InvalidDateError,
    InvalidQuantityError,
    InvalidStatusTransitionError,
    OrderAlreadyCancelledError,
    OrderDeliveredError,
    OrderNotFoundError,
    OrderNotModifiableError,
)
from .models import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
    _generate_id,
    _utc_now,
)
from .pricing import calculate_discount, calculate_tax, estimate_delivery, shipping_cost
from .product_store import ProductStore
from .query import Page, date_key, number_key, paginate, sort_items, text_key
from .repository import InMemoryRepository, Repository
from .user_store import UserStore
from .utils import parse_timestamp

logger = logging.getLogger(__name__)

# current status -> statuses it may move to; empty means terminal
TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

SORT_KEYS = {
    "created_at": date_key(lambda o: o.created_at),
    "updated_at": date_key(lambda o: o.updated_at),
    "total_amount": number_key(lambda o: o.total_amount),
    "status": text_key(lambda o: o.status.value),
    "order_number": text_key(lambda o: o.order_number),
}

EDITABLE_FIELDS = frozenset({"shipping_address", "billing_address", "notes", "shipping_method"})


@dataclass(frozen=True)
class OrderLine:
    """A requested (product, quantity) pair for a new order."""

    product_id: str
    quantity: int


def validate_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """
    Check a status change against the transition table.

    Raises:
        InvalidStatusTransitionError: If the change is not allowed.
    """
    if requested not in TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, requested.value)


def _parse_filter_date(field: str, value: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError:
        raise InvalidDateError(field, value)


class OrderEngine:
    """Places orders against the product and user stores.

    Orders hold product and user IDs only; every operation re-reads
    current state through the owning store.
    """

    def __init__(
        self,
        products: ProductStore,
        users: UserStore,
        repository: Repository[Order] | None = None,
    ):
        self.products = products
        self.users = users
        self._orders: Repository[Order] = (
            repository if repository is not None else InMemoryRepository()
        )
        self._lock = threading.RLock()
        self._sequence = itertools.count(1)

    def _next_order_number(self) -> str:
        year = datetime.now(timezone.utc).year
        return f"ORD-{year}-{next(self._sequence):06d}"

    def get(self, order_id: str) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def create(
        self,
        user_id: str,
        items: list[OrderLine],
        shipping_address: str,
        billing_address: str | None = None,
        shipping_method: ShippingMethod = ShippingMethod.STANDARD,
        payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD,
        coupon_code: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Place an order and reserve its stock.

        Stock for all lines is reserved as one batch. If pricing fails
        afterwards the reservation is released, so a failed create leaves
        stock unchanged.

        Raises:
            UserNotFoundError: If the user doesn't exist.
            InactiveUserError: If the user has been deactivated.
            EmptyOrderError: If items is empty.
            InvalidQuantityError: If a quantity is below 1.
            ProductNotFoundError: If a product doesn't exist.
            ProductUnavailableError: If a product is inactive.
            InsufficientStockError: If a product has too little stock.
            InvalidCouponError: If the coupon code is unknown.
            InvalidShippingMethodError: If the shipping method is unknown.
        """
        user = self.users.get(user_id)
        if not user.is_active:
            raise InactiveUserError(user_id)
        if not items:
            raise EmptyOrderError()
        for line in items:
            if line.quantity < 1:
                raise InvalidQuantityError(line.quantity)

        fee = shipping_cost(shipping_method)
        shipping_method = ShippingMethod(shipping_method)
        payment_method = PaymentMethod(payment_method)

        lines = [(line.product_id, line.quantity) for line in items]
        with self._lock:
            products = self.products.reserve(lines)
            try:
                order_items = [
                    OrderItem(
                        product_id=line.product_id,
                        product_name=products[line.product_id].name,
                        sku=products[line.product_id].sku,
                        quantity=line.quantity,
                        unit_price=products[line.product_id].price,
                    )
                    for line in items
                ]
                subtotal = sum(item.total_price for item in order_items)
                discount = calculate_discount(coupon_code, subtotal)

                now = _utc_now()
                order = Order(
                    id=_generate_id(),
                    order_number=self._next_order_number(),
                    user_id=user_id,
                    items=order_items,
                    shipping_address=shipping_address,
                    status=OrderStatus.PENDING,
                    tax_amount=calculate_tax(subtotal),
                    shipping_cost=fee,
                    discount_amount=discount,
                    billing_address=billing_address,
                    shipping_method=shipping_method,
                    payment_method=payment_method,
                    payment_status=PaymentStatus.PENDING,
                    coupon_code=coupon_code.strip().upper() if coupon_code else None,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
                self._orders.add(order)
            except Exception:
                self.products.release(lines)
                raise

        logger.info(
            "Created order %s (%s) for user %s, total %d",
            order.id, order.order_number, user_id, order.total_amount,
        )
        return order

    def cancel(self, order_id: str) -> Order:
        """
        Cancel an order and return its stock.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            OrderAlreadyCancelledError: If the order is already cancelled.
            OrderDeliveredError: If the order was delivered.
            InvalidStatusTransitionError: If the order can no longer be cancelled.
        """
        with self._lock:
            order = self.get(order_id)
            if order.status == OrderStatus.CANCELLED:
                raise OrderAlreadyCancelledError(order_id)
            if order.status == OrderStatus.DELIVERED:
                raise OrderDeliveredError(order_id)
            validate_transition(order.status, OrderStatus.CANCELLED)

            self.products.release((item.product_id, item.quantity) for item in order.items)

            previous = order.status
            order.status = OrderStatus.CANCELLED
            order.updated_at = _utc_now()
            self._orders.replace(order)

        logger.info("Order %s cancelled (was %s), stock restored", order_id, previous.value)
        return order

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        tracking_number: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Move an order to a new status.

        Moving to cancelled goes through cancel() so stock is returned.
        Moving to shipped records the tracking number and an estimated
        delivery date based on the shipping method.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            InvalidStatusTransitionError: If the change is not allowed.
        """
        status = OrderStatus(status)
        with self._lock:
            order = self.get(order_id)
            validate_transition(order.status, status)

            if status == OrderStatus.CANCELLED:
                order = self.cancel(order_id)
                if notes is not None:
                    order.notes = notes
                    self._orders.replace(order)
                return order

            previous = order.status
            order.status = status
            if status == OrderStatus.SHIPPED:
                order.estimated_delivery_date = estimate_delivery(order.shipping_method)
            elif status == OrderStatus.DELIVERED:
                order.payment_status = PaymentStatus.PAID
            elif status == OrderStatus.REFUNDED:
                order.payment_status = PaymentStatus.REFUNDED
            if tracking_number is not None:
                order.tracking_number = tracking_number
            if notes is not None:
                order.notes = notes
            order.updated_at = _utc_now()
            self._orders.replace(order)

        logger.info("Order %s moved from %s to %s", order_id, previous.value, status.value)
        return order

    def update(self, order_id: str, **changes) -> Order:
        """
        Edit delivery details of a pending order.

        Only the given fields change; billing_address and notes may be
        set to None. Changing the shipping method re-prices shipping.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            OrderNotModifiableError: If the order is no longer pending.
            InvalidShippingMethodError: If the shipping method is unknown.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update order fields: {', '.join(sorted(unknown))}")

        with self._lock:
            order = self.get(order_id)
            if order.status != OrderStatus.PENDING:
                raise OrderNotModifiableError(order_id, order.status.value)

            if "shipping_method" in changes:
                method = changes["shipping_method"]
                order.shipping_cost = shipping_cost(method)
                changes["shipping_method"] = ShippingMethod(method)
            for key, value in changes.items():
                setattr(order, key, value)
            order.updated_at = _utc_now()
            self._orders.replace(order)
        return order

    def list(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        min_amount: int | None = None,
        max_amount: int | None = None,
        sort_by: str | None = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Page[Order]:
        """
        Filter, sort and paginate orders.

        date_from and date_to are inclusive ISO 8601 dates or datetimes
        compared against created_at.
        """
        orders = self._orders.values()

        if user_id is not None:
            orders = [o for o in orders if o.user_id == user_id]
        if status is not None:
            orders = [o for o in orders if o.status == OrderStatus(status)]
        if date_from:
            start = _parse_filter_date("date_from", date_from)
            orders = [o for o in orders if parse_timestamp(o.created_at) >= start]
        if date_to:
            end = _parse_filter_date("date_to", date_to)
            if len(date_to.strip()) == 10:
                # bare date: include the whole day
                end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
            orders = [o for o in orders if parse_timestamp(o.created_at) <= end]
        if min_amount is not None:
            orders = [o for o in orders if o.total_amount >= min_amount]
        if max_amount is not None:
            orders = [o for o in orders if o.total_amount <= max_amount]

        orders = sort_items(orders, SORT_KEYS, sort_by, sort_order)
        return paginate(orders, page, limit)

    def invoice(self, order_id: str) -> dict[str, Any]:
        """
        Build an invoice for an order.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        order = self.get(order_id)
        return {
            "invoice_number": "INV-" + order.order_number.removeprefix("ORD-"),
            "order": order,
            "generated_at": _utc_now(),
        }

    def __len__(self) -> int:
        return len(self._orders)
