"""Shopping carts. Carts do not reserve stock."""

from __future__ import annotations

import logging
import threading

from .errors import CartItemNotFoundError, CartNotFoundError, InvalidQuantityError
from .models import Cart, CartItem, _utc_now
from .product_store import ProductStore
from .repository import InMemoryRepository, Repository

logger = logging.getLogger(__name__)


class CartStore:
    """Manages carts and keeps each cart's total in step with its items."""

    def __init__(self, products: ProductStore, repository: Repository[Cart] | None = None):
        self.products = products
        self._carts: Repository[Cart] = (
            repository if repository is not None else InMemoryRepository()
        )
        self._lock = threading.Lock()

    def _recalculate(self, cart: Cart) -> None:
        """Refresh line prices from the catalog and recompute the total."""
        for item in cart.items:
            product = self.products.get(item.product_id)
            item.unit_price = product.price
            item.product_name = product.name
        cart.total = sum(item.line_total for item in cart.items)
        cart.updated_at = _utc_now()

    def create(self) -> Cart:
        """Create an empty cart."""
        cart = Cart.create()
        self._carts.add(cart)
        logger.info("Created cart %s", cart.id)
        return cart

    def get(self, cart_id: str) -> Cart:
        """
        Get a cart by ID.

        Raises:
            CartNotFoundError: If cart doesn't exist.
        """
        cart = self._carts.get(cart_id)
        if cart is None:
            raise CartNotFoundError(cart_id)
        return cart

    def add_item(self, cart_id: str, product_id: str, quantity: int = 1) -> Cart:
        """
        Add a product, or increase its quantity if already in the cart.

        Raises:
            CartNotFoundError: If cart doesn't exist.
            ProductNotFoundError: If product doesn't exist.
            InvalidQuantityError: If quantity is below 1.
        """
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        with self._lock:
            cart = self.get(cart_id)
            product = self.products.get(product_id)
            item = cart.find_item(product_id)
            if item is not None:
                item.quantity += quantity
            else:
                cart.items.append(
                    CartItem(
                        product_id=product.id,
                        product_name=product.name,
                        unit_price=product.price,
                        quantity=quantity,
                    )
                )
            self._recalculate(cart)
            self._carts.replace(cart)
        return cart

    def update_item(self, cart_id: str, product_id: str, quantity: int) -> Cart:
        """
        Set a line's quantity. Zero or less removes the line.

        Raises:
            CartNotFoundError: If cart doesn't exist.
            CartItemNotFoundError: If the product is not in the cart.
        """
        with self._lock:
            cart = self.get(cart_id)
            item = cart.find_item(product_id)
            if item is None:
                raise CartItemNotFoundError(cart_id, product_id)
            if quantity <= 0:
                cart.items.remove(item)
            else:
                item.quantity = quantity
            self._recalculate(cart)
            self._carts.replace(cart)
        return cart

    def remove_item(self, cart_id: str, product_id: str) -> Cart:
        """
        Remove a product from the cart.

        Raises:
            CartNotFoundError: If cart doesn't exist.
            CartItemNotFoundError: If the product is not in the cart.
        """
        with self._lock:
            cart = self.get(cart_id)
            item = cart.find_item(product_id)
            if item is None:
                raise CartItemNotFoundError(cart_id, product_id)
            cart.items.remove(item)
            self._recalculate(cart)
            self._carts.replace(cart)
        return cart

    def clear(self, cart_id: str) -> Cart:
        """
        Remove every item from the cart.

        Raises:
            CartNotFoundError: If cart doesn't exist.
        """
        with self._lock:
            cart = self.get(cart_id)
            cart.items = []
            self._recalculate(cart)
            self._carts.replace(cart)
        return cart

    def delete(self, cart_id: str) -> None:
        """
        Delete a cart.

        Raises:
            CartNotFoundError: If cart doesn't exist.
        """
        with self._lock:
            if cart_id not in self._carts:
                raise CartNotFoundError(cart_id)
            self._carts.delete(cart_id)
        logger.info("Deleted cart %s", cart_id)
