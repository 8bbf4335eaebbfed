"""Product catalog and stock management."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from .errors import (
    DuplicateSkuError,
    InsufficientStockError,
    NegativeStockError,
    ProductNotFoundError,
    ProductUnavailableError,
)
from .models import Product, _utc_now
from .query import Page, date_key, number_key, paginate, sort_items, text_key
from .repository import InMemoryRepository, Repository

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "name": text_key(lambda p: p.name),
    "category": text_key(lambda p: p.category),
    "sku": text_key(lambda p: p.sku),
    "price": number_key(lambda p: p.price),
    "stock": number_key(lambda p: p.stock),
    "created_at": date_key(lambda p: p.created_at),
    "updated_at": date_key(lambda p: p.updated_at),
}

UPDATABLE_FIELDS = frozenset(
    {"name", "description", "price", "category", "sku", "stock", "tags", "image_url", "is_active"}
)


class ProductStore:
    """Owns products and every change to their stock.

    All stock read-check-write sequences run under one re-entrant lock,
    so concurrent requests cannot oversell a product.
    """

    def __init__(self, repository: Repository[Product] | None = None):
        self._products: Repository[Product] = (
            repository if repository is not None else InMemoryRepository()
        )
        self._lock = threading.RLock()

    def _sku_taken(self, sku: str, exclude_id: str | None = None) -> bool:
        wanted = sku.casefold()
        owner = self._products.find(
            lambda p: p.sku is not None and p.sku.casefold() == wanted and p.id != exclude_id
        )
        return owner is not None

    def create(
        self,
        name: str,
        price: int,
        category: str,
        description: str = "",
        sku: str | None = None,
        stock: int = 0,
        tags: list[str] | None = None,
        image_url: str | None = None,
        is_active: bool = True,
    ) -> Product:
        """
        Add a product to the catalog.

        Raises:
            DuplicateSkuError: If another product already uses the SKU.
            NegativeStockError: If stock is below zero.
        """
        if stock < 0:
            raise NegativeStockError(stock)
        with self._lock:
            if sku is not None and self._sku_taken(sku):
                raise DuplicateSkuError(sku)
            product = Product.create(
                name=name,
                price=price,
                category=category,
                description=description,
                sku=sku,
                stock=stock,
                tags=tags,
                image_url=image_url,
                is_active=is_active,
            )
            self._products.add(product)
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    def get(self, product_id: str) -> Product:
        """
        Get a product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def list(
        self,
        category: str | None = None,
        search: str | None = None,
        min_price: int | None = None,
        max_price: int | None = None,
        is_active: bool | None = None,
        sort_by: str | None = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Page[Product]:
        """Filter, sort and paginate the catalog."""
        products = self._products.values()

        if category:
            wanted = category.casefold()
            products = [p for p in products if p.category.casefold() == wanted]
        if search:
            term = search.casefold()
            products = [
                p for p in products
                if term in p.name.casefold() or term in p.description.casefold()
            ]
        if min_price is not None:
            products = [p for p in products if p.price >= min_price]
        if max_price is not None:
            products = [p for p in products if p.price <= max_price]
        if is_active is not None:
            products = [p for p in products if p.is_active == is_active]

        products = sort_items(products, SORT_KEYS, sort_by, sort_order)
        return paginate(products, page, limit)

    def update(self, product_id: str, **changes) -> Product:
        """
        Merge changes into a product.

        Raises:
            ProductNotFoundError: If product doesn't exist.
            DuplicateSkuError: If the new SKU belongs to another product.
            NegativeStockError: If stock is set below zero.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update product fields: {', '.join(sorted(unknown))}")
        if changes.get("stock") is not None and changes["stock"] < 0:
            raise NegativeStockError(changes["stock"])

        with self._lock:
            product = self.get(product_id)
            sku = changes.get("sku")
            if sku is not None and self._sku_taken(sku, exclude_id=product_id):
                raise DuplicateSkuError(sku)
            for key, value in changes.items():
                setattr(product, key, value)
            product.updated_at = _utc_now()
            self._products.replace(product)
        return product

    def remove(self, product_id: str) -> Product:
        """
        Soft-delete a product by marking it inactive.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        product = self.update(product_id, is_active=False)
        logger.info("Deactivated product %s", product_id)
        return product

    def adjust_stock(self, product_id: str, delta: int) -> Product:
        """
        Add delta (may be negative) to a product's stock.

        Raises:
            ProductNotFoundError: If product doesn't exist.
            InsufficientStockError: If stock would drop below zero.
        """
        with self._lock:
            product = self.get(product_id)
            if product.stock + delta < 0:
                logger.warning(
                    "Rejected stock change %+d for product %s (stock %d)",
                    delta, product_id, product.stock,
                )
                raise InsufficientStockError(product_id, product.stock, -delta)
            product.stock += delta
            product.updated_at = _utc_now()
            self._products.replace(product)
        logger.info("Stock for product %s changed by %+d to %d", product_id, delta, product.stock)
        return product

    def reserve(
        self, lines: Iterable[tuple[str, int]], require_active: bool = True
    ) -> dict[str, Product]:
        """
        Take stock for several products at once.

        Every line is validated before any stock is taken, so either all
        quantities are reserved or none are. Repeated product IDs are summed.

        Args:
            lines: (product_id, quantity) pairs.
            require_active: Reject inactive products.

        Returns:
            Products keyed by ID, as they are after the reservation.

        Raises:
            ProductNotFoundError: If a product doesn't exist.
            ProductUnavailableError: If a product is inactive.
            InsufficientStockError: If a product has too little stock.
        """
        wanted: dict[str, int] = {}
        for product_id, quantity in lines:
            wanted[product_id] = wanted.get(product_id, 0) + quantity

        with self._lock:
            products: dict[str, Product] = {}
            for product_id, quantity in wanted.items():
                product = self.get(product_id)
                if require_active and not product.is_active:
                    raise ProductUnavailableError(product_id, product.name)
                if product.stock < quantity:
                    logger.warning(
                        "Insufficient stock for product %s: available %d, requested %d",
                        product_id, product.stock, quantity,
                    )
                    raise InsufficientStockError(
                        product_id, product.stock, quantity, product_name=product.name
                    )
                products[product_id] = product

            now = _utc_now()
            for product_id, quantity in wanted.items():
                product = products[product_id]
                product.stock -= quantity
                product.updated_at = now
                self._products.replace(product)

        logger.info("Reserved stock for %d product(s)", len(products))
        return products

    def release(self, lines: Iterable[tuple[str, int]]) -> None:
        """
        Return reserved stock.

        Raises:
            ProductNotFoundError: If a product doesn't exist.
        """
        with self._lock:
            for product_id, quantity in lines:
                self.adjust_stock(product_id, quantity)

    def categories(self) -> list[str]:
        """Sorted distinct category names."""
        return sorted({p.category for p in self._products.values()}, key=str.casefold)

    def related(self, product_id: str, limit: int = 5) -> list[Product]:
        """
        Active products sharing a category or a tag with the given product.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        product = self.get(product_id)
        tags = set(product.tags)
        related = [
            p for p in self._products.values()
            if p.id != product_id
            and p.is_active
            and (p.category == product.category or tags.intersection(p.tags))
        ]
        return related[:limit]

    def __len__(self) -> int:
        return len(self._products)
