"""Sorting and pagination shared by the list endpoints."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

from .errors import InvalidPaginationError, InvalidSortKeyError
from .utils import parse_timestamp

T = TypeVar("T")

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

SortAccessor = Callable[[Any], Any]


def text_key(getter: Callable[[Any], str | None]) -> SortAccessor:
    """Sort accessor for strings: case-insensitive, missing values first."""
    return lambda item: (getter(item) or "").casefold()


def number_key(getter: Callable[[Any], int | float]) -> SortAccessor:
    return getter


def date_key(getter: Callable[[Any], str]) -> SortAccessor:
    """Sort accessor for ISO 8601 timestamps, compared chronologically."""

    def accessor(item: Any) -> datetime:
        return parse_timestamp(getter(item))

    return accessor


def sort_items(
    items: list[T],
    sort_keys: dict[str, SortAccessor],
    sort_by: str | None,
    sort_order: str = "asc",
) -> list[T]:
    """
    Sort items by one of the named keys.

    Args:
        items: Items to sort (not modified).
        sort_keys: Mapping of allowed key names to accessor functions.
        sort_by: Key name, or None to keep the current order.
        sort_order: "asc" or "desc".

    Raises:
        InvalidSortKeyError: If sort_by is not in sort_keys.
    """
    if sort_by is None:
        return list(items)
    accessor = sort_keys.get(sort_by)
    if accessor is None:
        raise InvalidSortKeyError(sort_by, sorted(sort_keys))
    return sorted(items, key=accessor, reverse=sort_order == "desc")


@dataclass
class Page(Generic[T]):
    """One page of a filtered collection."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [i.to_dict() if hasattr(i, "to_dict") else i for i in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


def paginate(items: list[T], page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> Page[T]:
    """
    Slice items into a page. limit is capped at MAX_PAGE_LIMIT.

    Raises:
        InvalidPaginationError: If page or limit is below 1.
    """
    if page < 1:
        raise InvalidPaginationError("page", page)
    if limit < 1:
        raise InvalidPaginationError("limit", limit)
    limit = min(limit, MAX_PAGE_LIMIT)
    start = (page - 1) * limit
    return Page(items=items[start:start + limit], total=len(items), page=page, limit=limit)
