"""Storage interface and in-memory implementation for shopapi entities."""

from __future__ import annotations

import copy
from typing import Callable, Generic, Protocol, TypeVar


class HasId(Protocol):
    id: str


T = TypeVar("T", bound=HasId)


class Repository(Protocol[T]):
    """Protocol for entity storage keyed by ID.

    Stores depend on this interface only, so a database-backed
    implementation can replace InMemoryRepository without touching
    business logic. Implementations must not hand out references to
    stored objects: callers mutate what they get and write it back
    with replace().
    """

    def add(self, entity: T) -> None:
        """Store a new entity.

        Raises:
            KeyError: If an entity with the same ID is already stored.
        """
        ...

    def get(self, entity_id: str) -> T | None:
        """Return a copy of the entity, or None if it doesn't exist."""
        ...

    def replace(self, entity: T) -> None:
        """Overwrite a stored entity.

        Raises:
            KeyError: If no entity with that ID is stored.
        """
        ...

    def delete(self, entity_id: str) -> None:
        """Remove an entity.

        Raises:
            KeyError: If no entity with that ID is stored.
        """
        ...

    def values(self) -> list[T]:
        """Return copies of all entities in insertion order."""
        ...

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        """Return a copy of the first entity matching predicate, or None.

        Only the match is copied; the predicate sees stored entities and
        must not modify them.
        """
        ...

    def __contains__(self, entity_id: object) -> bool: ...

    def __len__(self) -> int: ...


class InMemoryRepository(Generic[T]):
    """Repository backed by a dict, O(1) lookup by ID."""

    def __init__(self) -> None:
        self._items: dict[str, T] = {}

    def add(self, entity: T) -> None:
        if entity.id in self._items:
            raise KeyError(f"Duplicate ID: {entity.id}")
        self._items[entity.id] = copy.deepcopy(entity)

    def get(self, entity_id: str) -> T | None:
        entity = self._items.get(entity_id)
        return copy.deepcopy(entity) if entity is not None else None

    def replace(self, entity: T) -> None:
        if entity.id not in self._items:
            raise KeyError(entity.id)
        self._items[entity.id] = copy.deepcopy(entity)

    def delete(self, entity_id: str) -> None:
        del self._items[entity_id]

    def values(self) -> list[T]:
        return [copy.deepcopy(e) for e in self._items.values()]

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        for entity in self._items.values():
            if predicate(entity):
                return copy.deepcopy(entity)
        return None

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._items

    def __len__(self) -> int:
        return len(self._items)
