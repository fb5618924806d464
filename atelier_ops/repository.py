"""In-memory repositories used by the pipeline service."""

from __future__ import annotations

from typing import Generic, Iterator, List, MutableMapping, TypeVar

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind.capitalize()} {item_id!r} not found")
        self.kind = kind
        self.item_id = item_id


class InMemoryRepository(Generic[T]):
    """Repository keyed by record id, kept in insertion order."""

    def __init__(self, kind: str = "record") -> None:
        self.kind = kind
        self._items: MutableMapping[str, T] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._items:
            raise DuplicateRecordError(f"{self.kind.capitalize()} {item_id!r} already exists")
        self._items[item_id] = item

    def upsert(self, item_id: str, item: T) -> None:
        self._items[item_id] = item

    def get(self, item_id: str) -> T:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise RecordNotFoundError(self.kind, item_id) from exc

    def remove(self, item_id: str) -> None:
        if item_id not in self._items:
            raise RecordNotFoundError(self.kind, item_id)
        del self._items[item_id]

    def list(self) -> List[T]:
        return list(self._items.values())


__all__ = [
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
