"""SQLite-backed persistence for orders, fabric rolls and products."""

from __future__ import annotations

import logging
import pickle
import sqlite3
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, List, Optional, TypeVar

from .domain import FabricRoll, Order, Product
from .repository import DuplicateRecordError, RecordNotFoundError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class SQLiteRepository(Generic[T]):
    """Repository storing pickled records in a two-column table.

    Writes are committed through ``commit``; the owning database swaps in a
    callable that defers the commit while a transaction is open.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        table: str,
        kind: str,
        *,
        commit: Optional[Callable[[], None]] = None,
    ) -> None:
        self._connection = connection
        self._table = table
        self._commit = commit or connection.commit
        self.kind = kind
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
            "id TEXT PRIMARY KEY, payload BLOB NOT NULL)"
        )
        self._connection.commit()

    def __contains__(self, item_id: object) -> bool:
        if not isinstance(item_id, str):
            return False
        cursor = self._connection.execute(
            f"SELECT 1 FROM {self._table} WHERE id = ? LIMIT 1", (item_id,)
        )
        return cursor.fetchone() is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        cursor = self._connection.execute(f"SELECT COUNT(1) FROM {self._table}")
        value = cursor.fetchone()
        return int(value[0]) if value else 0

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def add(self, item_id: str, item: T) -> None:
        if item_id in self:
            raise DuplicateRecordError(f"{self.kind.capitalize()} {item_id!r} already exists")
        self._connection.execute(
            f"INSERT INTO {self._table} (id, payload) VALUES (?, ?)",
            (item_id, pickle.dumps(item)),
        )
        self._commit()

    def upsert(self, item_id: str, item: T) -> None:
        self._connection.execute(
            f"INSERT INTO {self._table} (id, payload) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
            (item_id, pickle.dumps(item)),
        )
        self._commit()

    def get(self, item_id: str) -> T:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} WHERE id = ?", (item_id,)
        )
        row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(self.kind, item_id)
        return pickle.loads(row[0])

    def remove(self, item_id: str) -> None:
        cursor = self._connection.execute(
            f"DELETE FROM {self._table} WHERE id = ?", (item_id,)
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(self.kind, item_id)
        self._commit()

    def list(self) -> List[T]:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} ORDER BY rowid"
        )
        return [pickle.loads(row[0]) for row in cursor.fetchall()]


class AtelierDatabase:
    """Bundles the SQLite repositories the pipeline service needs."""

    def __init__(self, path: str) -> None:
        connection = sqlite3.connect(path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        self._connection = connection
        self._transaction_depth = 0
        self.orders = SQLiteRepository[Order](
            connection, "orders", "order", commit=self._commit
        )
        self.fabric_rolls = SQLiteRepository[FabricRoll](
            connection, "fabric_rolls", "fabric roll", commit=self._commit
        )
        self.products = SQLiteRepository[Product](
            connection, "products", "product", commit=self._commit
        )
        logger.info("storage.opened: %s", path)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def _commit(self) -> None:
        if self._transaction_depth == 0:
            self._connection.commit()

    @contextmanager
    def transaction(self) -> Iterator["AtelierDatabase"]:
        """Group repository writes so they commit or roll back together."""

        self._transaction_depth += 1
        try:
            yield self
        except BaseException:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                self._connection.rollback()
                logger.warning("storage.transaction.rolled_back")
            raise
        self._transaction_depth -= 1
        if self._transaction_depth == 0:
            self._connection.commit()

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "AtelierDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "AtelierDatabase"]
