"""Typed async SQLite access.

SQL in, frozen dataclasses out. Not an ORM.

Connection URL format::

    sqlite:///path/to/shop.db      # file
    sqlite:///:memory:             # in-memory

One connection per ``Database``; statements are serialized with an
``anyio.Lock``. Inside ``transaction()`` the current task owns the
connection, tracked through a ContextVar so nested calls join it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import anyio

from storefront.data._mapping import map_row, map_rows
from storefront.data._sqlite import AsyncConnection, connect
from storefront.data.errors import DataError, QueryError

logger = logging.getLogger("storefront.data")

_in_transaction: ContextVar[bool] = ContextVar("storefront_db_tx", default=False)


def parse_sqlite_url(url: str) -> str:
    """Extract the file path from a ``sqlite://`` URL.

    ``sqlite:///shop.db`` -> ``shop.db``; ``sqlite:///:memory:`` ->
    ``:memory:``.
    """
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            return url[len(prefix) :] or ":memory:"
    msg = f"Unsupported database URL {url!r}; expected sqlite:///path"
    raise DataError(msg)


class Database:
    """Async database handle.

    Usage::

        db = Database("sqlite:///shop.db")

        @dataclass(frozen=True, slots=True)
        class Product:
            product_id: int
            name: str
            price: float

        products = await db.fetch(Product, "SELECT * FROM products")
        product = await db.fetch_one(Product, "SELECT * FROM products WHERE product_id = ?", 4)
        count = await db.fetch_val("SELECT COUNT(*) FROM products")

        async with db.transaction():
            order_id = await db.insert("INSERT INTO orders (...) VALUES (?, ?)", ...)
            await db.execute("UPDATE products SET stock_quantity = ? ...", ...)
    """

    __slots__ = ("_conn", "_lock", "_path", "_url", "echo")

    def __init__(self, url: str, /, *, echo: bool = False) -> None:
        self._url = url
        self._path = parse_sqlite_url(url)
        self._conn: AsyncConnection | None = None
        self._lock: anyio.Lock | None = None
        self.echo = echo

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # -- Connection management --

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        conn = await self.connect()
        if _in_transaction.get():
            yield conn
            return
        async with self._get_lock():
            yield conn

    def _get_lock(self) -> anyio.Lock:
        # Created lazily: an anyio.Lock needs a running event loop
        if self._lock is None:
            self._lock = anyio.Lock()
        return self._lock

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the block atomically.

        Commits on clean exit, rolls back on any exception. A nested
        ``transaction()`` joins the outer one.
        """
        conn = await self.connect()
        if _in_transaction.get():
            yield
            return
        async with self._get_lock():
            token = _in_transaction.set(True)
            conn.autocommit = False
            try:
                yield
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
            finally:
                conn.autocommit = True
                _in_transaction.reset(token)

    def _log_query(self, sql: str, params: Sequence[Any], started: float) -> None:
        if self.echo:
            elapsed = (time.perf_counter() - started) * 1000
            logger.debug("%6.1fms  %s  params=%r", elapsed, " ".join(sql.split()), tuple(params))

    async def _run(self, sql: str, params: Sequence[Any]) -> Any:
        started = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await conn.execute(sql, params)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, started)

    # -- Public query API --

    async def fetch_all(self, sql: str, /, *params: Any) -> list[dict[str, Any]]:
        """All rows as plain dicts."""
        started = time.perf_counter()
        async with self._connection() as conn:
            try:
                cursor = await conn.execute(sql, params)
                rows = await cursor.fetchall()
                columns = [d[0] for d in cursor.description]
                return [dict(zip(columns, row, strict=True)) for row in rows]
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, started)

    async def fetch_row(self, sql: str, /, *params: Any) -> dict[str, Any] | None:
        """The first row as a plain dict, or ``None``."""
        started = time.perf_counter()
        async with self._connection() as conn:
            try:
                cursor = await conn.execute(sql, params)
                row = await cursor.fetchone()
                if row is None:
                    return None
                columns = [d[0] for d in cursor.description]
                return dict(zip(columns, row, strict=True))
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, started)

    async def fetch[T](self, cls: type[T], sql: str, /, *params: Any) -> list[T]:
        """All rows mapped onto dataclass *cls*."""
        return map_rows(cls, await self.fetch_all(sql, *params))

    async def fetch_one[T](self, cls: type[T], sql: str, /, *params: Any) -> T | None:
        """The first row mapped onto dataclass *cls*, or ``None``."""
        row = await self.fetch_row(sql, *params)
        return None if row is None else map_row(cls, row)

    async def fetch_val(self, sql: str, /, *params: Any) -> Any:
        """First column of the first row; useful for COUNT, SUM, MAX."""
        row = await self.fetch_row(sql, *params)
        if row is None:
            return None
        return next(iter(row.values()))

    async def execute(self, sql: str, /, *params: Any) -> int:
        """Run an UPDATE/DELETE and return the number of rows affected."""
        cursor = await self._run(sql, params)
        return cursor.rowcount

    async def insert(self, sql: str, /, *params: Any) -> int:
        """Run an INSERT and return the new row id."""
        cursor = await self._run(sql, params)
        if cursor.lastrowid is None:
            msg = "INSERT did not produce a row id"
            raise QueryError(msg)
        return cursor.lastrowid

    async def execute_script(self, sql: str, /) -> None:
        """Run a multi-statement script, e.g. the schema."""
        if _in_transaction.get():
            msg = "execute_script() cannot run inside a transaction"
            raise DataError(msg)
        started = time.perf_counter()
        async with self._connection() as conn:
            try:
                await conn.executescript(sql)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query("<script>", (), started)

    # -- Lifecycle --

    async def connect(self) -> AsyncConnection:
        """Open the connection; called automatically on first use."""
        if self._conn is None:
            conn = await connect(self._path)
            await conn.execute("PRAGMA foreign_keys=ON")
            if self._conn is None:
                self._conn = conn
                logger.debug("Connected to %s", self._url)
            else:
                await conn.close()
        return self._conn

    async def disconnect(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.disconnect()

    def __repr__(self) -> str:
        return f"Database({self._url!r})"
