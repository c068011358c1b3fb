"""Tests for the async SQLite layer and row mapping."""

from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest

from storefront.data import DataError, Database, QueryError, parse_sqlite_url
from storefront.data._mapping import map_row


@dataclass(frozen=True, slots=True)
class Item:
    id: int
    name: str
    price: float
    active: bool = True
    note: str | None = None


@pytest.fixture
async def db() -> AsyncIterator[Database]:
    async with Database("sqlite:///:memory:") as database:
        await database.execute_script(
            "CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT, price NUMERIC, "
            "active INTEGER DEFAULT 1, note TEXT);"
        )
        yield database


class TestParseUrl:
    @pytest.mark.parametrize(
        ("url", "path"),
        [
            ("sqlite:///shop.db", "shop.db"),
            ("sqlite:///:memory:", ":memory:"),
            ("sqlite:////var/data/shop.db", "/var/data/shop.db"),
            ("sqlite://", ":memory:"),
        ],
    )
    def test_paths(self, url: str, path: str) -> None:
        assert parse_sqlite_url(url) == path

    def test_other_schemes_rejected(self) -> None:
        with pytest.raises(DataError, match="Unsupported database URL"):
            Database("postgresql://localhost/shop")


class TestMapping:
    def test_coercion(self) -> None:
        item = map_row(Item, {"id": "3", "name": "Tea", "price": "2", "active": 0, "extra": "x"})
        assert item == Item(id=3, name="Tea", price=2.0, active=False)

    def test_optional_fields(self) -> None:
        assert map_row(Item, {"id": 1, "name": "a", "price": 1, "note": None}).note is None

    def test_not_a_dataclass(self) -> None:
        with pytest.raises(TypeError, match="not a dataclass"):
            map_row(dict, {"id": 1})


class TestQueries:
    async def test_insert_and_fetch(self, db: Database) -> None:
        first = await db.insert("INSERT INTO items (name, price) VALUES (?, ?)", "Tea", 2.5)
        await db.insert("INSERT INTO items (name, price, active) VALUES (?, ?, ?)", "Jam", 4, 0)
        assert first == 1

        items = await db.fetch(Item, "SELECT * FROM items ORDER BY id")
        assert [i.name for i in items] == ["Tea", "Jam"]
        assert items[1].price == 4.0
        assert items[1].active is False

    async def test_fetch_one_and_val(self, db: Database) -> None:
        await db.insert("INSERT INTO items (name, price) VALUES (?, ?)", "Tea", 2.5)
        item = await db.fetch_one(Item, "SELECT * FROM items WHERE name = ?", "Tea")
        assert item is not None and item.price == 2.5
        assert await db.fetch_one(Item, "SELECT * FROM items WHERE name = ?", "None") is None
        assert await db.fetch_val("SELECT COUNT(*) FROM items") == 1
        assert await db.fetch_val("SELECT name FROM items WHERE id = 99") is None

    async def test_execute_returns_rowcount(self, db: Database) -> None:
        await db.insert("INSERT INTO items (name, price) VALUES ('a', 1)")
        await db.insert("INSERT INTO items (name, price) VALUES ('b', 1)")
        assert await db.execute("UPDATE items SET price = 2") == 2
        assert await db.execute("DELETE FROM items WHERE id = 99") == 0

    async def test_fetch_all_dicts(self, db: Database) -> None:
        await db.insert("INSERT INTO items (name, price) VALUES ('a', 1)")
        rows = await db.fetch_all("SELECT id, name FROM items")
        assert rows == [{"id": 1, "name": "a"}]

    async def test_bad_sql(self, db: Database) -> None:
        with pytest.raises(QueryError):
            await db.fetch_all("SELECT * FROM nowhere")


class TestTransactions:
    async def test_commit(self, db: Database) -> None:
        async with db.transaction():
            await db.insert("INSERT INTO items (name, price) VALUES ('a', 1)")
            await db.insert("INSERT INTO items (name, price) VALUES ('b', 1)")
        assert await db.fetch_val("SELECT COUNT(*) FROM items") == 2

    async def test_rollback_on_error(self, db: Database) -> None:
        with pytest.raises(RuntimeError):
            async with db.transaction():
                await db.insert("INSERT INTO items (name, price) VALUES ('a', 1)")
                raise RuntimeError("abort")
        assert await db.fetch_val("SELECT COUNT(*) FROM items") == 0

    async def test_nested_joins_outer(self, db: Database) -> None:
        with pytest.raises(RuntimeError):
            async with db.transaction():
                async with db.transaction():
                    await db.insert("INSERT INTO items (name, price) VALUES ('a', 1)")
                raise RuntimeError("abort")
        assert await db.fetch_val("SELECT COUNT(*) FROM items") == 0

    async def test_script_not_allowed_inside(self, db: Database) -> None:
        with pytest.raises(DataError, match="inside a transaction"):
            async with db.transaction():
                await db.execute_script("SELECT 1;")


class TestLifecycle:
    async def test_connect_and_disconnect(self) -> None:
        db = Database("sqlite:///:memory:")
        assert not db.connected
        await db.connect()
        assert db.connected
        await db.disconnect()
        assert not db.connected
        await db.disconnect()

    async def test_lazy_connect(self) -> None:
        db = Database("sqlite:///:memory:")
        assert await db.fetch_val("SELECT 1") == 1
        await db.disconnect()
