"""Typed async SQLite access for storefront.

SQL in, frozen dataclasses out::

    from storefront.data import Database

    db = Database("sqlite:///shop.db")
    user = await db.fetch_one(User, "SELECT * FROM users WHERE email = ?", email)
"""

from storefront.data.database import Database, parse_sqlite_url
from storefront.data.errors import DataError, QueryError

__all__ = [
    "DataError",
    "Database",
    "QueryError",
    "parse_sqlite_url",
]
