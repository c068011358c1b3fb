"""Session-backed shopping cart.

The cart is a ``{product_id: quantity}`` mapping stored in the session
under ``cart``. Keys are stored as strings so the mapping survives a
JSON round trip through the session store; the API speaks ``int``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storefront.sessions.session import Session

CART_KEY = "cart"


class Cart:
    """Quantities per product, persisted in *session*.

    Usage::

        cart = Cart(session)
        cart.add(4, 2)
        cart.set_quantity(4, 0)   # removes the line
        cart.count()              # total units across lines
    """

    __slots__ = ("_session",)

    def __init__(self, session: Session) -> None:
        self._session = session

    def _load(self) -> dict[str, int]:
        raw = self._session.get(CART_KEY) or {}
        return {str(k): int(v) for k, v in raw.items()}

    def _store(self, lines: dict[str, int]) -> None:
        self._session.set(CART_KEY, lines)

    def items(self) -> dict[int, int]:
        """Product id -> quantity, in insertion order."""
        return {int(k): v for k, v in self._load().items()}

    def product_ids(self) -> list[int]:
        return list(self.items())

    def quantity(self, product_id: int) -> int:
        return self._load().get(str(product_id), 0)

    def add(self, product_id: int, quantity: int = 1) -> int:
        """Add *quantity* units; returns the new line quantity."""
        return self.set_quantity(product_id, self.quantity(product_id) + quantity)

    def set_quantity(self, product_id: int, quantity: int) -> int:
        """Set the line to *quantity*; zero or less removes it.

        Returns the resulting quantity (``0`` when removed).
        """
        lines = self._load()
        key = str(product_id)
        if quantity <= 0:
            lines.pop(key, None)
            quantity = 0
        else:
            lines[key] = quantity
        self._store(lines)
        return quantity

    def remove(self, product_id: int) -> bool:
        """Drop the line; ``False`` when it was not in the cart."""
        lines = self._load()
        if lines.pop(str(product_id), None) is None:
            return False
        self._store(lines)
        return True

    def clear(self) -> None:
        self._store({})

    def count(self) -> int:
        """Total units across all lines."""
        return sum(self._load().values())

    def is_empty(self) -> bool:
        return not self._load()

    def __contains__(self, product_id: object) -> bool:
        return str(product_id) in self._load()

    def __len__(self) -> int:
        return len(self._load())
