"""Shop records and repositories.

Records are frozen dataclasses filled by ``Database.fetch``; repositories
own the SQL. Controllers receive repositories through the service
registry and never build queries themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from storefront.data.database import Database
from storefront.errors import StorefrontError
from storefront.security.passwords import hash_password, needs_rehash, verify_password

logger = logging.getLogger("storefront.shop")

ORDER_STATUSES: tuple[str, ...] = ("pending", "processing", "shipped", "completed", "cancelled")


class InsufficientStock(StorefrontError):  # noqa: N818
    """An order line asks for more units than are in stock."""

    def __init__(self, product_id: int, requested: int) -> None:
        self.product_id = product_id
        self.requested = requested
        super().__init__(f"Insufficient stock for product {product_id} ({requested} requested)")


# -- Records --


@dataclass(frozen=True, slots=True)
class User:
    user_id: int
    name: str
    phone: str
    email: str
    password: str = field(repr=False)
    role: str = "customer"
    account_status: str = "active"
    failed_login_attempts: int = 0
    registration_date: str | None = None

    @property
    def is_locked(self) -> bool:
        return self.account_status == "locked"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True, slots=True)
class Category:
    category_id: int
    category_name: str
    parent_id: int | None = None


@dataclass(frozen=True, slots=True)
class Product:
    product_id: int
    category_id: int
    name: str
    price: float
    image_path: str = ""
    description: str | None = None
    stock_quantity: int = 0
    is_active: bool = True
    category_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "name": self.name,
            "price": self.price,
            "image_path": self.image_path,
            "description": self.description,
            "stock_quantity": self.stock_quantity,
        }


@dataclass(frozen=True, slots=True)
class OrderItem:
    item_id: int
    order_id: int
    product_id: int
    quantity: int
    price: float
    product_name: str | None = None

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
        }


@dataclass(frozen=True, slots=True)
class Order:
    order_id: int
    user_id: int
    total_amount: float
    status: str = "pending"
    order_date: str | None = None
    shipping_address: str | None = None
    payment_method: str | None = None
    notes: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    items: tuple[OrderItem, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "order_date": self.order_date,
            "total_amount": self.total_amount,
            "status": self.status,
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "notes": self.notes,
        }


@dataclass(frozen=True, slots=True)
class OrderLine:
    """One line of an order about to be placed."""

    product_id: int
    quantity: int
    price: float


# -- Repositories --


class UserRepository:
    __slots__ = ("db",)

    def __init__(self, db: Database) -> None:
        self.db = db

    async def find_by_id(self, user_id: int) -> User | None:
        return await self.db.fetch_one(User, "SELECT * FROM users WHERE user_id = ?", user_id)

    async def find_by_email(self, email: str) -> User | None:
        return await self.db.fetch_one(User, "SELECT * FROM users WHERE email = ?", email)

    async def email_exists(self, email: str) -> bool:
        count = await self.db.fetch_val("SELECT COUNT(*) FROM users WHERE email = ?", email)
        return bool(count)

    async def create(self, name: str, phone: str, email: str, password: str, *, role: str = "customer") -> int:
        """Insert a user with an argon2 hash of *password*; returns the new id."""
        user_id = await self.db.insert(
            "INSERT INTO users (name, phone, email, password, role) VALUES (?, ?, ?, ?, ?)",
            name,
            phone,
            email,
            hash_password(password),
            role,
        )
        logger.info("Created user %s", user_id, extra={"email": email})
        return user_id

    async def authenticate(self, email: str, password: str) -> User | None:
        """The user owning *email* if *password* matches, else ``None``.

        Outdated hashes are upgraded in place after a successful check.
        """
        user = await self.find_by_email(email)
        if user is None or not verify_password(password, user.password):
            return None
        if needs_rehash(user.password):
            await self.db.execute(
                "UPDATE users SET password = ? WHERE user_id = ?", hash_password(password), user.user_id
            )
        return user

    async def record_login(self, user_id: int) -> None:
        await self.db.execute(
            "UPDATE users SET failed_login_attempts = 0, last_login_date = CURRENT_TIMESTAMP "
            "WHERE user_id = ?",
            user_id,
        )

    async def record_failed_login(self, email: str) -> None:
        await self.db.execute(
            "UPDATE users SET failed_login_attempts = failed_login_attempts + 1 WHERE email = ?",
            email,
        )


class CategoryRepository:
    __slots__ = ("db",)

    def __init__(self, db: Database) -> None:
        self.db = db

    async def all(self) -> list[Category]:
        return await self.db.fetch(Category, "SELECT * FROM categories ORDER BY category_name ASC")

    async def find_by_id(self, category_id: int) -> Category | None:
        return await self.db.fetch_one(
            Category, "SELECT * FROM categories WHERE category_id = ?", category_id
        )

    async def top_level(self) -> list[Category]:
        return await self.db.fetch(
            Category,
            "SELECT * FROM categories WHERE parent_id IS NULL ORDER BY category_name ASC",
        )

    async def subcategories(self, parent_id: int) -> list[Category]:
        return await self.db.fetch(
            Category,
            "SELECT * FROM categories WHERE parent_id = ? ORDER BY category_name ASC",
            parent_id,
        )

    async def id_by_name(self, name: str) -> int | None:
        return await self.db.fetch_val(
            "SELECT category_id FROM categories WHERE category_name = ?", name
        )

    async def create(self, name: str, parent_id: int | None = None) -> int:
        return await self.db.insert(
            "INSERT INTO categories (category_name, parent_id) VALUES (?, ?)", name, parent_id
        )


_PRODUCT_SELECT = (
    "SELECT p.*, c.category_name AS category_name FROM products p "
    "LEFT JOIN categories c ON p.category_id = c.category_id"
)


class ProductRepository:
    __slots__ = ("db",)

    def __init__(self, db: Database) -> None:
        self.db = db

    async def all(self) -> list[Product]:
        return await self.db.fetch(Product, f"{_PRODUCT_SELECT} ORDER BY p.name ASC")

    async def find_by_id(self, product_id: int) -> Product | None:
        return await self.db.fetch_one(Product, f"{_PRODUCT_SELECT} WHERE p.product_id = ?", product_id)

    async def find_by_category(self, category_id: int) -> list[Product]:
        """Products in *category_id* and its direct subcategories."""
        children = await self.db.fetch_all(
            "SELECT category_id FROM categories WHERE parent_id = ?", category_id
        )
        ids = list(dict.fromkeys([category_id, *(int(row["category_id"]) for row in children)]))
        placeholders = ", ".join("?" * len(ids))
        return await self.db.fetch(
            Product,
            f"{_PRODUCT_SELECT} WHERE p.category_id IN ({placeholders}) ORDER BY p.name ASC",
            *ids,
        )

    async def featured(self, limit: int = 2) -> list[Product]:
        return await self.db.fetch(Product, f"{_PRODUCT_SELECT} ORDER BY RANDOM() LIMIT ?", limit)

    async def find_many(self, product_ids: list[int]) -> dict[int, Product]:
        """Products keyed by id; ids with no row are simply absent."""
        if not product_ids:
            return {}
        placeholders = ", ".join("?" * len(product_ids))
        products = await self.db.fetch(
            Product, f"{_PRODUCT_SELECT} WHERE p.product_id IN ({placeholders})", *product_ids
        )
        return {p.product_id: p for p in products}

    async def stock(self, product_id: int) -> int | None:
        return await self.db.fetch_val(
            "SELECT stock_quantity FROM products WHERE product_id = ?", product_id
        )

    async def create(
        self,
        category_id: int,
        name: str,
        price: float,
        *,
        image_path: str = "",
        description: str | None = None,
        stock_quantity: int = 100,
    ) -> int:
        return await self.db.insert(
            "INSERT INTO products (category_id, name, price, image_path, description, stock_quantity) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            category_id,
            name,
            price,
            image_path,
            description,
            stock_quantity,
        )


_ORDER_SELECT = (
    "SELECT o.*, u.name AS customer_name, u.email AS customer_email FROM orders o "
    "LEFT JOIN users u ON o.user_id = u.user_id"
)


class OrderItemRepository:
    __slots__ = ("db",)

    def __init__(self, db: Database) -> None:
        self.db = db

    async def for_order(self, order_id: int) -> list[OrderItem]:
        return await self.db.fetch(
            OrderItem,
            "SELECT oi.*, p.name AS product_name FROM order_items oi "
            "LEFT JOIN products p ON oi.product_id = p.product_id "
            "WHERE oi.order_id = ? ORDER BY oi.item_id",
            order_id,
        )

    async def create_many(self, order_id: int, lines: list[OrderLine]) -> None:
        for line in lines:
            await self.db.insert(
                "INSERT INTO order_items (order_id, product_id, quantity, price) VALUES (?, ?, ?, ?)",
                order_id,
                line.product_id,
                line.quantity,
                line.price,
            )


class OrderRepository:
    __slots__ = ("db", "items")

    def __init__(self, db: Database) -> None:
        self.db = db
        self.items = OrderItemRepository(db)

    async def create(
        self,
        user_id: int,
        lines: list[OrderLine],
        *,
        notes: str | None = None,
    ) -> int:
        """Place an order atomically and return its id.

        Inserts the order as ``pending``, its items, and takes the units
        out of stock. Nothing is written if any line is short on stock.

        Raises:
            InsufficientStock: When a product cannot cover its line.
            ValueError: For an order without lines.
        """
        if not lines:
            msg = "An order needs at least one line"
            raise ValueError(msg)
        total = round(sum(line.price * line.quantity for line in lines), 2)
        async with self.db.transaction():
            order_id = await self.db.insert(
                "INSERT INTO orders (user_id, total_amount, status, notes) VALUES (?, ?, 'pending', ?)",
                user_id,
                total,
                notes,
            )
            await self.items.create_many(order_id, lines)
            for line in lines:
                updated = await self.db.execute(
                    "UPDATE products SET stock_quantity = stock_quantity - ? "
                    "WHERE product_id = ? AND stock_quantity >= ?",
                    line.quantity,
                    line.product_id,
                    line.quantity,
                )
                if not updated:
                    raise InsufficientStock(line.product_id, line.quantity)
        logger.info("Order %s placed", order_id, extra={"user_id": user_id, "total": total})
        return order_id

    async def for_user(self, user_id: int) -> list[Order]:
        return await self.db.fetch(
            Order, f"{_ORDER_SELECT} WHERE o.user_id = ? ORDER BY o.order_date DESC, o.order_id DESC", user_id
        )

    async def all(self, status: str | None = None) -> list[Order]:
        if status is None:
            return await self.db.fetch(Order, f"{_ORDER_SELECT} ORDER BY o.order_date DESC, o.order_id DESC")
        return await self.db.fetch(
            Order, f"{_ORDER_SELECT} WHERE o.status = ? ORDER BY o.order_date DESC, o.order_id DESC", status
        )

    async def find(self, order_id: int, *, with_items: bool = False) -> Order | None:
        order = await self.db.fetch_one(Order, f"{_ORDER_SELECT} WHERE o.order_id = ?", order_id)
        if order is None or not with_items:
            return order
        return await self._with_items(order)

    async def find_for_user(self, order_id: int, user_id: int) -> Order | None:
        """The order with its items, only when *user_id* owns it."""
        order = await self.db.fetch_one(
            Order, f"{_ORDER_SELECT} WHERE o.order_id = ? AND o.user_id = ?", order_id, user_id
        )
        return None if order is None else await self._with_items(order)

    async def _with_items(self, order: Order) -> Order:
        items = await self.items.for_order(order.order_id)
        return replace(order, items=tuple(items))

    async def cancel(self, order_id: int, user_id: int) -> bool:
        """Cancel a pending order owned by *user_id*; false otherwise."""
        updated = await self.db.execute(
            "UPDATE orders SET status = 'cancelled', last_modified = CURRENT_TIMESTAMP "
            "WHERE order_id = ? AND user_id = ? AND status = 'pending'",
            order_id,
            user_id,
        )
        return updated > 0

    async def set_status(self, order_id: int, status: str) -> bool:
        updated = await self.db.execute(
            "UPDATE orders SET status = ?, last_modified = CURRENT_TIMESTAMP WHERE order_id = ?",
            status,
            order_id,
        )
        return updated > 0

    async def update_status_as_manager(self, order_id: int, status: str) -> bool:
        """Staff status change.

        Only known statuses are accepted, and completed or cancelled
        orders are final.
        """
        if status not in ORDER_STATUSES:
            return False
        order = await self.find(order_id)
        if order is None or order.status in ("completed", "cancelled"):
            return False
        return await self.set_status(order_id, status)
