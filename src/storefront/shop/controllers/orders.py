"""Checkout, order history and cancellation."""

import logging
from typing import Any

from storefront.cart import Cart
from storefront.config import AppConfig
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.sessions.session import Session
from storefront.shop import views
from storefront.shop.cart_data import CartService
from storefront.shop.controllers.base import Controller
from storefront.shop.models import InsufficientStock, OrderLine, OrderRepository, ProductRepository
from storefront.shop.validation import clean, positive_int

logger = logging.getLogger("storefront.shop")


class OrderController(Controller):
    """Order pages. Every action requires a logged-in customer."""

    def __init__(
        self,
        session: Session,
        config: AppConfig,
        cart: Cart,
        carts: CartService,
        products: ProductRepository,
        orders: OrderRepository,
    ) -> None:
        super().__init__(session, config)
        self.cart = cart
        self.carts = carts
        self.products = products
        self.orders = orders

    def _customer(self) -> int:
        self.require_login()
        user_id = self.user_id
        if user_id is None:
            self.session.flash("error", "User session not found. Please log in again.")
            self.redirect("/login")
        return user_id

    async def _notes(self, request: Request) -> str | None:
        return clean(await request.post("order_notes")) or None

    # -- Checkout from the cart --

    async def show_order_form(self, request: Request) -> Response:
        self._customer()
        if self.cart.is_empty():
            self.session.flash("info", "Your cart is empty. Add some products before placing an order.")
            self.redirect("/categories")

        missing = await self.carts.missing_products(self.session)
        if missing:
            for product_id in missing:
                self.cart.remove(product_id)
            logger.info("Dropped unavailable products from cart", extra={"product_ids": missing})
            self.session.flash(
                "warning", "Some items were removed from your cart as they are no longer available."
            )
            self.redirect("/order")

        summary = await self.carts.summary(self.session)
        items = [{**item, "subtotal": item["total_price"]} for item in summary["cart_items"]]
        content = views.order_form_page(items, summary["total_price"], self.session.get_csrf_token())
        return self.render("Place Order", content)

    async def process_order(self, request: Request) -> None:
        user_id = self._customer()
        if not self.session.validate_csrf_token(await request.post("csrf_token")):
            self.session.flash("error", "Invalid security token. Please try again.")
            self.redirect("/order")

        quantities = self.cart.items()
        if not quantities:
            self.session.flash("error", "Your cart is empty.")
            self.redirect("/categories")

        found = await self.products.find_many(list(quantities))
        lines: list[OrderLine] = []
        for product_id, quantity in quantities.items():
            product = found.get(product_id)
            if product is None or product.stock_quantity < quantity:
                self._flash_unavailable(product.name if product else f"ID:{product_id}")
                self.redirect("/order")
            lines.append(OrderLine(product_id, quantity, product.price))

        try:
            order_id = await self.orders.create(user_id, lines, notes=await self._notes(request))
        except InsufficientStock as exc:
            product = found.get(exc.product_id)
            self._flash_unavailable(product.name if product else f"ID:{exc.product_id}")
            self.redirect("/order")

        self.cart.clear()
        self.session.flash("success", "Your order has been placed successfully!")
        self.redirect(f"/order/confirmation/{order_id}")

    def _flash_unavailable(self, name: str) -> None:
        self.session.flash(
            "error",
            f"Some items in your cart ({name}) are no longer available in the requested quantity. "
            "Please review your order.",
        )

    # -- Ordering a single product --

    async def show_single_product_order_form(self, request: Request, product_id: int | str) -> Response:
        self._customer()
        valid_id = positive_int(product_id)
        if valid_id is None:
            self.session.flash("error", "Invalid product specified.")
            self.redirect("/")
        product = await self.products.find_by_id(valid_id)
        if product is None:
            self.session.flash("error", "Product not found.")
            self.redirect("/")
        content = views.single_product_order_page(product, self.session.get_csrf_token())
        return self.render(f"Order {product.name}", content)

    async def process_single_product_order(self, request: Request, product_id: int | str) -> None:
        user_id = self._customer()
        valid_id = positive_int(product_id)
        if valid_id is None:
            self.session.flash("error", "Invalid product specified.")
            self.redirect("/")

        form_url = f"/order/product/{valid_id}"
        if not self.session.validate_csrf_token(await request.post("csrf_token")):
            self.session.flash("error", "Invalid security token. Please try submitting the form again.")
            self.redirect(form_url)

        quantity = positive_int(await request.post("quantity"))
        if quantity is None:
            self.session.flash("error", "Please enter a valid quantity.")
            self.redirect(form_url)

        product = await self.products.find_by_id(valid_id)
        if product is None or product.stock_quantity < quantity:
            available = product.stock_quantity if product else 0
            self.session.flash(
                "error", f"Product not found or insufficient stock ({available} available)."
            )
            self.redirect(form_url)

        try:
            order_id = await self.orders.create(
                user_id,
                [OrderLine(product.product_id, quantity, product.price)],
                notes=await self._notes(request),
            )
        except InsufficientStock:
            self.session.flash("error", "Failed to place your order. Please try again.")
            self.redirect(form_url)

        self.session.flash("success", f"Your order for {product.name} has been placed successfully!")
        self.redirect(f"/order/confirmation/{order_id}")

    # -- History --

    async def my_orders(self, request: Request) -> Response:
        user_id = self._customer()
        orders = await self.orders.for_user(user_id)
        return self.render("My Orders", views.orders_page([views.format_order(o) for o in orders]))

    async def order_confirmation(self, request: Request, order_id: int | str) -> Response:
        order = await self._owned_order(
            order_id, "Could not retrieve order confirmation details or order not found."
        )
        return self.render("Order Confirmation", views.order_page(order, confirmation=True))

    async def order_details(self, request: Request, order_id: int | str) -> Response:
        order = await self._owned_order(order_id, "Could not retrieve order details or order not found.")
        content = views.order_page(
            order, confirmation=False, csrf_token=self.session.get_csrf_token()
        )
        return self.render(f"Order #{order['order_id']}", content)

    async def _owned_order(self, order_id: int | str, not_found: str) -> dict[str, Any]:
        user_id = self._customer()
        valid_id = positive_int(order_id)
        if valid_id is None:
            self.session.flash("error", "Order ID not provided or invalid.")
            self.redirect("/orders")
        order = await self.orders.find_for_user(valid_id, user_id)
        if order is None:
            self.session.flash("error", not_found)
            self.redirect("/orders")
        return views.format_order(order)

    async def cancel_order(self, request: Request, order_id: int | str) -> None:
        user_id = self._customer()
        valid_id = positive_int(order_id)
        if valid_id is None:
            self.session.flash("error", "Order ID not provided for cancellation.")
            self.redirect("/orders")

        details_url = f"/order/details/{valid_id}"
        if not self.session.validate_csrf_token(await request.post("csrf_token")):
            self.session.flash("error", "Invalid security token. Please try again.")
            self.redirect(details_url)

        if await self.orders.cancel(valid_id, user_id):
            logger.info("Order %s cancelled", valid_id, extra={"user_id": user_id})
            self.session.flash("success", f"Order #{valid_id} has been cancelled.")
            self.redirect("/orders")
        self.session.flash(
            "error", "Could not cancel order. It might have already been processed or cancelled."
        )
        self.redirect(details_url)
