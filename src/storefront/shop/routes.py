"""The storefront route table.

Targets are ``(controller name, action)`` pairs; the controllers are
registered under those names in ``bootstrap.create_app``. Within one
method, routes are tried in the order listed here.
"""

from typing import TYPE_CHECKING

from storefront.middleware.csrf import csrf_required
from storefront.routing.guards import login_required

if TYPE_CHECKING:
    from storefront.app import App

PROTECTED_PATHS: tuple[str, ...] = (
    "orders",
    "order/process",
    "order/details/{order_id}",
    "order/confirmation/{order_id}",
    "order/cancel/{order_id}",
    "api/orders",
    "api/orders/{order_id}",
)


def register_routes(app: "App") -> None:
    router = app.router

    # Pages
    router.get("", ("PageController", "index"))
    router.get("about", ("PageController", "about"))
    router.get("contact", ("PageController", "contact"))
    router.post("contact/submit", ("PageController", "submit_contact"))
    router.get("cart", ("PageController", "cart"))

    # Catalog
    router.get("categories", ("ProductController", "show_categories"))
    router.get("products", ("ProductController", "list_products"))

    # Accounts
    router.get("register", ("UserController", "show_register"))
    router.post("register", ("UserController", "register"))
    router.get("login", ("UserController", "show_login"))
    router.post("login", ("UserController", "login"))
    router.get("logout", ("UserController", "logout"))
    router.get("captcha", ("CaptchaController", "generate"))

    # Orders
    router.get("order", ("OrderController", "show_order_form"))
    router.post("order/process", ("OrderController", "process_order"))
    router.get("orders", ("OrderController", "my_orders"))
    router.get("my-orders", ("OrderController", "my_orders"))
    router.get("order/confirmation/{order_id}", ("OrderController", "order_confirmation"))
    router.get("order/details/{order_id}", ("OrderController", "order_details"))
    router.post("order/cancel/{order_id}", ("OrderController", "cancel_order"))
    router.get("order/product/{product_id}", ("OrderController", "show_single_product_order_form"))
    router.post("order/product/{product_id}", ("OrderController", "process_single_product_order"))

    # AJAX helpers
    router.post("ajax/check-email", ("UserController", "check_email"))
    router.get("ajax/products-by-category", ("ProductController", "products_by_category"))
    router.get("ajax/subcategories", ("ProductController", "subcategories"))

    # Cart API
    with router.group("api/cart"):
        router.post("add", ("CartApiController", "add"))
        router.get("view", ("CartApiController", "view"))
        router.post("update", ("CartApiController", "update"))
        router.post("remove", ("CartApiController", "remove"))
        router.post("item/{product_id}", ("CartApiController", "remove_item"))
        router.post("clear", ("CartApiController", "clear"))
        router.get("count", ("CartApiController", "count"))

    # Administrator order API; form posts elsewhere check their own token
    with router.group("api/v1", guards=[login_required, csrf_required]):
        router.get("orders", ("OrderApiController", "index"))
        router.get("orders/{order_id}", ("OrderApiController", "show"))
        router.put("orders/{order_id}", ("OrderApiController", "update"))
        router.put("orders/{order_id}/status", ("OrderApiController", "update_status"))
