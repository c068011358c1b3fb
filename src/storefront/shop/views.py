"""HTML pages for the shop.

Plain string rendering: every dynamic value goes through ``escape``.
Pages share one layout with a navigation bar and the one-shot flash
messages (``success``, ``error``, ``info``, ``warning``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from html import escape
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storefront.shop.models import Category, Order, Product
    from storefront.sessions.session import Session

SITE_NAME = "GhibliGroceries"
FLASH_KINDS: tuple[str, ...] = ("success", "error", "info", "warning")

STATUS_MAP: dict[str, tuple[str, str]] = {
    "pending": ("Pending Confirmation", "status-pending"),
    "processing": ("Processing", "status-processing"),
    "shipped": ("Shipped", "status-shipped"),
    "completed": ("Completed", "status-completed"),
    "cancelled": ("Cancelled", "status-cancelled"),
}


# -- Formatting --


def money(value: float | int | None) -> str:
    return f"${(value or 0):,.2f}"


def format_date(value: str | None) -> str:
    """``Mon, 01 Jan 2024 15:30`` for a stored timestamp."""
    if not value:
        return "N/A"
    try:
        return datetime.fromisoformat(value).strftime("%a, %d %b %Y %H:%M")
    except ValueError:
        return "Invalid Date"


def status_info(status: str | None) -> tuple[str, str]:
    """Display text and CSS class for an order status."""
    key = (status or "").lower()
    return STATUS_MAP.get(key, ((status or "Unknown").capitalize(), "status-unknown"))


def format_order(order: Order) -> dict[str, Any]:
    """Display-ready fields for an order and its items."""
    text, css = status_info(order.status)
    return {
        **order.to_dict(),
        "order_date_formatted": format_date(order.order_date),
        "status_text": text,
        "status_class": css,
        "total_amount_formatted": money(order.total_amount),
        "items": [
            {
                **item.to_dict(),
                "price_formatted": money(item.price),
                "subtotal_formatted": money(item.subtotal),
            }
            for item in order.items
        ],
    }


# -- Building blocks --


def csrf_field(token: str) -> str:
    return f'<input type="hidden" name="csrf_token" value="{escape(token)}">'


def flash_messages(messages: Iterable[tuple[str, str]]) -> str:
    return "".join(
        f'<div class="alert alert-{escape(kind)}">{escape(text)}</div>' for kind, text in messages
    )


def pop_flashes(session: Session | None) -> list[tuple[str, str]]:
    """Read the general flash messages once, in display order."""
    if session is None:
        return []
    found = []
    for kind in FLASH_KINDS:
        value = session.get_flash(kind)
        if value:
            found.append((kind, str(value)))
    return found


def _nav(logged_in: bool, user_name: str | None) -> str:
    links = [("/", "Home"), ("/categories", "Shop"), ("/about", "About"), ("/contact", "Contact")]
    if logged_in:
        links += [("/cart", "Cart"), ("/orders", "My Orders"), ("/logout", "Logout")]
    else:
        links += [("/login", "Login"), ("/register", "Register")]
    items = "".join(f'<li><a href="{href}">{escape(label)}</a></li>' for href, label in links)
    greeting = f'<span class="greeting">Hello, {escape(user_name)}</span>' if user_name else ""
    return f"<nav><ul>{items}</ul>{greeting}</nav>"


def layout(
    title: str,
    content: str,
    *,
    session: Session | None = None,
    description: str = "",
) -> str:
    """The full page around *content*."""
    logged_in = session is not None and session.is_authenticated()
    user_name = session.get("user_name") if logged_in and session is not None else None
    meta = f'<meta name="description" content="{escape(description)}">' if description else ""
    return (
        "<!DOCTYPE html>"
        '<html lang="en"><head><meta charset="utf-8">'
        f"<title>{escape(title)} | {SITE_NAME}</title>{meta}</head>"
        f"<body><header>{_nav(logged_in, user_name)}</header>"
        f"<main>{flash_messages(pop_flashes(session))}{content}</main>"
        f"<footer><p>&copy; {SITE_NAME}</p></footer></body></html>"
    )


def product_card(product: Product, *, logged_in: bool) -> str:
    action = (
        f'<a class="button" href="/order/product/{product.product_id}">Order now</a>'
        if logged_in
        else '<a class="button" href="/login">Login to order</a>'
    )
    return (
        f'<article class="product" data-product-id="{product.product_id}">'
        f"<h3>{escape(product.name)}</h3>"
        f'<p class="price">{money(product.price)}</p>'
        f'<p class="category">{escape(product.category_name or "")}</p>'
        f"{action}</article>"
    )


def field_error(errors: Mapping[str, str], name: str) -> str:
    message = errors.get(name)
    return f'<span class="field-error">{escape(message)}</span>' if message else ""


# -- Pages --


def home_page(featured: Sequence[Product], *, logged_in: bool) -> str:
    cards = "".join(product_card(p, logged_in=logged_in) for p in featured)
    return (
        f"<h1>Welcome to {SITE_NAME}</h1>"
        "<p>Fresh groceries delivered to your door.</p>"
        f'<section class="featured"><h2>Featured products</h2>{cards}</section>'
    )


def about_page() -> str:
    return (
        f"<h1>About {SITE_NAME}</h1>"
        "<p>We are a small online grocer bringing seasonal produce and pantry staples "
        "from local growers to your kitchen.</p>"
    )


def contact_page(
    csrf_token: str,
    *,
    message: Mapping[str, str] | None = None,
    errors: Mapping[str, str] | None = None,
    old: Mapping[str, str] | None = None,
) -> str:
    errors = errors or {}
    old = old or {}
    notice = ""
    if message:
        notice = (
            f'<div class="alert alert-{escape(message.get("type", "info"))}">'
            f'{escape(message.get("text", ""))}</div>'
        )
    return (
        f"<h1>Contact us</h1>{notice}"
        '<form method="post" action="/contact/submit">'
        f"{csrf_field(csrf_token)}"
        f'<label>Name <input name="name" value="{escape(old.get("name", ""))}"></label>'
        f'{field_error(errors, "name")}'
        f'<label>Email <input name="email" type="email" value="{escape(old.get("email", ""))}"></label>'
        f'{field_error(errors, "email")}'
        f'<label>Message <textarea name="message">{escape(old.get("message", ""))}</textarea></label>'
        f'{field_error(errors, "message")}'
        '<button type="submit">Send</button></form>'
    )


def login_page(
    csrf_token: str,
    *,
    login_error: str | None = None,
    captcha_error: str | None = None,
    email: str = "",
    success: str | None = None,
) -> str:
    alerts = "".join(
        f'<div class="alert alert-{kind}">{escape(text)}</div>'
        for kind, text in (("success", success), ("error", login_error), ("error", captcha_error))
        if text
    )
    return (
        f"<h1>Login</h1>{alerts}"
        '<form method="post" action="/login">'
        f"{csrf_field(csrf_token)}"
        f'<label>Email <input name="email" type="email" value="{escape(email)}"></label>'
        '<label>Password <input name="password" type="password"></label>'
        '<img src="/captcha" alt="Verification code">'
        '<label>Verification code <input name="captcha" autocomplete="off"></label>'
        '<button type="submit">Login</button></form>'
        '<p>No account yet? <a href="/register">Register</a></p>'
    )


def register_page(
    csrf_token: str,
    *,
    error: str | None = None,
    old: Mapping[str, str] | None = None,
) -> str:
    old = old or {}
    alert = ""
    if error:
        lines = "".join(f"<li>{escape(line)}</li>" for line in error.split("<br>"))
        alert = f'<div class="alert alert-error"><ul>{lines}</ul></div>'
    return (
        f"<h1>Create an account</h1>{alert}"
        '<form method="post" action="/register" id="register-form">'
        f"{csrf_field(csrf_token)}"
        f'<label>Name <input name="name" value="{escape(old.get("name", ""))}"></label>'
        f'<label>Phone <input name="phone" value="{escape(old.get("phone", ""))}"></label>'
        f'<label>Email <input name="email" type="email" value="{escape(old.get("email", ""))}"></label>'
        '<label>Password <input name="password" type="password"></label>'
        '<button type="submit">Register</button></form>'
    )


def categories_page(
    categories: Sequence[Category],
    products: Sequence[Product],
    *,
    active_filter: str | None,
    logged_in: bool,
) -> str:
    options = "".join(
        f'<li class="{"active" if c.category_name == active_filter else ""}">'
        f'<a href="/categories?filter={escape(c.category_name)}">{escape(c.category_name)}</a></li>'
        for c in categories
    )
    cards = "".join(product_card(p, logged_in=logged_in) for p in products)
    if not products:
        cards = '<p class="empty">No products found.</p>'
    heading = escape(active_filter) if active_filter else "All products"
    return (
        "<h1>Browse products</h1>"
        f'<aside><ul class="categories">{options}</ul></aside>'
        f'<section class="products"><h2>{heading}</h2>{cards}</section>'
    )


def _cart_rows(items: Sequence[Mapping[str, Any]]) -> str:
    return "".join(
        f'<tr data-product-id="{item["product_id"]}"><td>{escape(str(item["name"]))}</td>'
        f'<td>{money(item["price"])}</td><td>{item["quantity"]}</td>'
        f'<td>{money(item["total_price"])}</td></tr>'
        for item in items
    )


def cart_page(cart: Mapping[str, Any]) -> str:
    if cart["is_empty"]:
        return '<h1>Your cart</h1><p class="empty">Your cart is empty.</p><a href="/categories">Start shopping</a>'
    return (
        "<h1>Your cart</h1>"
        "<table><thead><tr><th>Product</th><th>Price</th><th>Quantity</th><th>Total</th></tr></thead>"
        f'<tbody>{_cart_rows(cart["cart_items"])}</tbody></table>'
        f'<p class="total">Total: {money(cart["total_price"])}</p>'
        '<a class="button" href="/order">Checkout</a>'
    )


def order_form_page(items: Sequence[Mapping[str, Any]], total: float, csrf_token: str) -> str:
    rows = "".join(
        f'<tr><td>{escape(str(item["name"]))}</td><td>{money(item["price"])}</td>'
        f'<td>{item["quantity"]}</td><td>{money(item["subtotal"])}</td></tr>'
        for item in items
    )
    return (
        "<h1>Place your order</h1>"
        "<table><thead><tr><th>Product</th><th>Price</th><th>Quantity</th><th>Subtotal</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f'<p class="total">Total: {money(total)}</p>'
        '<form method="post" action="/order/process">'
        f"{csrf_field(csrf_token)}"
        '<label>Notes <textarea name="order_notes"></textarea></label>'
        '<button type="submit">Place order</button></form>'
    )


def single_product_order_page(product: Product, csrf_token: str) -> str:
    return (
        f"<h1>Order {escape(product.name)}</h1>"
        f'<p class="price">{money(product.price)}</p>'
        f'<p class="stock">{product.stock_quantity} in stock</p>'
        f'<form method="post" action="/order/product/{product.product_id}">'
        f"{csrf_field(csrf_token)}"
        f'<label>Quantity <input name="quantity" type="number" min="1" max="{product.stock_quantity}" value="1"></label>'
        '<label>Notes <textarea name="order_notes"></textarea></label>'
        '<button type="submit">Place order</button></form>'
    )


def orders_page(orders: Sequence[Mapping[str, Any]]) -> str:
    if not orders:
        return '<h1>My orders</h1><p class="empty">You have not placed any orders yet.</p>'
    rows = "".join(
        f'<tr><td><a href="/order/details/{o["order_id"]}">#{o["order_id"]}</a></td>'
        f'<td>{escape(o["order_date_formatted"])}</td>'
        f'<td class="{o["status_class"]}">{escape(o["status_text"])}</td>'
        f'<td>{o["total_amount_formatted"]}</td></tr>'
        for o in orders
    )
    return (
        "<h1>My orders</h1><table><thead><tr><th>Order</th><th>Date</th><th>Status</th>"
        f"<th>Total</th></tr></thead><tbody>{rows}</tbody></table>"
    )


def order_page(order: Mapping[str, Any], *, confirmation: bool, csrf_token: str | None = None) -> str:
    heading = (
        f'Thank you! Order #{order["order_id"]} has been placed'
        if confirmation
        else f'Order #{order["order_id"]}'
    )
    rows = "".join(
        f'<tr><td>{escape(str(item["product_name"] or item["product_id"]))}</td>'
        f'<td>{item["price_formatted"]}</td><td>{item["quantity"]}</td>'
        f'<td>{item["subtotal_formatted"]}</td></tr>'
        for item in order["items"]
    )
    cancel = ""
    if csrf_token and order["status"] == "pending":
        cancel = (
            f'<form method="post" action="/order/cancel/{order["order_id"]}">'
            f'{csrf_field(csrf_token)}<button type="submit">Cancel order</button></form>'
        )
    return (
        f"<h1>{escape(heading)}</h1>"
        f'<p>Placed: {escape(order["order_date_formatted"])}</p>'
        f'<p>Status: <span class="{order["status_class"]}">{escape(order["status_text"])}</span></p>'
        "<table><thead><tr><th>Product</th><th>Price</th><th>Quantity</th><th>Subtotal</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f'<p class="total">Total: {order["total_amount_formatted"]}</p>{cancel}'
    )
