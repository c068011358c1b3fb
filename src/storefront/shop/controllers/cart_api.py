"""JSON cart API used by the storefront scripts."""

from typing import Any

from storefront.cart import Cart
from storefront.config import AppConfig
from storefront.http.redirect import halt_json
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.sessions.session import Session
from storefront.shop.cart_data import CartService
from storefront.shop.controllers.base import Controller
from storefront.shop.validation import positive_int

AUTH_REQUIRED = {"error": "Authentication required."}


def _quantity(value: Any) -> int | None:
    """A whole quantity from JSON or form input; zero and negatives allowed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class CartApiController(Controller):
    def __init__(self, session: Session, config: AppConfig, cart: Cart, carts: CartService) -> None:
        super().__init__(session, config)
        self.cart = cart
        self.carts = carts

    def _require_auth(self) -> None:
        if not self.session.is_authenticated():
            halt_json(AUTH_REQUIRED, 401)

    async def _payload(self, request: Request) -> dict[str, Any]:
        """JSON object body, or the form fields for non-JSON posts."""
        data = await request.json()
        if isinstance(data, dict):
            return data
        return await request.all_input()

    async def _state(self) -> dict[str, Any]:
        summary = await self.carts.summary(self.session)
        return {
            "cart": summary["cart_items"],
            "total_items": summary["total_items"],
            "total_price": summary["total_price"],
            "is_empty": summary["is_empty"],
        }

    async def add(self, request: Request) -> Response:
        self._require_auth()
        data = await self._payload(request)
        product_id = positive_int(data.get("product_id"))
        quantity = _quantity(data.get("quantity"))
        if product_id is None or quantity is None or quantity <= 0:
            return self.json(
                {"error": "Invalid input. Please provide a valid product_id and a positive quantity."}, 400
            )

        product = await self.carts.product(product_id)
        if product is None:
            return self.json({"error": "Product not found."}, 404)

        self.cart.add(product_id, quantity)
        state = await self._state()
        return self.json(
            {
                "success": True,
                "message": "Product added to cart successfully.",
                "total_items": state["total_items"],
                "added_product_id": product_id,
                "added_quantity": quantity,
                "product_name": product.name,
            }
        )

    async def update(self, request: Request) -> Response:
        """Set a line to an absolute quantity; zero or less removes it."""
        self._require_auth()
        data = await self._payload(request)
        product_id = positive_int(data.get("product_id"))
        quantity = _quantity(data.get("quantity"))
        if product_id is None or quantity is None:
            return self.json(
                {"error": "Invalid input. Please provide a valid product_id and quantity."}, 400
            )

        if quantity <= 0:
            if not self.cart.remove(product_id):
                return self.json({"error": "Item not found in cart."}, 404)
            return self.json({"success": True, "message": "Item removed from cart.", **await self._state()})

        product = await self.carts.product(product_id)
        if product is None:
            return self.json({"error": "Product not found."}, 404)

        previous = self.cart.quantity(product_id)
        self.cart.set_quantity(product_id, quantity)
        updated = None if previous == quantity else self.carts.updated_product(product, quantity)
        return self.json(
            {
                "success": True,
                "message": "Cart updated successfully.",
                **await self._state(),
                "updated_product": updated,
            }
        )

    async def view(self, request: Request) -> Response:
        self._require_auth()
        return self.json({"success": True, **await self._state()})

    async def remove(self, request: Request) -> Response:
        self._require_auth()
        data = await self._payload(request)
        product_id = positive_int(data.get("product_id"))
        if product_id is None:
            return self.json({"error": "Invalid input. Please provide a valid product_id."}, 400)
        return await self._remove(product_id)

    async def remove_item(self, request: Request, product_id: int | str) -> Response:
        self._require_auth()
        valid_id = positive_int(product_id)
        if valid_id is None:
            return self.json({"success": False, "error": "Invalid product ID."}, 400)
        return await self._remove(valid_id)

    async def _remove(self, product_id: int) -> Response:
        if not self.cart.remove(product_id):
            return self.json({"success": False, "error": "Item not found in cart."}, 404)
        return self.json({"success": True, "message": "Item removed from cart.", **await self._state()})

    async def clear(self, request: Request) -> Response:
        self._require_auth()
        self.cart.clear()
        state = await self._state()
        del state["cart"]
        return self.json({"success": True, "message": "Cart cleared.", **state})

    async def count(self, request: Request) -> Response:
        summary = await self.carts.summary(self.session)
        return self.json({"count": summary["total_items"]})
