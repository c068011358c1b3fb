"""Cart contents joined with product data.

``Cart`` only knows ids and quantities. ``CartService`` looks the
products up and produces the display/API shape::

    {
        "cart_items": [{"product_id", "name", "price", "image",
                        "quantity", "total_price"}, ...],
        "total_price": 12.5,
        "total_items": 3,
        "is_empty": False,
    }

Lines whose product no longer exists are left out of the summary.
"""

from typing import Any

from storefront.cart import Cart
from storefront.sessions.session import Session
from storefront.shop.models import Product, ProductRepository


class CartService:
    __slots__ = ("products",)

    def __init__(self, products: ProductRepository) -> None:
        self.products = products

    async def summary(self, session: Session) -> dict[str, Any]:
        cart = Cart(session)
        lines = cart.items()
        found = await self.products.find_many(list(lines))
        items: list[dict[str, Any]] = []
        total_price = 0.0
        total_items = 0
        for product_id, quantity in lines.items():
            product = found.get(product_id)
            if product is None:
                continue
            line_total = round(product.price * quantity, 2)
            items.append(
                {
                    "product_id": product_id,
                    "name": product.name,
                    "price": product.price,
                    "image": product.image_path,
                    "quantity": quantity,
                    "total_price": line_total,
                }
            )
            total_price += line_total
            total_items += quantity
        return {
            "cart_items": items,
            "total_price": round(total_price, 2),
            "total_items": total_items,
            "is_empty": not items,
        }

    async def missing_products(self, session: Session) -> list[int]:
        """Ids in the cart with no matching product row."""
        ids = Cart(session).product_ids()
        found = await self.products.find_many(ids)
        return [product_id for product_id in ids if product_id not in found]

    async def product(self, product_id: int) -> Product | None:
        return await self.products.find_by_id(product_id)

    @staticmethod
    def updated_product(product: Product, quantity: int) -> dict[str, Any]:
        """The line that changed, as reported by the cart API."""
        return {
            "product_id": product.product_id,
            "name": product.name,
            "new_quantity": quantity,
            "price": product.price,
            "new_total": round(product.price * quantity, 2),
        }
