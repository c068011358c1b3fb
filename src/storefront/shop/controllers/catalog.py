"""Category browsing and the catalog AJAX endpoints."""

import logging

from storefront.config import AppConfig
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.sessions.session import Session
from storefront.shop import views
from storefront.shop.controllers.base import Controller
from storefront.shop.models import CategoryRepository, ProductRepository
from storefront.shop.validation import positive_int

logger = logging.getLogger("storefront.shop")


class ProductController(Controller):
    def __init__(
        self,
        session: Session,
        config: AppConfig,
        products: ProductRepository,
        categories: CategoryRepository,
    ) -> None:
        super().__init__(session, config)
        self.products = products
        self.categories = categories

    async def show_categories(self, request: Request) -> Response:
        """Top-level categories plus products, optionally filtered by name.

        An unknown filter shows no products and says so.
        """
        categories = await self.categories.top_level()
        active = request.query.get("filter") or None
        if active is None:
            products = await self.products.all()
        else:
            category_id = await self.categories.id_by_name(active)
            if category_id is None:
                logger.info("Unknown category filter", extra={"filter": active})
                self.session.flash("info", f'No category named "{active}" was found.')
                products = []
            else:
                products = await self.products.find_by_category(category_id)
        content = views.categories_page(
            categories,
            products,
            active_filter=active,
            logged_in=self.session.is_authenticated(),
        )
        return self.render(
            "Browse Products",
            content,
            description="Browse our wide selection of fresh groceries by category.",
        )

    async def list_products(self, request: Request) -> Response:
        return await self.show_categories(request)

    async def products_by_category(self, request: Request) -> Response:
        category_id = positive_int(request.query.get("categoryId"))
        if category_id is None:
            return self.json({"error": "Invalid Category ID provided."}, 400)
        products = await self.products.find_by_category(category_id)
        return self.json({"products": [p.to_dict() for p in products]})

    async def subcategories(self, request: Request) -> Response:
        parent_id = positive_int(request.query.get("parentId"))
        if parent_id is None:
            return self.json({"error": "Invalid Parent Category ID provided."}, 400)
        children = await self.categories.subcategories(parent_id)
        return self.json(
            {
                "subcategories": [
                    {"category_id": c.category_id, "category_name": c.category_name, "parent_id": c.parent_id}
                    for c in children
                ]
            }
        )
