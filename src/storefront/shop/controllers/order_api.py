"""Administrator order API under ``api/v1``.

Routes in this group carry the ``login_required`` guard; the role check
happens here.
"""

import logging
from typing import Any

from storefront.config import AppConfig
from storefront.http.redirect import halt_json
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.security.audit import emit_security_event
from storefront.sessions.session import Session
from storefront.shop.controllers.base import Controller
from storefront.shop.models import Order, OrderRepository
from storefront.shop.validation import clean, positive_int

logger = logging.getLogger("storefront.shop")

API_STATUSES: tuple[str, ...] = ("Pending", "Processing", "Shipped", "Delivered", "Cancelled")

BAD_PAYLOAD = {"error": 'Invalid JSON payload. Expecting {"status": "new_status"}.'}


class OrderApiController(Controller):
    def __init__(self, session: Session, config: AppConfig, orders: OrderRepository) -> None:
        super().__init__(session, config)
        self.orders = orders

    def _require_admin(self, request: Request) -> None:
        if not self.session.is_authenticated():
            halt_json({"error": "Authentication required."}, 401)
        if self.session.get("user_role") != "admin":
            emit_security_event(
                "authz.denied", request=request, user_id=self.session.get_user_id(), details={"role_required": "admin"}
            )
            halt_json({"error": "Permission denied. Requires administrator privileges."}, 403)

    async def _order(self, order_id: int | str, *, with_items: bool = False) -> Order:
        valid_id = positive_int(order_id)
        if valid_id is None:
            halt_json({"error": "Invalid order ID provided."}, 400)
        order = await self.orders.find(valid_id, with_items=with_items)
        if order is None:
            halt_json({"error": "Order not found."}, 404)
        return order

    @staticmethod
    async def _status(request: Request) -> str:
        data = await request.json()
        if not isinstance(data, dict) or data.get("status") is None:
            halt_json(BAD_PAYLOAD, 400)
        return clean(data["status"])

    async def index(self, request: Request) -> Response:
        self._require_admin(request)
        orders = await self.orders.all()
        return self.json([o.to_dict() for o in orders])

    async def show(self, request: Request, order_id: int | str) -> Response:
        self._require_admin(request)
        order = await self._order(order_id, with_items=True)
        payload: dict[str, Any] = {**order.to_dict(), "items": [i.to_dict() for i in order.items]}
        return self.json(payload)

    async def update(self, request: Request, order_id: int | str) -> Response:
        """Set any of the display statuses, stored lower-cased."""
        self._require_admin(request)
        order = await self._order(order_id)
        status = await self._status(request)
        if status not in API_STATUSES:
            return self.json(
                {"error": f"Invalid status value provided. Allowed values: {', '.join(API_STATUSES)}"}, 400
            )
        if not await self.orders.set_status(order.order_id, status.lower()):
            return self.json({"error": "Failed to update order status."}, 500)
        logger.info("Order %s status set to %s", order.order_id, status.lower())
        return self.json({"message": "Order status updated successfully."})

    async def update_status(self, request: Request, order_id: int | str) -> Response:
        """Manager transition: known statuses only, final states stay final."""
        self._require_admin(request)
        order = await self._order(order_id)
        status = (await self._status(request)).lower()
        if not await self.orders.update_status_as_manager(order.order_id, status):
            return self.json(
                {"error": "Failed to update order status. Status may be invalid or order cannot be updated."},
                400,
            )
        logger.info("Order %s moved to %s", order.order_id, status)
        return self.json({"message": "Order status updated successfully."})
