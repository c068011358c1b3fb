"""Request-scoped context via ContextVar.

``request_var`` holds the current ``Request``; the ASGI handler sets it
before dispatch and resets it afterwards. ContextVars are task-local, so
concurrent requests never see each other's values.
"""

from contextvars import ContextVar

from storefront.http.request import Request

request_var: ContextVar[Request] = ContextVar("storefront_request")
"""The current request. Set by the ASGI handler before dispatch."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()
