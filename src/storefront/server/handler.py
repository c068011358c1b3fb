"""ASGI handler: translates ASGI scope/messages to storefront types.

The only component that touches raw ASGI directly. Builds a typed
``Request`` relative to the application's base path, runs it through the
middleware chain around the dispatcher, and sends the resulting
``Response`` back through ``send()``.
"""

from collections.abc import Callable
from contextvars import Token
from typing import Any

from storefront._internal.asgi import Receive, Scope, Send
from storefront.context import request_var
from storefront.errors import Halt, HTTPError
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.middleware.protocol import AnyResponse, Next
from storefront.routing.dispatch import Dispatcher
from storefront.server.errors import handle_http_error, handle_internal_error
from storefront.server.negotiation import negotiate
from storefront.server.sender import send_response
from storefront.sessions.middleware import current_session


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    dispatcher: Dispatcher,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: dict[int | type, Callable[..., Any]],
    debug: bool = False,
    base_path: str = "",
    api_prefix: str = "api/",
    max_content_length: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive, base_path=base_path)
    token: Token[Request] = request_var.set(request)

    async def on_http_error(exc: HTTPError, req: Request) -> Response:
        return await handle_http_error(
            exc, req, error_handlers, debug=debug, api_prefix=api_prefix
        )

    try:
        # Innermost handler. Halt and HTTPError become responses here so
        # middleware (sessions, security headers) still sees them.
        async def dispatch(req: Request) -> AnyResponse:
            try:
                result = await dispatcher.dispatch(req, current_session())
            except Halt as halt:
                result = halt.response
            except HTTPError as exc:
                return await on_http_error(exc, req)
            return negotiate(result)

        handler = dispatch
        for mw in reversed(middleware):
            outer = handler
            mw_ref = mw

            async def make_next(req: Request, _mw: Any = mw_ref, _next: Next = outer) -> Response:
                return await _mw(req, _next)

            handler = make_next

        _check_content_length(request, max_content_length)
        response = await handler(request)

    except Halt as halt:
        response = negotiate(halt.response)
    except HTTPError as exc:
        response = await on_http_error(exc, request)
    except Exception as exc:
        response = await handle_internal_error(
            exc, request, error_handlers, debug=debug, api_prefix=api_prefix
        )
    finally:
        request_var.reset(token)

    await send_response(response, send)


def _check_content_length(request: Request, limit: int | None) -> None:
    if not limit:
        return
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise HTTPError(status=413, detail="Payload Too Large")
