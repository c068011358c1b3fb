"""Error handling pipeline.

Maps ``HTTPError`` exceptions and unexpected failures to responses, using
handlers registered with ``@app.error()`` or the defaults below. No stack
trace ever reaches the client; debug mode adds the exception text and,
for 404s, the route table.
"""

import html
import inspect
import logging
from collections.abc import Callable
from typing import Any

from storefront.errors import HTTPError, RouteNotFound
from storefront.http.request import Request
from storefront.http.response import Response, json_response
from storefront.routing.guards import is_api_path
from storefront.server.negotiation import negotiate

logger = logging.getLogger("storefront.server")

NOT_FOUND_TITLE = "404 - Page Not Found"
NOT_FOUND_MESSAGE = "Sorry, the page you are looking for could not be found."
ERROR_TITLE = "An Error Occurred"
ERROR_MESSAGE = "We are sorry, something went wrong. Please try again later."


def error_page(title: str, message: str, *, details: list[str] | None = None) -> str:
    """Minimal standalone HTML error page; every string is escaped."""
    extra = "".join(f"<p>{html.escape(line)}</p>" for line in details or ())
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head><body>"
        f"<h1>{html.escape(title)}</h1><p>{html.escape(message)}</p>{extra}"
        "</body></html>"
    )


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
) -> Response:
    """Invoke a registered error handler with introspected arguments.

    Error handlers may accept zero, one (request) or two (request, exc)
    arguments, and may be sync or async.
    """
    params = list(inspect.signature(handler).parameters.values())
    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()
    if inspect.isawaitable(result):
        result = await result
    return negotiate(result)


def _find_handler(
    error_handlers: dict[int | type, Callable[..., Any]], exc: Exception, status: int
) -> Callable[..., Any] | None:
    for cls in type(exc).__mro__:
        if cls in error_handlers:
            return error_handlers[cls]
    return error_handlers.get(status)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    *,
    debug: bool = False,
    api_prefix: str = "api/",
) -> Response:
    """Map an HTTPError to a Response."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    handler = _find_handler(error_handlers, exc, exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc)
        # Keep the error status unless the handler chose its own
        if response.status == 200:
            response = response.with_status(exc.status)
        return response

    api = is_api_path(request.path, api_prefix)
    if exc.status == 404:
        if api:
            response = json_response({"error": "Not Found", "message": exc.detail}, 404)
        else:
            details: list[str] = []
            if debug:
                details.append(f"{request.method} {request.path}: {exc.detail}")
                if isinstance(exc, RouteNotFound):
                    details.extend(f"Route: {p}" for p in exc.patterns)
            response = Response(
                body=error_page(NOT_FOUND_TITLE, NOT_FOUND_MESSAGE, details=details), status=404
            )
    elif api:
        response = json_response({"error": exc.detail or f"Error {exc.status}"}, exc.status)
    else:
        details = [f"Error ({exc.status}): {exc.detail}"] if debug and exc.detail else []
        response = Response(body=error_page(ERROR_TITLE, ERROR_MESSAGE, details=details), status=exc.status)

    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    *,
    debug: bool = False,
    api_prefix: str = "api/",
) -> Response:
    """Handle an unexpected exception as a 500."""
    logger.exception("500 %s %s", request.method, request.path)

    handler = _find_handler(error_handlers, exc, 500)
    if handler is not None:
        response = await call_error_handler(handler, request, exc)
        return response.with_status(500) if response.status == 200 else response

    text = f"{type(exc).__name__}: {exc}"
    if is_api_path(request.path, api_prefix):
        payload: dict[str, str] = {"error": "Internal Server Error"}
        if debug:
            payload["message"] = text
        return json_response(payload, 500)

    details = [text] if debug else []
    return Response(body=error_page(ERROR_TITLE, ERROR_MESSAGE, details=details), status=500)
