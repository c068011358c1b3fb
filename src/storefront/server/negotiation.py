"""Content negotiation: maps action return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

from typing import Any

from storefront.http.response import JSON_CONTENT_TYPE, Redirect, Response, json_response


def negotiate(value: Any) -> Response:
    """Convert an action's return value to a Response.

    Dispatch order:

    1. ``Response``            -> pass through
    2. ``Redirect``            -> 3xx with Location header (URL sent as-is)
    3. ``str``                 -> 200, text/html
    4. ``bytes``               -> 200, application/octet-stream
    5. ``dict`` / ``list``     -> 200, application/json
    6. ``(value, int)``        -> negotiate value, override status
    7. ``(value, int, dict)``  -> negotiate value, override status + headers
    """
    match value:
        case Response():
            return value
        case Redirect():
            response = Response(status=value.status).with_header("Location", value.url)
            for name, header_value in value.headers:
                response = response.with_header(name, header_value)
            return response
        case str():
            return Response(body=value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return json_response(value)
        case (inner, int() as status):
            return negotiate(inner).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner).with_status(status).with_headers(headers)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                "Return a Response, Redirect, str, bytes, dict, list or a "
                "(value, status) tuple."
            )
            raise TypeError(msg)


def is_json(response: Response) -> bool:
    return response.content_type.startswith(JSON_CONTENT_TYPE)
