"""Terminating redirects and early exits.

``redirect_to()`` never returns: it raises ``Halt`` carrying the redirect,
which the dispatcher turns into the response. Whatever the controller had
built so far is discarded.

Usage::

    from storefront.http.redirect import redirect_to

    def process(self, request):
        if not cart:
            redirect_to("/cart")
        ...
"""

import logging
from typing import NoReturn

from storefront.errors import Halt, MisconfiguredRedirect
from storefront.http.request import Request
from storefront.http.response import Redirect, Response, json_response
from storefront.security.urls import is_safe_url

logger = logging.getLogger("storefront.server")

_ABSOLUTE_PREFIXES: tuple[str, ...] = ("//", "http:", "https:")


def resolve_redirect_target(target: str, base_url: str = "") -> str:
    """Validate *target* and prefix root-relative paths with *base_url*.

    Absolute (``http:``, ``https:``) and protocol-relative (``//host``)
    targets pass through untouched. Anything that is neither absolute nor
    root-relative raises ``MisconfiguredRedirect`` (500).
    """
    if target.lower().startswith(_ABSOLUTE_PREFIXES):
        return target
    if target.startswith("/"):
        return base_url.rstrip("/") + target
    logger.warning("Invalid redirect URL format provided.", extra={"url": target})
    raise MisconfiguredRedirect(target)


def redirect_to(target: str, status: int = 302, *, base_url: str = "") -> NoReturn:
    """Terminate the request with a redirect to *target*.

    Raises:
        Halt: Always, for a valid target.
        MisconfiguredRedirect: When *target* is neither root-relative nor
            absolute; fails closed with a 500.
    """
    raise Halt(Redirect(resolve_redirect_target(target, base_url), status=status))


def redirect_back(
    request: Request,
    fallback: str = "/",
    *,
    status: int = 302,
    base_url: str = "",
) -> NoReturn:
    """Redirect to the referring page, or *fallback* without a usable referer.

    Only same-site referers are followed: a referer under *base_url*
    is reduced to its path, anything else is ignored.
    """
    referer = request.referer or ""
    if base_url and referer.startswith(base_url.rstrip("/") + "/"):
        referer = referer[len(base_url.rstrip("/")) :]
        redirect_to(referer, status, base_url=base_url)
    if is_safe_url(referer):
        redirect_to(referer, status, base_url=base_url)
    redirect_to(fallback, status, base_url=base_url)


def halt(response: Response) -> NoReturn:
    """Terminate the request with a ready-made *response*."""
    raise Halt(response)


def halt_json(data: object, status: int) -> NoReturn:
    """Terminate the request with a JSON body, e.g. a 401 for API callers."""
    raise Halt(json_response(data, status))
