"""CSRF protection middleware, backed by the session token.

Form controllers (login, register, checkout) validate ``csrf_token``
themselves so they can answer with a page-specific flash message. The
middleware and the route guard here cover the routes that have no such
handling, typically JSON endpoints called from scripts, which send the
token in a header.

Usage::

    app.add_middleware(CSRFMiddleware(CSRFConfig(paths=("api/v1/orders/{id}",))))
    router.put("api/v1/orders/{id}", target, guards=[login_required, csrf_required])
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storefront.errors import ConfigurationError
from storefront.http.request import Request
from storefront.http.response import Response, json_response
from storefront.middleware.protocol import AnyResponse, Next
from storefront.routing.guards import ALLOW, Decision, Deny, is_api_path
from storefront.routing.router import compile_template, normalize_path
from storefront.security.audit import emit_security_event

if TYPE_CHECKING:
    from storefront.routing.route import RouteMatch
    from storefront.sessions.session import Session

# Methods that mutate state and need CSRF protection
_UNSAFE_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

REJECTED_MESSAGE = "Invalid security token. Please refresh and try again."


@dataclass(frozen=True, slots=True)
class CSRFConfig:
    """CSRF middleware configuration.

    Attributes:
        paths: Route templates to protect. An empty tuple protects every
            unsafe request.
        field_name: Form field carrying the token.
        header_name: Header carrying the token for script clients.
        api_prefix: Requests under this prefix get a JSON rejection.
    """

    paths: tuple[str, ...] = ()
    field_name: str = "csrf_token"
    header_name: str = "X-CSRF-Token"
    api_prefix: str = "api/"
    _patterns: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_patterns", _compile(self.paths))

    def protects(self, path: str) -> bool:
        if not self._patterns:
            return True
        normalized = normalize_path(path)
        return any(p.match(normalized) for p in self._patterns)


def _compile(paths: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(compile_template(p)[0] for p in paths)


class CSRFMiddleware:
    """Reject unsafe requests whose token does not match the session's.

    Requires ``SessionMiddleware`` to run first. The check happens before
    routing, so it also runs ahead of any route guard; use ``CSRFGuard``
    when authentication must be decided first.
    """

    __slots__ = ("_config",)

    def __init__(self, config: CSRFConfig | None = None) -> None:
        self._config = config or CSRFConfig()

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        from storefront.sessions.middleware import current_session

        cfg = self._config
        if request.method not in _UNSAFE_METHODS or not cfg.protects(request.path):
            return await next(request)

        session = current_session()
        if session is None:
            msg = (
                "CSRFMiddleware requires SessionMiddleware. "
                "Add SessionMiddleware before CSRFMiddleware."
            )
            raise ConfigurationError(msg)

        if await _token_matches(request, session, cfg):
            return await next(request)
        if is_api_path(request.path, cfg.api_prefix):
            return json_response({"error": REJECTED_MESSAGE}, 403)
        return Response(body=REJECTED_MESSAGE, status=403, content_type="text/plain; charset=utf-8")


class CSRFGuard:
    """Route guard form of the CSRF check.

    Attach it after ``login_required`` so anonymous callers are told to
    authenticate before their token is looked at::

        with router.group("api/v1", guards=[login_required, csrf_required]):
            ...

    Safe methods pass; a bad token is denied with
    ``403 {"error": REJECTED_MESSAGE}``.
    """

    __slots__ = ("_config",)

    def __init__(self, config: CSRFConfig | None = None) -> None:
        self._config = config or CSRFConfig()

    async def __call__(self, match: RouteMatch, request: Request, session: Session | None) -> Decision:
        if request.method not in _UNSAFE_METHODS:
            return ALLOW
        if session is None:
            msg = "CSRFGuard requires SessionMiddleware"
            raise ConfigurationError(msg)
        if await _token_matches(request, session, self._config):
            return ALLOW
        return Deny(status=403, payload={"error": REJECTED_MESSAGE}, reason="csrf")


csrf_required = CSRFGuard()
"""Default ``CSRFGuard`` (``X-CSRF-Token`` header or ``csrf_token`` field)."""


async def _token_matches(request: Request, session: Session, cfg: CSRFConfig) -> bool:
    submitted = request.header(cfg.header_name)
    if not submitted:
        submitted = await request.post(cfg.field_name)
    if session.validate_csrf_token(submitted):
        return True
    emit_security_event(
        "csrf.rejected",
        request=request,
        user_id=session.get_user_id(),
        details={"token_present": bool(submitted)},
    )
    return False
