"""Route guards: declarative access policy evaluated before dispatch.

A guard is any callable matching::

    def guard(match: RouteMatch, request: Request, session: Session | None) -> Decision

(sync or async). It returns ``ALLOW`` or a ``Deny`` describing the
response to send instead of running the controller. Guards are attached
app-wide (``App.add_guard``), per group (``router.group(..., guards=...)``)
or per route (``router.get(..., guards=...)``) and run in that order; the
first ``Deny`` wins.

Denials are control flow, not exceptions: an anonymous visitor hitting a
protected page is an expected, frequent condition.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from storefront.routing.router import compile_template, normalize_path

if TYPE_CHECKING:
    from storefront.http.request import Request
    from storefront.routing.route import RouteMatch
    from storefront.sessions.session import Session

AUTH_REQUIRED_MESSAGE = "Authentication required."
LOGIN_FLASH_MESSAGE = "Please log in to access that page."


@dataclass(frozen=True, slots=True)
class Allow:
    """Let the request through to the next guard or the controller."""

    def __bool__(self) -> bool:
        return True


ALLOW = Allow()


@dataclass(frozen=True, slots=True)
class Deny:
    """Stop the request and answer with a redirect or a JSON body.

    A ``location`` produces a redirect (``status`` defaults to 302); a
    ``payload`` produces a JSON response. ``flash`` is a ``(key, message)``
    pair stored in the session before redirecting.
    """

    status: int = 302
    location: str | None = None
    payload: Mapping[str, Any] | None = None
    flash: tuple[str, str] | None = None
    reason: str = ""

    def __bool__(self) -> bool:
        return False


type Decision = Allow | Deny
type Guard = Callable[["RouteMatch", "Request", "Session | None"], Decision | Awaitable[Decision]]


def is_api_path(path: str, api_prefix: str = "api/") -> bool:
    """True when *path* (slash-trimmed) starts with the API prefix."""
    trimmed = path.strip("/").lower()
    prefix = api_prefix.strip("/").lower()
    return trimmed == prefix or trimmed.startswith(prefix + "/")


def deny_unauthenticated(path: str, *, api_prefix: str = "api/", login_url: str = "/login") -> Deny:
    """The standard denial for an anonymous caller.

    API callers get ``401 {"error": "Authentication required."}``; browsers
    get a flash message and a redirect to the login page.
    """
    if is_api_path(path, api_prefix):
        return Deny(status=401, payload={"error": AUTH_REQUIRED_MESSAGE}, reason="unauthenticated")
    return Deny(
        status=302,
        location=login_url,
        flash=("error", LOGIN_FLASH_MESSAGE),
        reason="unauthenticated",
    )


def _authenticated(session: Session | None) -> bool:
    return session is not None and session.is_authenticated()


class ProtectedPaths:
    """Deny anonymous access to a fixed set of path templates.

    A matched route is protected when its compiled pattern is one of the
    protected patterns, or, as a fallback, when the cleaned request path
    matches one of them literally. Order of the templates does not matter.

    Usage::

        app.add_guard(ProtectedPaths(["orders", "order/details/{id}"]))
    """

    __slots__ = ("_api_prefix", "_login_url", "_patterns", "_sources", "templates")

    def __init__(
        self,
        templates: Iterable[str],
        *,
        api_prefix: str = "api/",
        login_url: str = "/login",
    ) -> None:
        self.templates: frozenset[str] = frozenset(t.strip("/") for t in templates)
        self._patterns: tuple[re.Pattern[str], ...] = tuple(
            compile_template(t)[0] for t in sorted(self.templates)
        )
        self._sources: frozenset[str] = frozenset(p.pattern for p in self._patterns)
        self._api_prefix = api_prefix
        self._login_url = login_url

    def protects(self, match: RouteMatch) -> bool:
        """True when *match* falls under one of the protected templates."""
        if match.route.pattern.pattern in self._sources:
            return True
        path = normalize_path(match.path)
        return any(p.match(path) for p in self._patterns)

    def __call__(self, match: RouteMatch, request: Request, session: Session | None) -> Decision:
        if _authenticated(session) or not self.protects(match):
            return ALLOW
        return deny_unauthenticated(
            match.path, api_prefix=self._api_prefix, login_url=self._login_url
        )

    def __repr__(self) -> str:
        return f"ProtectedPaths({sorted(self.templates)!r})"


class LoginRequired:
    """Deny anonymous access to every route the guard is attached to."""

    __slots__ = ("_api_prefix", "_login_url")

    def __init__(self, *, api_prefix: str = "api/", login_url: str = "/login") -> None:
        self._api_prefix = api_prefix
        self._login_url = login_url

    def __call__(self, match: RouteMatch, request: Request, session: Session | None) -> Decision:
        if _authenticated(session):
            return ALLOW
        return deny_unauthenticated(
            match.path, api_prefix=self._api_prefix, login_url=self._login_url
        )


login_required = LoginRequired()
"""Default ``LoginRequired`` guard (``api/`` prefix, ``/login`` page)."""
