"""Storefront exception hierarchy.

Shared across Router, Dispatcher, App, handler, and middleware so every
module raises and catches the same types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storefront.http.response import Redirect
    from storefront.middleware.protocol import AnyResponse


class StorefrontError(Exception):
    """Base for all storefront-specific errors."""


class ConfigurationError(StorefrontError):
    """Raised when app configuration or wiring is invalid.

    Typically caught during ``App._freeze()`` at startup.
    """


class UnresolvedDependency(ConfigurationError):
    """A controller constructor parameter could not be satisfied.

    Raised when building a controller for dispatch. Never retried: a
    missing required service is a wiring mistake, not a runtime condition.
    """

    def __init__(self, owner: str, param: str, annotation: Any = None) -> None:
        self.owner = owner
        self.param = param
        self.annotation = annotation
        type_name = getattr(annotation, "__name__", None) or repr(annotation)
        super().__init__(
            f"Cannot resolve dependency {param!r} ({type_name}) for {owner}. "
            "Bind it in the service registry or give it a default."
        )


class ServiceNotFound(StorefrontError, LookupError):  # noqa: N818
    """Requested key is not bound in the service registry."""


class ServiceAlreadyBound(StorefrontError):  # noqa: N818
    """Key is already bound and ``overwrite`` was not requested."""


@dataclass(frozen=True, slots=True)
class HTTPError(StorefrontError):
    """An error that maps directly to an HTTP status code.

    Raised by the dispatcher, middleware, or controllers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: the requested resource does not exist."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class RouteNotFound(NotFound):  # noqa: N818
    """404: no registered pattern matches the method and path.

    Carries the attempted path, the method, and every registered pattern
    so the top-level handler can show them in debug mode.
    """

    __slots__ = ("method", "path", "patterns")

    def __init__(self, path: str, method: str, patterns: tuple[str, ...] = ()) -> None:
        super().__init__(f"No route found for URI: {path}")
        object.__setattr__(self, "path", path)
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "patterns", patterns)


class MisconfiguredRedirect(HTTPError):
    """500: redirect target is neither root-relative nor absolute."""

    __slots__ = ("target",)

    def __init__(self, target: str) -> None:
        super().__init__(status=500, detail="Invalid redirect URL specified.")
        object.__setattr__(self, "target", target)


class Halt(StorefrontError):  # noqa: N818
    """Terminate request processing with a ready response.

    Raised by ``redirect_to()``, ``halt()`` and ``Session.require_login()``.
    The innermost dispatch catches it and returns ``response`` as-is, so
    nothing after the raise site runs and outer middleware still sees a
    normal response.
    """

    def __init__(self, response: AnyResponse | Redirect) -> None:
        self.response = response
        super().__init__(f"halted with {getattr(response, 'status', '?')}")
