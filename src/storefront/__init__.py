"""storefront: an ASGI storefront core.

Regex routing with guards, server-side sessions with an auth gate,
constructor-injected controllers, terminating redirects, and the
GhibliGroceries shop built on top.

Basic usage::

    from storefront import App, AppConfig

    app = App(AppConfig(secret_key="..."))
    app.router.get("", ("PageController", "index"))
    app.controller("PageController", PageController)

The complete shop::

    from storefront.shop import create_app

    app = create_app(AppConfig.from_env())
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "Halt",
    "NotFound",
    "Redirect",
    "Request",
    "Response",
    "Router",
    "ServiceRegistry",
    "Session",
    "StorefrontError",
    "autowire",
    "get_request",
    "get_session",
    "redirect_to",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import storefront`` fast while providing a clean top-level API.
    """
    if name == "App":
        from storefront.app import App

        return App

    if name == "AppConfig":
        from storefront.config import AppConfig

        return AppConfig

    if name == "Request":
        from storefront.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from storefront.http import response as _resp

        return getattr(_resp, name)

    if name == "redirect_to":
        from storefront.http.redirect import redirect_to

        return redirect_to

    if name == "Router":
        from storefront.routing.router import Router

        return Router

    if name in ("ServiceRegistry", "autowire"):
        from storefront import services as _services

        return getattr(_services, name)

    if name in ("Session", "get_session"):
        from storefront import sessions as _sessions

        return getattr(_sessions, name)

    if name == "get_request":
        from storefront.context import get_request

        return get_request

    if name in ("ConfigurationError", "HTTPError", "Halt", "NotFound", "StorefrontError"):
        from storefront import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
