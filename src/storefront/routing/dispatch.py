"""Request dispatch: match, guard, build the controller, run the action.

The request path is already relative to the application's base URL
(``Request.from_asgi`` strips it). Dispatch:

1. matches method and path, raising ``RouteNotFound`` (404) on a miss;
2. runs app-wide guards, then the route's own guards; the first ``Deny``
   becomes the response (JSON for API callers, flash plus redirect for
   browsers) and is recorded as a security event;
3. builds the controller through its registered factory and calls the
   action as ``action(request, **params)``, sync or async.

The action's return value is handed back unchanged; content negotiation
happens in the server layer.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from storefront._internal.invoke import invoke
from storefront._internal.types import Target
from storefront.errors import ConfigurationError, RouteNotFound
from storefront.http.redirect import resolve_redirect_target
from storefront.http.request import Request
from storefront.http.response import Response, json_response
from storefront.routing.guards import Deny, Guard
from storefront.routing.route import RouteMatch
from storefront.routing.router import Router
from storefront.security.audit import emit_security_event
from storefront.services import ControllerFactory, RequestScope, ServiceRegistry
from storefront.sessions.session import Session

logger = logging.getLogger("storefront.routing")


class Dispatcher:
    """Route a request to its controller action.

    Usage::

        dispatcher = Dispatcher(router, registry, {"PageController": autowire(PageController)})
        result = await dispatcher.dispatch(request, session)
    """

    __slots__ = ("_api_prefix", "_base_url", "_factories", "_guards", "_registry", "_router")

    def __init__(
        self,
        router: Router,
        registry: ServiceRegistry,
        factories: Mapping[str, ControllerFactory],
        *,
        base_url: str = "",
        guards: Sequence[Guard] = (),
        api_prefix: str = "api/",
    ) -> None:
        self._router = router
        self._registry = registry
        self._factories = dict(factories)
        self._base_url = base_url
        self._guards = tuple(guards)
        self._api_prefix = api_prefix

    @property
    def router(self) -> Router:
        return self._router

    # -- Validation --

    def check_targets(self) -> None:
        """Fail fast when a route names an unknown controller or action.

        Raises:
            ConfigurationError: Listing every broken target.
        """
        problems: list[str] = []
        for route in self._router.routes:
            controller, action = route.target
            factory = self._factories.get(controller)
            if factory is None:
                problems.append(f"{route.method} {route.path}: unknown controller {controller!r}")
                continue
            cls = getattr(factory, "cls", None)
            if cls is not None and not callable(getattr(cls, action, None)):
                problems.append(f"{route.method} {route.path}: {controller} has no action {action!r}")
        if problems:
            msg = "Invalid route targets:\n  " + "\n  ".join(problems)
            raise ConfigurationError(msg)

    # -- Steps --

    def match(self, request: Request) -> RouteMatch:
        """Find the route for *request*.

        Raises:
            RouteNotFound: When no pattern matches.
        """
        match = self._router.match(request.path, request.method)
        if match is None:
            patterns = self._router.patterns
            logger.error(
                "No route found for %s %s. Defined routes: %s",
                request.method,
                request.path,
                ", ".join(patterns) or "(none)",
            )
            raise RouteNotFound(request.path, request.method, patterns)
        return match

    async def check_guards(
        self, match: RouteMatch, request: Request, session: Session | None
    ) -> Deny | None:
        """Run app guards then route guards; return the first denial."""
        for guard in (*self._guards, *match.route.guards):
            decision = await invoke(guard, match, request, session)
            if isinstance(decision, Deny):
                return decision
        return None

    def deny_response(self, deny: Deny, request: Request, session: Session | None) -> Response:
        emit_security_event(
            "auth.denied",
            request=request,
            user_id=session.get_user_id() if session is not None else None,
            details={"reason": deny.reason or "denied", "status": deny.status},
        )
        if deny.payload is not None:
            return json_response(dict(deny.payload), deny.status)
        if deny.flash is not None and session is not None:
            session.flash(*deny.flash)
        location = resolve_redirect_target(deny.location or "/", self._base_url)
        return Response(status=deny.status).with_header("Location", location)

    def build_controller(self, target: Target, scope: RequestScope) -> Any:
        controller, _ = target
        factory = self._factories.get(controller)
        if factory is None:
            msg = f"No factory registered for controller {controller!r}"
            raise ConfigurationError(msg)
        return factory(scope)

    # -- Entry point --

    async def dispatch(self, request: Request, session: Session | None = None) -> Any:
        """Run the full dispatch for *request* and return the action's result."""
        match = self.match(request)

        deny = await self.check_guards(match, request, session)
        if deny is not None:
            logger.info(
                "Denied %s %s (%s)", request.method, request.path, deny.reason or deny.status
            )
            return self.deny_response(deny, request, session)

        request = request.with_params(match.params)
        scope = RequestScope(self._registry, request, session)
        controller = self.build_controller(match.target, scope)
        action = getattr(controller, match.target[1], None)
        if action is None:
            msg = f"{type(controller).__qualname__} has no action {match.target[1]!r}"
            raise ConfigurationError(msg)
        return await invoke(action, request, **match.params)
