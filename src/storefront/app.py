"""Storefront application class.

Mutable during setup (routes, controllers, middleware, services, error
handlers). Frozen at runtime when ``__call__()`` is first invoked.
"""

import inspect
import logging
import threading
from collections.abc import Callable
from typing import Any

from storefront._internal.asgi import Receive, Scope, Send
from storefront._internal.types import ErrorHandler
from storefront.config import AppConfig
from storefront.middleware.protocol import Middleware
from storefront.routing.dispatch import Dispatcher
from storefront.routing.guards import Guard
from storefront.routing.router import Router
from storefront.server.handler import handle_request
from storefront.services import ControllerFactory, ServiceRegistry, autowire

logger = logging.getLogger("storefront.server")


class App:
    """The storefront application.

    Usage::

        app = App(AppConfig(secret_key="..."))
        app.router.get("", ("PageController", "index"))
        app.controller("PageController", PageController)

    Thread safety:
        Setup is single-threaded. The freeze transition uses a Lock plus a
        double-checked flag so exactly one thread compiles the router, even
        when several ASGI workers receive their first request at once.
    """

    __slots__ = (
        "_dispatcher",
        "_error_handlers",
        "_factories",
        "_freeze_lock",
        "_frozen",
        "_guards",
        "_middleware",
        "_middleware_list",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
        "registry",
        "router",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self.router = Router()
        self.registry = ServiceRegistry()
        self._factories: dict[str, ControllerFactory] = {}
        self._guards: list[Guard] = []
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._dispatcher: Dispatcher | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()

        self.registry.bind("config", self.config)

    # -- Controllers and services --

    def controller(self, name: str, factory: type | ControllerFactory) -> None:
        """Register the controller named *name* in route targets.

        A class is autowired from its constructor signature; any other
        callable is used as-is and receives a ``RequestScope``.
        """
        self._check_not_frozen()
        if name in self._factories:
            msg = f"Controller {name!r} is already registered."
            raise ValueError(msg)
        self._factories[name] = autowire(factory) if isinstance(factory, type) else factory

    def provide(self, key: str, value: Any, *, overwrite: bool = False) -> None:
        """Bind a service in the registry; shorthand for ``registry.bind``."""
        self.registry.bind(key, value, overwrite=overwrite)

    @property
    def controllers(self) -> dict[str, ControllerFactory]:
        return dict(self._factories)

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Middleware and guards --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline; the first added runs outermost."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    def add_guard(self, guard: Guard) -> None:
        """Add a guard evaluated for every route, before route guards."""
        self._check_not_frozen()
        self._guards.append(guard)

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        """Freeze the app and run the startup hooks."""
        self._ensure_frozen()
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        assert self._dispatcher is not None
        await handle_request(
            scope,
            receive,
            send,
            dispatcher=self._dispatcher,
            middleware=self._middleware,
            error_handlers=self._error_handlers,
            debug=self.config.debug,
            base_path=self.config.base_path,
            api_prefix=self.config.api_prefix,
            max_content_length=self.config.max_content_length,
        )

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol."""
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Compilation --

    @property
    def dispatcher(self) -> Dispatcher:
        self._ensure_frozen()
        assert self._dispatcher is not None
        return self._dispatcher

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the router, check route targets and fix the middleware."""
        self.router.compile()
        dispatcher = Dispatcher(
            self.router,
            self.registry,
            self._factories,
            base_url=self.config.base_url,
            guards=self._guards,
            api_prefix=self.config.api_prefix,
        )
        dispatcher.check_targets()
        self._dispatcher = dispatcher
        self._middleware = tuple(self._middleware_list)
        self._frozen = True
        logger.debug(
            "App frozen: %d routes, %d controllers, %d middleware",
            len(self.router),
            len(self._factories),
            len(self._middleware),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, controllers and middleware first."
            )
            raise RuntimeError(msg)
