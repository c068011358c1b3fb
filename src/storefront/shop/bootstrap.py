"""Application factory for the storefront.

Usage::

    from storefront.shop import create_app

    app = create_app(AppConfig.from_env())
    # or from the shell: storefront run storefront.shop:app_from_env
"""

import logging
from importlib.resources import files

from storefront.app import App
from storefront.captcha import CaptchaHelper
from storefront.config import AppConfig
from storefront.data.database import Database
from storefront.errors import ConfigurationError
from storefront.logs import configure_logging
from storefront.middleware.security_headers import SecurityHeadersMiddleware
from storefront.routing.guards import ProtectedPaths
from storefront.security.lockout import LockoutConfig, LoginLockout
from storefront.sessions.config import SessionConfig
from storefront.sessions.middleware import SessionMiddleware
from storefront.sessions.store import FileSessionStore, MemorySessionStore, SessionStore
from storefront.shop.cart_data import CartService
from storefront.shop.controllers.captcha import CaptchaController
from storefront.shop.controllers.cart_api import CartApiController
from storefront.shop.controllers.catalog import ProductController
from storefront.shop.controllers.order_api import OrderApiController
from storefront.shop.controllers.orders import OrderController
from storefront.shop.controllers.pages import PageController
from storefront.shop.controllers.users import UserController
from storefront.shop.models import (
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    UserRepository,
)
from storefront.shop.routes import PROTECTED_PATHS, register_routes

logger = logging.getLogger("storefront.shop")

CONTROLLERS: tuple[type, ...] = (
    PageController,
    ProductController,
    UserController,
    CaptchaController,
    OrderController,
    CartApiController,
    OrderApiController,
)


def load_schema() -> str:
    return files("storefront.shop").joinpath("schema.sql").read_text(encoding="utf-8")


def create_app(
    config: AppConfig | None = None,
    *,
    database: Database | None = None,
    session_store: SessionStore | None = None,
    setup_logging: bool = True,
) -> App:
    """Build the storefront application.

    The schema is applied on startup; the database is closed on shutdown.

    Raises:
        ConfigurationError: When no ``secret_key`` is configured.
    """
    config = config or AppConfig()
    if not config.secret_key:
        msg = "secret_key is required to sign session cookies (set STOREFRONT_SECRET_KEY)."
        raise ConfigurationError(msg)
    if setup_logging:
        configure_logging(config.log_level, config.log_format)

    app = App(config)
    db = database or Database(config.database_url, echo=config.debug)

    # -- Services --
    products = ProductRepository(db)
    app.provide("database", db)
    app.provide("UserRepository", UserRepository(db))
    app.provide("CategoryRepository", CategoryRepository(db))
    app.provide("ProductRepository", products)
    app.provide("OrderRepository", OrderRepository(db))
    app.provide("CartService", CartService(products))
    app.provide("captcha", CaptchaHelper())
    app.provide(
        "lockout",
        LoginLockout(
            LockoutConfig(
                max_failures=config.max_login_attempts,
                window_seconds=config.lockout_time,
                lock_seconds=config.lockout_time,
            )
        ),
    )

    for controller in CONTROLLERS:
        app.controller(controller.__name__, controller)

    # -- Middleware, outermost first --
    if session_store is None:
        session_store = FileSessionStore(config.session_dir) if config.session_dir else MemorySessionStore()
    app.add_middleware(SecurityHeadersMiddleware())
    app.add_middleware(
        SessionMiddleware(
            SessionConfig(
                secret_key=config.secret_key,
                cookie_name=config.session_cookie,
                path=config.base_path or "/",
                session_timeout=config.session_timeout,
                regenerate_interval=config.regenerate_interval,
                gc_maxlifetime=config.session_timeout,
                check_ip_address=config.check_ip_address,
            ),
            session_store,
        )
    )

    app.add_guard(
        ProtectedPaths(PROTECTED_PATHS, api_prefix=config.api_prefix, login_url=config.login_url)
    )
    register_routes(app)

    # -- Lifecycle --
    @app.on_startup
    async def open_database() -> None:
        await db.connect()
        await db.execute_script(load_schema())
        logger.info("Storefront ready", extra={"database": db.url, "routes": len(app.router)})

    @app.on_shutdown
    async def close_database() -> None:
        await db.disconnect()

    return app


def app_from_env() -> App:
    """``create_app`` configured from ``STOREFRONT_*`` environment variables."""
    return create_app(AppConfig.from_env())
