"""GhibliGroceries: the storefront application built on the storefront core.

Run it with::

    STOREFRONT_SECRET_KEY=... storefront run storefront.shop:app_from_env
"""

__all__ = ["app_from_env", "create_app"]


def __getattr__(name: str) -> object:
    if name == "create_app":
        from storefront.shop.bootstrap import create_app

        return create_app

    if name == "app_from_env":
        from storefront.shop.bootstrap import app_from_env

        return app_from_env

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
