"""Invoke helpers: call sync or async actions uniformly.

Controller actions, guards, and error handlers can be ``def`` or
``async def``. Any code that calls one must handle both cases; this module
keeps the check in exactly one place.

Usage::

    from storefront._internal.invoke import invoke

    result = await invoke(action, request, **params)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        class PageController:
            def about(self, request):
                return "<h1>About</h1>"

            async def products(self, request):
                rows = await self.db.fetch(Product, "SELECT * FROM products")
                return render_products(rows)
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
