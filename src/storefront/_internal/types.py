"""Shared type aliases used across storefront modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route target: (controller name, action name), e.g. ("OrderController", "details")
Target: TypeAlias = tuple[str, str]

# Error handler: receives (request, error?) and returns a response value
ErrorHandler: TypeAlias = Callable[..., Any]
