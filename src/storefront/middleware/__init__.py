"""Built-in middleware."""

from storefront.middleware.csrf import CSRFConfig, CSRFGuard, CSRFMiddleware, csrf_required
from storefront.middleware.protocol import AnyResponse, Middleware, Next
from storefront.middleware.security_headers import SecurityHeadersConfig, SecurityHeadersMiddleware

__all__ = [
    "AnyResponse",
    "CSRFConfig",
    "CSRFGuard",
    "CSRFMiddleware",
    "Middleware",
    "Next",
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "csrf_required",
]
