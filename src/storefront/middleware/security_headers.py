"""Security headers middleware: X-Frame-Options, X-Content-Type-Options, Referrer-Policy.

Headers go on HTML responses only; JSON and images are left alone.
"""

from dataclasses import dataclass

from storefront.http.request import Request
from storefront.middleware.protocol import AnyResponse, Next


@dataclass(frozen=True, slots=True)
class SecurityHeadersConfig:
    """Header values, applied as-is."""

    x_frame_options: str = "DENY"
    x_content_type_options: str = "nosniff"
    referrer_policy: str = "strict-origin-when-cross-origin"
    content_security_policy: str | None = (
        "default-src 'self'; base-uri 'self'; frame-ancestors 'none'; object-src 'none'"
    )
    strict_transport_security: str | None = None


class SecurityHeadersMiddleware:
    """Add security headers to HTML responses.

    Usage::

        app.add_middleware(SecurityHeadersMiddleware())
    """

    __slots__ = ("_config",)

    def __init__(self, config: SecurityHeadersConfig | None = None) -> None:
        self._config = config or SecurityHeadersConfig()

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        response = await next(request)
        if not response.content_type.startswith("text/html"):
            return response
        cfg = self._config
        secured = (
            response.with_header("X-Frame-Options", cfg.x_frame_options)
            .with_header("X-Content-Type-Options", cfg.x_content_type_options)
            .with_header("Referrer-Policy", cfg.referrer_policy)
        )
        if cfg.content_security_policy:
            secured = secured.with_header("Content-Security-Policy", cfg.content_security_policy)
        if cfg.strict_transport_security:
            secured = secured.with_header("Strict-Transport-Security", cfg.strict_transport_security)
        return secured
