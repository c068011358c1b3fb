"""CAPTCHA image for the login form."""

from storefront.captcha import CaptchaHelper
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.sessions.session import Session

NO_CACHE: tuple[tuple[str, str], ...] = (
    ("cache-control", "no-cache, no-store, must-revalidate"),
    ("pragma", "no-cache"),
    ("expires", "0"),
)


class CaptchaController:
    def __init__(self, session: Session, captcha: CaptchaHelper) -> None:
        self.session = session
        self.captcha = captcha

    def generate(self, request: Request) -> Response:
        """Issue a new code and serve it as SVG."""
        text = self.captcha.generate(self.session)
        return Response(
            body=self.captcha.render_svg(text),
            content_type="image/svg+xml",
            headers=NO_CACHE,
        )
