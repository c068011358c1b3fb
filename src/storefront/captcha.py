"""Login CAPTCHA: random code in the session, rendered as SVG.

The code is drawn from ``0-9A-Z`` and stored lower-cased, so validation
is case-insensitive.
"""

from __future__ import annotations

import html
import secrets
import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storefront.sessions.session import Session

ALPHABET = string.digits + string.ascii_uppercase


class CaptchaHelper:
    """Generate, store and check CAPTCHA codes.

    Stateless apart from its settings; one instance serves every request.
    """

    __slots__ = ("height", "session_key", "width")

    def __init__(self, *, session_key: str = "captcha", width: int = 200, height: int = 50) -> None:
        self.session_key = session_key
        self.width = width
        self.height = height

    def generate_text(self, length: int = 6) -> str:
        if length <= 0:
            msg = "CAPTCHA length must be positive"
            raise ValueError(msg)
        return "".join(secrets.choice(ALPHABET) for _ in range(length))

    def store(self, session: Session, text: str) -> None:
        session.set(self.session_key, text.lower())

    def generate(self, session: Session, length: int = 6) -> str:
        """Create a new code, store it in *session* and return it."""
        text = self.generate_text(length)
        self.store(session, text)
        return text

    def text(self, session: Session) -> str | None:
        return session.get(self.session_key)

    def validate(self, session: Session, submitted: str | None) -> bool:
        stored = self.text(session)
        if submitted is None or stored is None:
            return False
        return secrets.compare_digest(submitted.strip().lower().encode(), stored.encode())

    def clear(self, session: Session) -> None:
        session.remove(self.session_key)

    def render_svg(self, text: str) -> str:
        """A plain SVG image of *text* with a few noise lines."""
        w, h = self.width, self.height
        lines = "".join(
            f'<line x1="{secrets.randbelow(w)}" y1="{secrets.randbelow(h)}" '
            f'x2="{secrets.randbelow(w)}" y2="{secrets.randbelow(h)}" '
            'stroke="#b4b4b4" stroke-width="1"/>'
            for _ in range(5)
        )
        return (
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" '
            f'viewBox="0 0 {w} {h}">'
            f'<rect width="100%" height="100%" fill="#f0f0f0"/>{lines}'
            f'<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" '
            f'font-family="monospace" font-size="{h // 2}" letter-spacing="4" fill="#323232">'
            f"{html.escape(text)}</text></svg>"
        )
