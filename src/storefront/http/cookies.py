"""Cookie parsing and SetCookie serialization.

Consolidates the read side (``parse_cookies``, used by Request) and the
write side (``SetCookie``, used by Response) in one module.
"""

from dataclasses import dataclass


def parse_cookies(header: str) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Returns an empty dict for empty or missing headers. The first
    occurrence of a name wins, matching browser ordering (most specific
    path first).
    """
    cookies: dict[str, str] = {}
    for pair in header.split(";") if header else ():
        key, sep, value = pair.strip().partition("=")
        if sep and key.strip():
            cookies.setdefault(key.strip(), value.strip().strip('"'))
    return cookies


@dataclass(frozen=True, slots=True)
class SetCookie:
    """A ``Set-Cookie`` directive attached to a Response.

    ``max_age=None`` produces a browser-session cookie (no expiry), which
    is what a ``cookie_lifetime`` of 0 means for the session cookie.
    """

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str | None = "Lax"

    def to_header_value(self) -> str:
        """Serialize to a ``Set-Cookie`` header value string."""
        parts = [f"{self.name}={self.value}"]
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.httponly:
            parts.append("HttpOnly")
        if self.samesite:
            parts.append(f"SameSite={self.samesite}")
        return "; ".join(parts)
