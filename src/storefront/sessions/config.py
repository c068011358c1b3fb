"""Session configuration."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Cookie and lifetime settings for server-side sessions.

    ``secret_key`` signs the session-id cookie; it is required.
    ``cookie_lifetime=0`` issues a browser-session cookie. ``secure=None``
    marks the cookie secure exactly when the request arrived over HTTPS.
    """

    secret_key: str
    cookie_name: str = "storefront_session"
    cookie_lifetime: int = 0
    path: str = "/"
    domain: str | None = None
    secure: bool | None = None
    httponly: bool = True
    samesite: str = "Lax"
    session_timeout: int = 1800
    regenerate_interval: int = 300
    check_ip_address: bool = True
    gc_maxlifetime: int = 1800
    rotation_grace: int = 60
