"""The per-request session object.

A ``Session`` wraps the data loaded from the store plus the id it was
loaded under. It knows the authentication conventions of the shop
(``user_id``, ``login_time``, ``user_ip``), one-shot flash messages, the
CSRF token, and idle-timeout / IP-pinning checks. All operations are
synchronous over in-memory state; ``SessionMiddleware`` persists the
result after the handler returns.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import time
from collections.abc import Callable
from typing import Any, NoReturn

from storefront.errors import Halt
from storefront.http.redirect import resolve_redirect_target
from storefront.http.response import Redirect
from storefront.security.audit import emit_security_event
from storefront.sessions.config import SessionConfig
from storefront.sessions.store import new_session_id

logger = logging.getLogger("storefront.sessions")

CSRF_TOKEN_KEY = "_csrf_token"
FLASH_KEY = "_flash"
USER_ID_KEY = "user_id"
LOGIN_TIME_KEY = "login_time"
USER_IP_KEY = "user_ip"
LAST_REGENERATE_KEY = "_last_regenerate"

EXPIRED_MESSAGE = "Your session has expired due to inactivity. Please login again."
IP_MISMATCH_MESSAGE = "Your session is invalid due to a security check. Please login again."
LOGIN_REQUIRED_MESSAGE = "Please login to access this page."


class Session:
    """Mutable session state for one request.

    Usage::

        session = get_session()
        session.flash("success", "Saved.")
        if not session.is_authenticated():
            session.require_login()
    """

    __slots__ = (
        "_clock",
        "_config",
        "_data",
        "_id",
        "_retired",
        "_superseded",
        "client_ip",
        "is_new",
    )

    def __init__(
        self,
        sid: str | None = None,
        data: dict[str, Any] | None = None,
        *,
        config: SessionConfig,
        client_ip: str = "unknown",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.is_new = sid is None
        self._id = sid or new_session_id()
        self._data: dict[str, Any] = dict(data or {})
        self._config = config
        self._clock = clock
        self._retired: list[str] = []
        self._superseded: list[str] = []
        self.client_ip = client_ip

    # -- Identity --

    @property
    def id(self) -> str:
        return self._id

    @property
    def retired_ids(self) -> tuple[str, ...]:
        """Ids whose stored data must be deleted when the session is saved."""
        return tuple(self._retired)

    @property
    def superseded_ids(self) -> tuple[str, ...]:
        """Ids left behind by periodic rotation; they expire after a grace period."""
        return tuple(self._superseded)

    def _now(self) -> int:
        return int(self._clock())

    # -- Data access --

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return self._data.get(key) is not None

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def all(self) -> dict[str, Any]:
        """A copy of the raw session data."""
        return dict(self._data)

    # -- Lifecycle --

    def regenerate(self, delete_old: bool = True) -> None:
        """Move the data to a new id.

        The old id is retired only when *delete_old* is true; periodic
        rotation keeps it so concurrent in-flight requests still resolve.
        """
        self._data[LAST_REGENERATE_KEY] = self._now()
        if delete_old:
            self._retired.append(self._id)
        else:
            self._superseded.append(self._id)
        self._id = new_session_id()

    def destroy(self) -> None:
        """Drop all data and retire the current id."""
        self._data.clear()
        self._retired.append(self._id)

    def start(self) -> None:
        """Begin a fresh session under a new id."""
        self._id = new_session_id()
        self.is_new = True

    # -- Flash messages --

    def flash(self, key: str, value: Any) -> None:
        """Store *value* for exactly one later read."""
        bucket = self._data.setdefault(FLASH_KEY, {})
        bucket[key] = value

    def get_flash(self, key: str, default: Any = None) -> Any:
        """Read and remove a flash message."""
        bucket = self._data.get(FLASH_KEY)
        if not bucket or bucket.get(key) is None:
            return default
        value = bucket.pop(key)
        if not bucket:
            del self._data[FLASH_KEY]
        return value

    def has_flash(self, key: str) -> bool:
        bucket = self._data.get(FLASH_KEY) or {}
        return bucket.get(key) is not None

    # -- CSRF --

    def generate_csrf_token(self) -> str:
        token = secrets.token_hex(32)
        self._data[CSRF_TOKEN_KEY] = token
        return token

    def get_csrf_token(self) -> str:
        """The current CSRF token, created on first use."""
        token = self._data.get(CSRF_TOKEN_KEY)
        if not token:
            return self.generate_csrf_token()
        return token

    def validate_csrf_token(self, submitted: str | None) -> bool:
        expected = self._data.get(CSRF_TOKEN_KEY)
        if not submitted or not expected:
            return False
        return hmac.compare_digest(str(expected).encode(), str(submitted).encode())

    # -- Authentication --

    def login_user(self, user_id: int | str) -> None:
        """Mark the session as authenticated for *user_id*.

        Rotates the id (deleting the old one) to prevent fixation and
        issues a new CSRF token.
        """
        self.regenerate(delete_old=True)
        self._data[USER_ID_KEY] = user_id
        self._data[LOGIN_TIME_KEY] = self._now()
        if self._config.check_ip_address:
            self._data[USER_IP_KEY] = self.client_ip
        self.remove(CSRF_TOKEN_KEY)
        self.generate_csrf_token()

    def logout_user(self) -> None:
        """End the authenticated session, keeping pending flash messages."""
        pending = self._data.get(FLASH_KEY) or {}
        self.destroy()
        self.start()
        if pending:
            self._data[FLASH_KEY] = pending
        self.generate_csrf_token()

    def is_authenticated(self) -> bool:
        return self.has(USER_ID_KEY)

    def get_user_id(self) -> Any:
        return self.get(USER_ID_KEY)

    def validate_activity(self) -> bool:
        """Enforce idle timeout and IP pinning for authenticated sessions.

        Returns ``False`` (after logging the user out with a flash message)
        when the session expired or the client address changed. Anonymous
        sessions always pass.
        """
        if not self.is_authenticated():
            return True

        now = self._now()
        login_time = self.get(LOGIN_TIME_KEY)
        if login_time and now - int(login_time) > self._config.session_timeout:
            logger.info("Session expired for user %s", self.get_user_id())
            self.flash("error", EXPIRED_MESSAGE)
            self.logout_user()
            return False

        if self._config.check_ip_address:
            stored_ip = self.get(USER_IP_KEY)
            current_ip = self.client_ip
            if stored_ip and stored_ip != current_ip:
                user_id = self.get_user_id()
                logger.warning(
                    "Session IP mismatch detected.",
                    extra={"stored_ip": stored_ip, "current_ip": current_ip, "user_id": user_id},
                )
                emit_security_event(
                    "session.ip_mismatch",
                    user_id=user_id,
                    details={"stored_ip": stored_ip, "current_ip": current_ip},
                )
                self.flash("error", IP_MISMATCH_MESSAGE)
                self.logout_user()
                return False
            if not stored_ip and current_ip != "unknown":
                self._data[USER_IP_KEY] = current_ip

        last_regenerate = int(self.get(LAST_REGENERATE_KEY, 0))
        if now - last_regenerate > self._config.regenerate_interval:
            self.regenerate(delete_old=False)

        self._data[LOGIN_TIME_KEY] = now
        return True

    def require_login(self, redirect_to: str = "/login", *, base_url: str = "") -> None:
        """Terminate with a redirect unless the session is authenticated and valid.

        Raises:
            Halt: Carrying the redirect to *redirect_to*.
        """
        if not self.is_authenticated():
            self.flash("error", LOGIN_REQUIRED_MESSAGE)
            self._halt(redirect_to, base_url)
        if not self.validate_activity():
            self._halt(redirect_to, base_url)

    @staticmethod
    def _halt(target: str, base_url: str) -> NoReturn:
        raise Halt(Redirect(resolve_redirect_target(target, base_url)))

    def __repr__(self) -> str:
        state = "authenticated" if self.is_authenticated() else "anonymous"
        return f"Session({self._id[:8]}..., {state})"
