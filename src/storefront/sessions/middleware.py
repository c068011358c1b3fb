"""Session middleware: signed session-id cookie, server-side data.

The cookie holds only the session id, signed with ``itsdangerous``. The
``Session`` is stored in a ContextVar, accessible via ``get_session()``
from any controller, guard or middleware.
"""

import logging
from contextvars import ContextVar

from itsdangerous import BadSignature, URLSafeSerializer

from storefront.errors import ConfigurationError
from storefront.http.request import Request
from storefront.middleware.protocol import AnyResponse, Next
from storefront.sessions.config import SessionConfig
from storefront.sessions.session import Session
from storefront.sessions.store import MemorySessionStore, SessionStore

logger = logging.getLogger("storefront.sessions")

# -- Session ContextVar --

_session_var: ContextVar[Session | None] = ContextVar("storefront_session", default=None)


def get_session() -> Session:
    """Return the current ``Session``.

    Raises ``LookupError`` if called outside a request with
    ``SessionMiddleware`` active.
    """
    session = _session_var.get()
    if session is None:
        msg = (
            "No active session. Ensure SessionMiddleware is added "
            "to the app before accessing the session."
        )
        raise LookupError(msg)
    return session


def current_session() -> Session | None:
    """The current ``Session``, or ``None`` outside session-enabled requests."""
    return _session_var.get()


# -- Middleware --


class SessionMiddleware:
    """Server-side session middleware.

    Reads and verifies the session cookie, loads the data from *store*
    (or starts an anonymous session), runs the activity checks, makes the
    session available via ``get_session()``, then saves it and writes the
    signed cookie on the response.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    """

    __slots__ = ("_config", "_serializer", "_store")

    def __init__(self, config: SessionConfig, store: SessionStore | None = None) -> None:
        if not config.secret_key:
            msg = "SessionConfig.secret_key must not be empty."
            raise ConfigurationError(msg)
        self._config = config
        self._store: SessionStore = store if store is not None else MemorySessionStore()
        self._serializer = URLSafeSerializer(config.secret_key, salt="storefront.session")

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def config(self) -> SessionConfig:
        return self._config

    def sign(self, sid: str) -> str:
        """The cookie value for session id *sid*."""
        return self._serializer.dumps(sid)

    def unsign(self, value: str) -> str | None:
        """The session id inside cookie *value*, or ``None`` if tampered."""
        try:
            sid = self._serializer.loads(value)
        except BadSignature:
            logger.debug("Ignoring session cookie with a bad signature")
            return None
        return sid if isinstance(sid, str) else None

    async def load(self, request: Request) -> Session:
        """Load the session named by the request cookie, or start a new one."""
        cookie = request.cookies.get(self._config.cookie_name)
        sid = self.unsign(cookie) if cookie else None
        data = await self._store.load(sid) if sid else None
        if data is None:
            sid = None
        return Session(sid, data, config=self._config, client_ip=request.ip)

    async def save(self, session: Session) -> None:
        """Persist *session*, drop its retired ids and shorten superseded ones."""
        cfg = self._config
        data = session.all()
        for retired in session.retired_ids:
            await self._store.delete(retired)
        for old in session.superseded_ids:
            if old not in session.retired_ids:
                await self._store.save(old, data, ttl=cfg.rotation_grace)
        await self._store.save(session.id, data, ttl=cfg.gc_maxlifetime)

    def _with_cookie(self, response: AnyResponse, session: Session, request: Request) -> AnyResponse:
        cfg = self._config
        secure = request.is_secure if cfg.secure is None else cfg.secure
        return response.with_cookie(
            name=cfg.cookie_name,
            value=self.sign(session.id),
            max_age=cfg.cookie_lifetime or None,
            path=cfg.path,
            domain=cfg.domain,
            secure=secure,
            httponly=cfg.httponly,
            samesite=cfg.samesite,
        )

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        """Load the session, dispatch, then persist it and set the cookie."""
        session = await self.load(request)
        session.validate_activity()
        token = _session_var.set(session)
        try:
            response = await next(request)
        finally:
            _session_var.reset(token)
            await self.save(session)
        return self._with_cookie(response, session, request)
