"""Server-side sessions, flash messages, CSRF tokens and the auth gate."""

from storefront.sessions.config import SessionConfig
from storefront.sessions.middleware import SessionMiddleware, current_session, get_session
from storefront.sessions.session import Session
from storefront.sessions.store import (
    FileSessionStore,
    MemorySessionStore,
    SessionStore,
    new_session_id,
)

__all__ = [
    "FileSessionStore",
    "MemorySessionStore",
    "Session",
    "SessionConfig",
    "SessionMiddleware",
    "SessionStore",
    "current_session",
    "get_session",
    "new_session_id",
]
