"""Security audit events.

Authentication and authorization telemetry: login success/failure, lockouts,
denied access to protected routes, session IP mismatches. Every event is
logged to ``storefront.security``; applications can also register a sink to
forward events to metrics or a SIEM.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from time import time
from typing import Any

logger = logging.getLogger("storefront.security")


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """A structured security event."""

    name: str
    timestamp: float = field(default_factory=time)
    path: str | None = None
    method: str | None = None
    ip: str | None = None
    user_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


type SecurityEventSink = Callable[[SecurityEvent], None]


_sink_lock = threading.Lock()
_sink: SecurityEventSink | None = None

# Events that indicate a possible attack rather than routine auth traffic
_WARNING_EVENTS: frozenset[str] = frozenset(
    {"auth.login.locked", "session.ip_mismatch", "csrf.rejected"}
)


def set_security_event_sink(sink: SecurityEventSink | None) -> None:
    """Set a process-wide sink for security events.

    Pass ``None`` to disable forwarding (events are still logged).
    """
    global _sink
    with _sink_lock:
        _sink = sink


def emit_security_event(
    name: str,
    *,
    request: Any | None = None,
    user_id: str | int | None = None,
    details: dict[str, Any] | None = None,
) -> SecurityEvent:
    """Log a security event and forward it to the configured sink."""
    event = SecurityEvent(
        name=name,
        path=getattr(request, "path", None),
        method=getattr(request, "method", None),
        ip=getattr(request, "ip", None),
        user_id=None if user_id is None else str(user_id),
        details=details or {},
    )
    level = logging.WARNING if name in _WARNING_EVENTS else logging.INFO
    logger.log(
        level,
        "security event %s",
        name,
        extra={"event": name, "path": event.path, "user_id": event.user_id, **event.details},
    )

    with _sink_lock:
        sink = _sink
    if sink is not None:
        sink(event)
    return event
