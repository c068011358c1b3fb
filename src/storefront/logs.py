"""Logging setup.

Every module logs through a named stdlib logger under ``storefront``
(``storefront.server``, ``storefront.routing``, ``storefront.sessions``,
``storefront.security``, ``storefront.data``, ``storefront.shop``).
``configure_logging`` installs one root handler in either a human-readable
text format or one-line JSON suitable for log shippers.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else came in via ``extra=``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys() | {"message", "asctime"}
)


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON objects.

    Fields passed through ``extra=`` are included at the top level, so
    ``logger.warning("IP mismatch", extra={"stored_ip": a, "current_ip": b})``
    produces ``{"message": "IP mismatch", "stored_ip": ..., ...}``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    level: str = "info",
    fmt: str = "text",
    *,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Configure the root logger for the application.

    Replaces any handler a previous call installed, so calling it twice
    (e.g. app factory in tests) does not duplicate output.

    Args:
        level: Level name (``debug``, ``info``, ``warning``...).
        fmt: ``"text"`` or ``"json"``.
        stream: Output stream, stderr by default.

    Returns:
        The installed handler.
    """
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name("storefront")
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == "storefront":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)
    logging.getLogger("storefront").setLevel(numeric)
    return handler
