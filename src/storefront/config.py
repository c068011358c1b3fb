"""Application configuration.

AppConfig is a frozen dataclass with typed attributes instead of string-key
lookups. ``from_mapping`` and ``from_env`` build one from
legacy deployment settings or ``STOREFRONT_*`` environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from typing import Any
from urllib.parse import urlsplit

from storefront.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, base_url="https://shop.test/store", secret_key="s3cr3t")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Public URL of the application, e.g. "https://shop.example/store".
    # Its path component is stripped from incoming paths and prefixed to
    # root-relative redirects.
    base_url: str = ""

    # Security
    secret_key: str = ""
    api_prefix: str = "api/"
    login_url: str = "/login"
    max_login_attempts: int = 5
    lockout_time: int = 900

    # Sessions
    session_cookie: str = "storefront_session"
    session_dir: str | None = None  # None = in-memory store
    session_timeout: int = 1800
    regenerate_interval: int = 300
    check_ip_address: bool = True

    # Data
    database_url: str = "sqlite:///:memory:"

    # Logging
    log_level: str = "info"
    log_format: str = "text"

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    @property
    def base_path(self) -> str:
        """Path component of ``base_url`` without a trailing slash."""
        return urlsplit(self.base_url).path.rstrip("/")

    # -- Factories --

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> AppConfig:
        """Build a config from a settings mapping.

        Accepts field names directly (``debug``, ``base_url``) as well as
        the legacy upper-case keys used by older deployments::

            AppConfig.from_mapping({"SITE_URL": "https://shop.test/", "DEBUG_MODE": True})

        Unknown keys are ignored. Values are coerced to the field type;
        uncoercible values raise ``ConfigurationError``.
        """
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, raw in values.items():
            name = _LEGACY_KEYS.get(key, key.lower())
            if name not in known:
                continue
            kwargs[name] = _coerce(name, raw, known[name].type)
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        prefix: str = "STOREFRONT_",
        environ: Mapping[str, str] | None = None,
    ) -> AppConfig:
        """Build a config from ``STOREFRONT_*`` environment variables.

        ``STOREFRONT_BASE_URL=https://shop.test`` sets ``base_url`` and so on.
        """
        env = os.environ if environ is None else environ
        values = {
            key[len(prefix) :].lower(): value
            for key, value in env.items()
            if key.startswith(prefix)
        }
        return cls.from_mapping(values)


_LEGACY_KEYS: dict[str, str] = {
    "SITE_URL": "base_url",
    "BASE_URL": "base_url",
    "DEBUG_MODE": "debug",
    "AUTH_TIMEOUT": "session_timeout",
    "MAX_LOGIN_ATTEMPTS": "max_login_attempts",
    "LOCKOUT_TIME": "lockout_time",
    "DB_PATH": "database_url",
    "SECRET_KEY": "secret_key",
    "API_BASE_PATH": "api_prefix",
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(value)


_COERCIONS: dict[str, Callable[[Any], Any]] = {
    "bool": _to_bool,
    "int": int,
    "str": str,
}


def _coerce(name: str, value: Any, annotation: Any) -> Any:
    """Coerce a raw setting to the annotated field type."""
    type_name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "")
    if value is None and "None" in str(annotation):
        return None
    if name == "database_url" and isinstance(value, str) and "://" not in value:
        return f"sqlite:///{value}"
    if name == "api_prefix" and isinstance(value, str):
        return value.strip("/") + "/"
    coerce = _COERCIONS.get(type_name.split("|")[0].strip(), lambda v: v)
    try:
        return coerce(value)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid value for {name}: {value!r}"
        raise ConfigurationError(msg) from exc
