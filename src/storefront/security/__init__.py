"""Security utilities: audit events, password hashing, login lockout, safe URLs.

Password hashing::

    from storefront.security import hash_password, verify_password

    hashed = hash_password("my-password")
    ok = verify_password("my-password", hashed)
"""

from storefront.security.audit import SecurityEvent, emit_security_event, set_security_event_sink
from storefront.security.lockout import LockoutConfig, LoginLockout
from storefront.security.passwords import hash_password, needs_rehash, verify_password
from storefront.security.urls import is_safe_url

__all__ = [
    "LockoutConfig",
    "LoginLockout",
    "SecurityEvent",
    "emit_security_event",
    "hash_password",
    "is_safe_url",
    "needs_rehash",
    "set_security_event_sink",
    "verify_password",
]
