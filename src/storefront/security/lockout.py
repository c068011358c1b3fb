"""Login lockout.

Tracks repeated authentication failures per key (the submitted e-mail)
and locks the key for ``lock_seconds`` after ``max_failures`` attempts
inside ``window_seconds``. The login controller consults it before
verifying a password.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from time import time


@dataclass(frozen=True, slots=True)
class LockoutConfig:
    """Lockout policy configuration."""

    max_failures: int = 5
    window_seconds: int = 900
    lock_seconds: int = 900


class LoginLockout:
    """Track login failures and compute lockout windows."""

    __slots__ = ("_clock", "_config", "_lock", "_state")

    def __init__(
        self,
        config: LockoutConfig | None = None,
        *,
        clock: Callable[[], float] = time,
    ) -> None:
        self._config = config or LockoutConfig()
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (failures, first_failure_at, locked_until)
        self._state: dict[str, tuple[int, float, float]] = {}

    @staticmethod
    def _key(key: str) -> str:
        return key.strip().lower()

    def is_locked(self, key: str) -> tuple[bool, int]:
        """Return lock status and retry-after seconds."""
        now = self._clock()
        with self._lock:
            _failures, _first, locked_until = self._state.get(self._key(key), (0, now, 0.0))
        if locked_until <= now:
            return False, 0
        return True, max(1, int(locked_until - now))

    def record_success(self, key: str) -> None:
        """Clear failure state after successful authentication."""
        with self._lock:
            self._state.pop(self._key(key), None)

    def record_failure(self, key: str) -> tuple[bool, int]:
        """Record a failed attempt and return ``(is_locked, retry_after_seconds)``."""
        cfg = self._config
        now = self._clock()
        norm = self._key(key)
        with self._lock:
            failures, first_failure_at, locked_until = self._state.get(norm, (0, now, 0.0))

            if locked_until > now:
                return True, max(1, int(locked_until - now))

            if now - first_failure_at > cfg.window_seconds:
                failures = 0
                first_failure_at = now

            failures += 1
            if failures >= cfg.max_failures:
                self._state[norm] = (failures, first_failure_at, now + cfg.lock_seconds)
                return True, cfg.lock_seconds

            self._state[norm] = (failures, first_failure_at, 0.0)
            return False, 0
