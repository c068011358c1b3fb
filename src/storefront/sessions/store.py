"""Server-side session stores.

The cookie carries only a signed session id; the data lives here. Any
object with the four async methods below satisfies ``SessionStore``.

Entries expire: ``save(..., ttl=...)`` stamps each one with an expiry
time, ``load`` treats an expired entry as missing, and ``gc()`` removes
every expired entry. Both stores also run ``gc()`` from ``save`` at most
once per ``gc_interval`` seconds, so abandoned sessions do not pile up.
"""

import copy
import json
import logging
import re
import secrets
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import anyio

logger = logging.getLogger("storefront.sessions")

_VALID_ID = re.compile(r"[A-Za-z0-9_-]{16,128}")


def new_session_id() -> str:
    """A fresh, unguessable session id."""
    return secrets.token_urlsafe(32)


class SessionStore(Protocol):
    """Protocol for session persistence backends.

    ``ttl`` is the entry's lifetime in seconds from now; ``None`` keeps it
    until deleted. ``gc`` returns the number of entries removed.
    """

    async def load(self, sid: str) -> dict[str, Any] | None: ...

    async def save(self, sid: str, data: dict[str, Any], ttl: int | None = None) -> None: ...

    async def delete(self, sid: str) -> None: ...

    async def gc(self) -> int: ...


def _expired(expires: float | None, now: float) -> bool:
    return expires is not None and expires <= now


class _GCSchedule:
    """Decides when a store's ``save`` should also collect garbage."""

    __slots__ = ("_clock", "_interval", "_last", "_lock")

    def __init__(self, interval: float, clock: Callable[[], float]) -> None:
        self._interval = interval
        self._clock = clock
        self._last = clock()
        self._lock = threading.Lock()

    def due(self) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last < self._interval:
                return False
            self._last = now
            return True


class MemorySessionStore:
    """Process-local store. Sessions vanish on restart.

    Suitable for tests and single-worker development servers.
    """

    __slots__ = ("_clock", "_data", "_lock", "_schedule")

    def __init__(self, *, gc_interval: float = 60, clock: Callable[[], float] = time.time) -> None:
        self._data: dict[str, tuple[float | None, dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._schedule = _GCSchedule(gc_interval, clock)

    async def load(self, sid: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._data.get(sid)
            if entry is None:
                return None
            expires, data = entry
            if _expired(expires, self._clock()):
                del self._data[sid]
                return None
            return copy.deepcopy(data)

    async def save(self, sid: str, data: dict[str, Any], ttl: int | None = None) -> None:
        expires = None if ttl is None else self._clock() + ttl
        with self._lock:
            self._data[sid] = (expires, copy.deepcopy(data))
        if self._schedule.due():
            await self.gc()

    async def delete(self, sid: str) -> None:
        with self._lock:
            self._data.pop(sid, None)

    async def gc(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [sid for sid, (expires, _) in self._data.items() if _expired(expires, now)]
            for sid in stale:
                del self._data[sid]
        if stale:
            logger.debug("Purged %d expired sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, sid: object) -> bool:
        with self._lock:
            return sid in self._data


class FileSessionStore:
    """One JSON file per session under *directory*.

    Each file holds ``{"expires": <epoch seconds or null>, "data": {...}}``.
    Blocking file I/O runs in worker threads. Writes go to a temporary
    file that replaces the target, so a reader never sees a partial file.
    """

    __slots__ = ("_clock", "_directory", "_schedule")

    def __init__(
        self,
        directory: str | Path,
        *,
        gc_interval: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._schedule = _GCSchedule(gc_interval, clock)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, sid: str) -> Path | None:
        # Ids come from cookies; never let one escape the directory
        if not _VALID_ID.fullmatch(sid):
            return None
        return self._directory / f"sess_{sid}.json"

    async def load(self, sid: str) -> dict[str, Any] | None:
        path = self._path(sid)
        if path is None:
            return None
        entry = await anyio.to_thread.run_sync(_read_entry, path)
        if entry is None:
            return None
        expires, data = entry
        if _expired(expires, self._clock()):
            await anyio.to_thread.run_sync(lambda: path.unlink(missing_ok=True))
            return None
        return data

    async def save(self, sid: str, data: dict[str, Any], ttl: int | None = None) -> None:
        path = self._path(sid)
        if path is None:
            msg = f"Refusing to save session with malformed id {sid!r}"
            raise ValueError(msg)
        expires = None if ttl is None else self._clock() + ttl
        payload = json.dumps({"expires": expires, "data": data}, default=str)
        await anyio.to_thread.run_sync(_write_atomic, path, payload)
        if self._schedule.due():
            await self.gc()

    async def delete(self, sid: str) -> None:
        path = self._path(sid)
        if path is not None:
            await anyio.to_thread.run_sync(lambda: path.unlink(missing_ok=True))

    async def gc(self) -> int:
        removed = await anyio.to_thread.run_sync(_purge_directory, self._directory, self._clock())
        if removed:
            logger.debug("Purged %d expired session files", removed)
        return removed


def _read_entry(path: Path) -> tuple[float | None, dict[str, Any]] | None:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        entry = json.loads(raw)
    except ValueError:
        logger.warning("Discarding corrupt session file %s", path.name)
        return None
    if not isinstance(entry, dict) or not isinstance(entry.get("data"), dict):
        logger.warning("Discarding malformed session file %s", path.name)
        return None
    expires = entry.get("expires")
    if expires is not None and not isinstance(expires, int | float):
        return None
    return expires, entry["data"]


def _purge_directory(directory: Path, now: float) -> int:
    removed = 0
    for path in directory.glob("sess_*.json"):
        entry = _read_entry(path)
        if entry is not None and not _expired(entry[0], now):
            continue
        path.unlink(missing_ok=True)
        removed += 1
    return removed


def _write_atomic(path: Path, payload: str) -> None:
    tmp = path.with_suffix(f".{secrets.token_hex(4)}.tmp")
    tmp.write_text(payload, encoding="utf-8")
    tmp.replace(path)
