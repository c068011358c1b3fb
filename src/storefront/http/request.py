"""Immutable HTTP request.

Frozen metadata with async body access. The request is a read-only
snapshot of what the client sent: method, application-relative path,
query, body, files, headers and cookies.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from storefront._internal.asgi import Receive, Scope
from storefront.http.cookies import parse_cookies
from storefront.http.forms import FormData, UploadFile, parse_form_data
from storefront.http.headers import Headers
from storefront.http.query import QueryParams


def strip_base_path(path: str, base_path: str) -> str:
    """Return *path* relative to the application's mount point.

    ``strip_base_path("/store/order/details/4", "/store")`` gives
    ``"/order/details/4"``. The result always starts with ``/``. Paths
    outside the base path are returned unchanged.
    """
    base = base_path.rstrip("/")
    if base and (path == base or path.startswith(base + "/")):
        path = path[len(base) :]
    return "/" + path.lstrip("/")


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. The body is read lazily through
    ``await body()`` exactly once and cached; ``form()``, ``json()``
    and ``input()`` all work from that cached copy.
    """

    method: str
    path: str
    raw_path: str
    headers: Headers
    query: QueryParams
    cookies: Mapping[str, str]
    client: tuple[str, int] | None
    server: tuple[str, int] | None
    scheme: str = "http"
    path_params: Mapping[str, str | int] = field(default_factory=dict)

    # Private: ASGI receive callable for body streaming
    _receive: Receive | None = field(default=None, repr=False, compare=False)

    # Private: mutable cache for body and parsed form data
    # (dict contents are mutable even though the field reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def ip(self) -> str:
        """Client address, ``"unknown"`` when the server did not report one."""
        if self.client:
            return self.client[0]
        return "unknown"

    @property
    def is_ajax(self) -> bool:
        """True for ``X-Requested-With: XMLHttpRequest`` requests."""
        return (self.headers.get("x-requested-with") or "").lower() == "xmlhttprequest"

    @property
    def is_post(self) -> bool:
        return self.method == "POST"

    @property
    def is_get(self) -> bool:
        return self.method == "GET"

    @property
    def is_secure(self) -> bool:
        """True when served over HTTPS, directly or behind a TLS proxy."""
        forwarded = (self.headers.get("x-forwarded-proto") or "").split(",")[0].strip()
        return self.scheme == "https" or forwarded.lower() == "https"

    @property
    def referer(self) -> str | None:
        return self.headers.get("referer")

    @property
    def url(self) -> str:
        """Application-relative path plus query string."""
        if self.query.raw:
            return f"{self.path}?{self.query.raw.decode('latin-1')}"
        return self.path

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name, default)

    def with_params(self, params: Mapping[str, str | int]) -> Request:
        """Copy carrying route parameters; shares the body cache."""
        return replace(self, path_params=dict(params))

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        The ASGI receive is consumed once; later calls return the
        cached bytes.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        if self._receive is None:
            return
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8", errors="replace")

    async def json(self) -> Any:
        """Decode the body as JSON.

        Returns ``None`` for an empty body or malformed JSON instead of
        raising; callers validate the shape they expect.
        """
        if "_json" in self._cache:
            return self._cache["_json"]
        raw = await self.body()
        result: Any = None
        if raw.strip():
            try:
                result = json_module.loads(raw)
            except ValueError:
                result = None
        self._cache["_json"] = result
        return result

    async def form(self) -> FormData:
        """Parse the body as form data (URL-encoded or multipart).

        Other content types yield an empty ``FormData``. The result is
        cached.
        """
        if "_form" in self._cache:
            return self._cache["_form"]
        if self.method in ("GET", "HEAD"):
            result = FormData()
        else:
            ct = self.content_type or "application/x-www-form-urlencoded"
            result = await parse_form_data(await self.body(), ct)
        self._cache["_form"] = result
        return result

    async def post(self, key: str, default: str | None = None) -> str | None:
        """Body parameter *key* only."""
        return (await self.form()).get(key, default)

    async def input(self, key: str, default: Any = None) -> Any:
        """Body parameter, falling back to the query string."""
        form = await self.form()
        if key in form:
            return form[key]
        return self.query.get(key, default)

    async def all_input(self) -> dict[str, str]:
        """Query and body parameters merged; body wins on collisions."""
        return {**self.query.to_dict(), **(await self.form()).to_dict()}

    async def files(self) -> Mapping[str, UploadFile]:
        """Uploaded files by field name."""
        return (await self.form()).files

    async def file(self, name: str) -> UploadFile | None:
        return (await self.files()).get(name)

    async def has_file(self, name: str) -> bool:
        """True when a non-empty file was uploaded under *name*."""
        upload = await self.file(name)
        return upload is not None and upload.size > 0

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive, *, base_path: str = "") -> Request:
        """Create a Request from an ASGI scope and receive callable.

        *base_path* is the mount point taken from the configured base URL;
        it is stripped from ``path`` while ``raw_path`` keeps the original.
        """
        headers = Headers(tuple(scope.get("headers", ())))
        server = scope.get("server")
        client = scope.get("client")
        raw_path = scope["path"]
        return cls(
            method=scope["method"].upper(),
            path=strip_base_path(raw_path, base_path),
            raw_path=raw_path,
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            cookies=parse_cookies(headers.get("cookie", "")),
            client=tuple(client) if client else None,
            server=tuple(server) if server else None,
            scheme=scope.get("scheme", "http"),
            _receive=receive,
        )
