"""Regex router with ordered, first-match-wins lookup.

Templates like ``order/details/{id}`` compile to anchored,
case-insensitive patterns. Routes are tried in registration order per
method; the first pattern that matches wins. Registration happens at
startup; matching never mutates router state.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING

from storefront._internal.types import Target
from storefront.errors import ConfigurationError
from storefront.routing.params import coerce_params
from storefront.routing.route import Route, RouteMatch

if TYPE_CHECKING:
    from storefront.routing.guards import Guard

logger = logging.getLogger("storefront.routing")

METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT"})

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def normalize_path(path: str) -> str:
    """Trim slashes; the root becomes ``"/"`` and every other path ``"/a/b"``."""
    return "/" + path.strip("/")


def compile_template(template: str) -> tuple[re.Pattern[str], tuple[str, ...]]:
    """Compile a route template to a matcher.

    Each ``{name}`` becomes a named group capturing one or more non-slash
    characters; literal text is escaped. The empty (root) template matches
    exactly ``/``. Matching is case-insensitive.

    Returns:
        The compiled pattern and the parameter names in template order.

    Raises:
        ConfigurationError: On a repeated parameter name or a malformed
            placeholder.
    """
    trimmed = template.strip("/")
    if not trimmed:
        return re.compile(r"^/$", re.IGNORECASE), ()

    names: list[str] = []
    parts: list[str] = []
    last = 0
    for m in _PLACEHOLDER.finditer(trimmed):
        name = m.group(1)
        if name in names:
            msg = f"Duplicate parameter {name!r} in route template {template!r}"
            raise ConfigurationError(msg)
        names.append(name)
        parts.append(re.escape(trimmed[last : m.start()]))
        parts.append(f"(?P<{name}>[^/]+)")
        last = m.end()
    parts.append(re.escape(trimmed[last:]))
    source = "".join(parts)

    literal = _PLACEHOLDER.sub("", trimmed)
    if "{" in literal or "}" in literal:
        msg = f"Malformed placeholder in route template {template!r}"
        raise ConfigurationError(msg)

    return re.compile(f"^/{source}$", re.IGNORECASE), tuple(names)


def join_prefix(*parts: str) -> str:
    """Join template fragments with single slashes, dropping empties."""
    return "/".join(p.strip("/") for p in parts if p.strip("/"))


class Router:
    """Ordered regex router with nestable group prefixes.

    Usage::

        router = Router()
        router.get("", ("PageController", "index"))
        router.get("order/details/{id}", ("OrderController", "details"))
        with router.group("api/v1"):
            router.get("orders", ("OrderApiController", "index"))

        match = router.match("/order/details/42", "GET")
        match.params  # {"id": 42}
    """

    __slots__ = ("_by_method", "_compiled", "_groups", "_routes")

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._by_method: dict[str, list[Route]] = {}
        # Stack of (prefix, guards) for the currently open groups
        self._groups: list[tuple[str, tuple[Guard, ...]]] = []
        self._compiled = False

    # -- Registration --

    def register(
        self,
        method: str,
        template: str,
        target: Target,
        *,
        guards: Sequence[Guard] = (),
    ) -> Route:
        """Register *target* for ``method template``.

        The template is combined with every open group prefix, and the
        group guards run before the route's own guards.
        """
        if self._compiled:
            msg = "Cannot add routes after the router is compiled."
            raise RuntimeError(msg)

        method = method.upper()
        if method not in METHODS:
            msg = f"Unsupported method {method!r} for route {template!r}; expected one of {sorted(METHODS)}"
            raise ConfigurationError(msg)

        full = join_prefix(*(prefix for prefix, _ in self._groups), template)
        pattern, names = compile_template(full)
        group_guards = tuple(g for _, gs in self._groups for g in gs)
        route = Route(
            method=method,
            template=full,
            pattern=pattern,
            target=target,
            guards=(*group_guards, *guards),
            param_names=names,
        )
        self._routes.append(route)
        self._by_method.setdefault(method, []).append(route)
        logger.debug("registered %s %s -> %s.%s", method, route.path, *target)
        return route

    def get(self, template: str, target: Target, *, guards: Sequence[Guard] = ()) -> Route:
        return self.register("GET", template, target, guards=guards)

    def post(self, template: str, target: Target, *, guards: Sequence[Guard] = ()) -> Route:
        return self.register("POST", template, target, guards=guards)

    def put(self, template: str, target: Target, *, guards: Sequence[Guard] = ()) -> Route:
        return self.register("PUT", template, target, guards=guards)

    @contextmanager
    def group(self, prefix: str, *, guards: Sequence[Guard] = ()) -> Iterator[Router]:
        """Register the routes inside the block under *prefix*.

        Groups nest; the previous prefix is restored when the block exits,
        even if registration inside it raised.
        """
        self._groups.append((prefix, tuple(guards)))
        try:
            yield self
        finally:
            self._groups.pop()

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        if self._groups:
            msg = "Cannot compile the router inside an open route group."
            raise ConfigurationError(msg)
        self._compiled = True

    # -- Lookup --

    def match(self, path: str, method: str) -> RouteMatch | None:
        """Find the first route for *method* whose pattern matches *path*.

        Returns ``None`` when nothing matches or *method* has no routes.
        Integer-looking parameters are returned as ``int``.
        """
        normalized = normalize_path(path)
        for route in self._by_method.get(method.upper(), ()):
            m = route.pattern.match(normalized)
            if m is not None:
                return RouteMatch(route=route, params=coerce_params(m.groupdict()), path=normalized)
        return None

    # -- Introspection --

    @property
    def routes(self) -> tuple[Route, ...]:
        """Every route in registration order."""
        return tuple(self._routes)

    @property
    def patterns(self) -> tuple[str, ...]:
        """Every ``METHOD pattern`` pair, for 404 diagnostics."""
        return tuple(f"{r.method} {r.pattern.pattern}" for r in self._routes)

    def __len__(self) -> int:
        return len(self._routes)
