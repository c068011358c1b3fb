"""Service registry and controller dependency resolution.

Controllers declare what they need in ``__init__``::

    class OrderController:
        def __init__(self, session: Session, db: Database, orders: OrderRepository) -> None: ...

``autowire(OrderController)`` inspects that signature once, at
registration time, and returns a factory. On each request the factory
receives a ``RequestScope`` and resolves every parameter in order:

1. well-known types by exact identity (``Database``, ``Session``,
   ``CaptchaHelper``, ``Request``, ``Cart``, ``ServiceRegistry``,
   ``AppConfig``);
2. a registry entry keyed by the annotation's class name;
3. a registry entry keyed by the lower-cased parameter name;
4. the parameter's declared default.

A required parameter with a concrete class annotation that none of these
satisfy raises ``UnresolvedDependency``. Unannotated or primitive
parameters skip the lookups and take their default, or ``None``.
"""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from storefront.captcha import CaptchaHelper
from storefront.cart import Cart
from storefront.config import AppConfig
from storefront.data.database import Database
from storefront.errors import ServiceAlreadyBound, ServiceNotFound, UnresolvedDependency
from storefront.http.request import Request
from storefront.sessions.session import Session

logger = logging.getLogger("storefront.services")

_MISSING: Any = object()

_PRIMITIVES: frozenset[Any] = frozenset(
    {str, int, float, bool, bytes, dict, list, tuple, set, object, Any}
)

_DEFAULT_CAPTCHA = CaptchaHelper()


# -- Registry --


class ServiceRegistry:
    """Named application services.

    Thread-safe: bindings usually happen at startup but lookups run
    concurrently for every request.

    Usage::

        registry = ServiceRegistry()
        registry.bind("database", Database("sqlite:///shop.db"))
        registry.get("database")
    """

    __slots__ = ("_lock", "_services")

    def __init__(self) -> None:
        self._services: dict[str, Any] = {}
        self._lock = threading.Lock()

    def bind(self, key: str, value: Any, *, overwrite: bool = False) -> None:
        """Bind *value* under *key*.

        Raises:
            ServiceAlreadyBound: When *key* is taken and *overwrite* is false.
        """
        with self._lock:
            if key in self._services and not overwrite:
                msg = f"Service {key!r} is already bound; pass overwrite=True to replace it"
                raise ServiceAlreadyBound(msg)
            self._services[key] = value
        logger.debug("bound service %s", key)

    def get(self, key: str) -> Any:
        """Return the service bound under *key*.

        Raises:
            ServiceNotFound: When nothing is bound under *key*.
        """
        with self._lock:
            try:
                return self._services[key]
            except KeyError:
                msg = f"No service bound under {key!r}"
                raise ServiceNotFound(msg) from None

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._services

    def remove(self, key: str) -> None:
        with self._lock:
            self._services.pop(key, None)

    def flush(self) -> None:
        """Drop every binding."""
        with self._lock:
            self._services.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._services)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._services

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)


# -- Per-request resolution --


class RequestScope:
    """What a controller factory can draw on while handling one request."""

    __slots__ = ("registry", "request", "session")

    def __init__(
        self,
        registry: ServiceRegistry,
        request: Request | None = None,
        session: Session | None = None,
    ) -> None:
        self.registry = registry
        self.request = request
        self.session = session

    def _lookup(self, key: str) -> Any:
        if self.registry.has(key):
            return self.registry.get(key)
        return _MISSING

    def _well_known(self, annotation: Any) -> Any:
        if annotation is ServiceRegistry:
            return self.registry
        if annotation is Request:
            return _MISSING if self.request is None else self.request
        if annotation is Session:
            return _MISSING if self.session is None else self.session
        if annotation is Cart:
            return _MISSING if self.session is None else Cart(self.session)
        if annotation is Database:
            return self._lookup("database")
        if annotation is AppConfig:
            return self._lookup("config")
        if annotation is CaptchaHelper:
            captcha = self._lookup("captcha")
            return _DEFAULT_CAPTCHA if captcha is _MISSING else captcha
        return _MISSING

    def resolve(
        self,
        param_name: str,
        annotation: Any = None,
        default: Any = _MISSING,
        *,
        owner: str = "<factory>",
    ) -> Any:
        """Resolve one constructor parameter.

        Raises:
            UnresolvedDependency: For a required parameter whose concrete
                class annotation cannot be satisfied.
        """
        if not _injectable(annotation):
            return None if default is _MISSING else default

        value = self._well_known(annotation)
        if value is not _MISSING:
            return value

        value = self._lookup(annotation.__name__)
        if value is not _MISSING:
            return value

        value = self._lookup(param_name.lower())
        if value is not _MISSING:
            return value

        if default is not _MISSING:
            return default

        raise UnresolvedDependency(owner, param_name, annotation)


def _injectable(annotation: Any) -> bool:
    return isinstance(annotation, type) and annotation not in _PRIMITIVES


type ControllerFactory = Callable[[RequestScope], Any]


@dataclass(frozen=True, slots=True)
class Dependency:
    """One constructor parameter of an autowired class."""

    name: str
    annotation: Any = None
    default: Any = _MISSING

    @property
    def required(self) -> bool:
        return self.default is _MISSING


class Autowired:
    """Factory that builds *cls* from a ``RequestScope``.

    The constructor signature is read once, here; each call only resolves.
    """

    __slots__ = ("cls", "plan")

    def __init__(self, cls: type) -> None:
        self.cls = cls
        self.plan: tuple[Dependency, ...] = _plan(cls)

    def __call__(self, scope: RequestScope) -> Any:
        owner = self.cls.__qualname__
        kwargs = {
            dep.name: scope.resolve(dep.name, dep.annotation, dep.default, owner=owner)
            for dep in self.plan
        }
        return self.cls(**kwargs)

    def __repr__(self) -> str:
        return f"autowire({self.cls.__qualname__})"


def _plan(cls: type) -> tuple[Dependency, ...]:
    try:
        sig = inspect.signature(cls, eval_str=True)
    except NameError as exc:
        raise UnresolvedDependency(cls.__qualname__, "<annotations>") from exc

    plan: list[Dependency] = []
    for name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            msg = f"{cls.__qualname__}.__init__ has positional-only parameter {name!r}"
            raise UnresolvedDependency(cls.__qualname__, name) from TypeError(msg)
        annotation = None if param.annotation is inspect.Parameter.empty else param.annotation
        default = _MISSING if param.default is inspect.Parameter.empty else param.default
        plan.append(Dependency(name, annotation, default))
    return tuple(plan)


def autowire(cls: type) -> Autowired:
    """Return a factory that builds *cls* with resolved constructor arguments."""
    return Autowired(cls)
