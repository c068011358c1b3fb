"""Tests for the service registry and controller autowiring."""

from typing import Any

import pytest

from storefront.captcha import CaptchaHelper
from storefront.cart import Cart
from storefront.config import AppConfig
from storefront.data.database import Database
from storefront.errors import ServiceAlreadyBound, ServiceNotFound, UnresolvedDependency
from storefront.services import RequestScope, ServiceRegistry, autowire
from storefront.sessions import Session, SessionConfig


class Mailer:
    pass


class TestServiceRegistry:
    def test_bind_and_get(self) -> None:
        registry = ServiceRegistry()
        registry.bind("mailer", "smtp")
        assert registry.get("mailer") == "smtp"
        assert registry.has("mailer")
        assert "mailer" in registry
        assert len(registry) == 1
        assert list(registry) == ["mailer"]

    def test_missing(self) -> None:
        with pytest.raises(ServiceNotFound, match="No service bound"):
            ServiceRegistry().get("nothing")

    def test_missing_is_a_lookup_error(self) -> None:
        with pytest.raises(LookupError):
            ServiceRegistry().get("nothing")

    def test_rebind_requires_overwrite(self) -> None:
        registry = ServiceRegistry()
        registry.bind("mailer", 1)
        with pytest.raises(ServiceAlreadyBound):
            registry.bind("mailer", 2)
        registry.bind("mailer", 2, overwrite=True)
        assert registry.get("mailer") == 2

    def test_remove_and_flush(self) -> None:
        registry = ServiceRegistry()
        registry.bind("a", 1)
        registry.bind("b", 2)
        registry.remove("a")
        registry.remove("missing")
        assert registry.keys() == ["b"]
        registry.flush()
        assert len(registry) == 0


def scope(**services: Any) -> RequestScope:
    registry = ServiceRegistry()
    for key, value in services.items():
        registry.bind(key, value)
    session = Session(config=SessionConfig(secret_key="s"))
    return RequestScope(registry, None, session)


class TestResolution:
    def test_well_known_types(self) -> None:
        db = Database("sqlite:///:memory:")
        config = AppConfig()
        s = scope(database=db, config=config)

        class Needs:
            def __init__(self, database: Database, settings: AppConfig, session: Session, cart: Cart) -> None:
                self.database = database
                self.settings = settings
                self.session = session
                self.cart = cart

        built = autowire(Needs)(s)
        assert built.database is db
        assert built.settings is config
        assert built.session is s.session
        assert isinstance(built.cart, Cart)

    def test_default_captcha_when_unbound(self) -> None:
        class Needs:
            def __init__(self, captcha: CaptchaHelper) -> None:
                self.captcha = captcha

        assert isinstance(autowire(Needs)(scope()).captcha, CaptchaHelper)

    def test_bound_captcha_wins(self) -> None:
        mine = CaptchaHelper(session_key="mine")

        class Needs:
            def __init__(self, code: CaptchaHelper) -> None:
                self.code = code

        assert autowire(Needs)(scope(captcha=mine)).code is mine

    def test_class_name_before_parameter_name(self) -> None:
        by_type = Mailer()
        by_name = Mailer()

        class Needs:
            def __init__(self, mailer: Mailer) -> None:
                self.mailer = mailer

        built = autowire(Needs)(scope(Mailer=by_type, mailer=by_name))
        assert built.mailer is by_type

    def test_lower_cased_parameter_name(self) -> None:
        outbox = Mailer()

        class Needs:
            def __init__(self, Outbox: Mailer) -> None:  # noqa: N803
                self.outbox = Outbox

        assert autowire(Needs)(scope(outbox=outbox)).outbox is outbox

    def test_default_used_last(self) -> None:
        fallback = Mailer()

        class Needs:
            def __init__(self, mailer: Mailer = fallback) -> None:
                self.mailer = mailer

        assert autowire(Needs)(scope()).mailer is fallback
        bound = Mailer()
        assert autowire(Needs)(scope(mailer=bound)).mailer is bound

    def test_unresolved_class_raises(self) -> None:
        class Needs:
            def __init__(self, mailer: Mailer) -> None:
                self.mailer = mailer

        with pytest.raises(UnresolvedDependency, match="'mailer'") as info:
            autowire(Needs)(scope())
        assert info.value.param == "mailer"

    def test_unannotated_or_primitive_falls_back_to_none(self) -> None:
        class Needs:
            def __init__(self, anything, count: int) -> None:  # noqa: ANN001
                self.anything = anything
                self.count = count

        built = autowire(Needs)(scope())
        assert built.anything is None
        assert built.count is None

    def test_primitive_and_unannotated_ignore_registry(self) -> None:
        class Needs:
            def __init__(self, title: str = "Shop", config=None, retries: int = 3) -> None:  # noqa: ANN001
                self.title = title
                self.config = config
                self.retries = retries

        built = autowire(Needs)(scope(title="bound", config=AppConfig(), retries=9, str="bound"))
        assert built.title == "Shop"
        assert built.config is None
        assert built.retries == 3

    def test_missing_session_is_unresolved(self) -> None:
        class Needs:
            def __init__(self, session: Session) -> None:
                self.session = session

        with pytest.raises(UnresolvedDependency):
            autowire(Needs)(RequestScope(ServiceRegistry()))

    def test_registry_itself(self) -> None:
        class Needs:
            def __init__(self, registry: ServiceRegistry) -> None:
                self.registry = registry

        s = scope()
        assert autowire(Needs)(s).registry is s.registry


class TestAutowired:
    def test_plan_read_once(self) -> None:
        class Needs:
            def __init__(self, a: int, *args: Any, b: str = "x", **kwargs: Any) -> None:
                pass

        factory = autowire(Needs)
        assert [dep.name for dep in factory.plan] == ["a", "b"]
        assert factory.plan[0].required
        assert not factory.plan[1].required
        assert factory.cls is Needs
        assert repr(factory).startswith("autowire(")

    def test_unresolvable_annotation_fails_at_registration(self) -> None:
        class Needs:
            def __init__(self, thing: "DoesNotExist") -> None:  # noqa: F821
                pass

        with pytest.raises(UnresolvedDependency):
            autowire(Needs)
