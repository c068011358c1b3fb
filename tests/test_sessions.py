"""Tests for server-side sessions: the Session object, stores and middleware."""

from pathlib import Path

import pytest

from storefront.app import App
from storefront.errors import ConfigurationError, Halt
from storefront.http.request import Request
from storefront.http.response import Redirect
from storefront.sessions import (
    FileSessionStore,
    MemorySessionStore,
    Session,
    SessionConfig,
    SessionMiddleware,
    get_session,
)
from storefront.sessions.session import (
    EXPIRED_MESSAGE,
    IP_MISMATCH_MESSAGE,
    LOGIN_REQUIRED_MESSAGE,
)
from storefront.testing import TestClient, set_cookie_headers

CONFIG = SessionConfig(secret_key="test-secret")


class Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_session(
    sid: str | None = None,
    data: dict | None = None,
    *,
    config: SessionConfig = CONFIG,
    ip: str = "10.0.0.1",
    clock: Clock | None = None,
) -> Session:
    return Session(sid, data, config=config, client_ip=ip, clock=clock or Clock())


class TestSessionConfig:
    def test_defaults(self) -> None:
        config = SessionConfig(secret_key="s")
        assert config.cookie_name == "storefront_session"
        assert config.cookie_lifetime == 0
        assert config.httponly is True
        assert config.samesite == "Lax"
        assert config.session_timeout == 1800
        assert config.regenerate_interval == 300
        assert config.check_ip_address is True
        assert config.gc_maxlifetime == 1800
        assert config.rotation_grace == 60

    def test_empty_secret_key_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="secret_key must not be empty"):
            SessionMiddleware(SessionConfig(secret_key=""))


class TestSessionData:
    def test_new_session_has_fresh_id(self) -> None:
        session = make_session()
        assert session.is_new
        assert len(session.id) >= 16

    def test_get_set_has_remove(self) -> None:
        session = make_session()
        assert session.get("missing", "x") == "x"
        session.set("name", "Alice")
        assert session.has("name")
        assert session.get("name") == "Alice"
        session.remove("name")
        assert not session.has("name")

    def test_none_counts_as_missing(self) -> None:
        session = make_session(data={"key": None})
        assert not session.has("key")
        assert session.get("key", "default") == "default"

    def test_all_is_a_copy(self) -> None:
        session = make_session(data={"a": 1})
        snapshot = session.all()
        snapshot["a"] = 2
        assert session.get("a") == 1


class TestFlash:
    def test_read_once(self) -> None:
        session = make_session()
        session.flash("success", "Saved.")
        assert session.has_flash("success")
        assert session.get_flash("success") == "Saved."
        assert session.get_flash("success") is None
        assert not session.has_flash("success")

    def test_default_when_missing(self) -> None:
        assert make_session().get_flash("error", "none") == "none"

    def test_bucket_removed_when_empty(self) -> None:
        session = make_session()
        session.flash("info", "a")
        session.get_flash("info")
        assert "_flash" not in session.all()

    def test_other_messages_survive(self) -> None:
        session = make_session()
        session.flash("info", "a")
        session.flash("error", "b")
        session.get_flash("info")
        assert session.get_flash("error") == "b"


class TestCsrf:
    def test_token_is_stable(self) -> None:
        session = make_session()
        token = session.get_csrf_token()
        assert len(token) == 64
        assert session.get_csrf_token() == token

    def test_validate(self) -> None:
        session = make_session()
        token = session.get_csrf_token()
        assert session.validate_csrf_token(token)
        assert not session.validate_csrf_token("wrong")
        assert not session.validate_csrf_token("")
        assert not session.validate_csrf_token(None)

    def test_no_stored_token_never_validates(self) -> None:
        assert not make_session().validate_csrf_token("anything")

    def test_generate_replaces(self) -> None:
        session = make_session()
        old = session.get_csrf_token()
        new = session.generate_csrf_token()
        assert old != new
        assert not session.validate_csrf_token(old)


class TestAuthentication:
    def test_login_rotates_id_and_token(self) -> None:
        clock = Clock()
        session = make_session("a" * 32, {}, clock=clock)
        token = session.get_csrf_token()
        session.login_user(7)

        assert session.id != "a" * 32
        assert session.retired_ids == ("a" * 32,)
        assert session.is_authenticated()
        assert session.get_user_id() == 7
        assert session.get("login_time") == int(clock.now)
        assert session.get("user_ip") == "10.0.0.1"
        assert session.get_csrf_token() != token

    def test_login_without_ip_pinning(self) -> None:
        config = SessionConfig(secret_key="s", check_ip_address=False)
        session = make_session(config=config)
        session.login_user(1)
        assert session.get("user_ip") is None

    def test_logout_keeps_pending_flashes(self) -> None:
        session = make_session("b" * 32, {})
        session.login_user(3)
        logged_in_id = session.id
        session.set("user_name", "Alice")
        session.flash("info", "bye")
        session.logout_user()

        assert not session.is_authenticated()
        assert session.get("user_name") is None
        assert session.get_flash("info") == "bye"
        assert session.id != logged_in_id
        assert logged_in_id in session.retired_ids
        assert session.is_new

    def test_anonymous_activity_passes(self) -> None:
        assert make_session().validate_activity()

    def test_idle_timeout_logs_out(self) -> None:
        clock = Clock()
        session = make_session(clock=clock)
        session.login_user(1)
        clock.now += CONFIG.session_timeout + 1

        assert not session.validate_activity()
        assert not session.is_authenticated()
        assert session.get_flash("error") == EXPIRED_MESSAGE

    def test_activity_refreshes_login_time(self) -> None:
        clock = Clock()
        session = make_session(clock=clock)
        session.login_user(1)
        clock.now += 60
        assert session.validate_activity()
        assert session.get("login_time") == int(clock.now)

    def test_ip_change_logs_out(self) -> None:
        session = make_session()
        session.login_user(1)
        session.client_ip = "10.9.9.9"

        assert not session.validate_activity()
        assert not session.is_authenticated()
        assert session.get_flash("error") == IP_MISMATCH_MESSAGE

    def test_periodic_rotation_keeps_old_id(self) -> None:
        clock = Clock()
        session = make_session(clock=clock)
        session.login_user(1)
        retired = session.retired_ids
        before = session.id
        clock.now += CONFIG.regenerate_interval + 1

        assert session.validate_activity()
        assert session.id != before
        assert session.retired_ids == retired
        assert session.is_authenticated()
        assert session.get_user_id() == 1
        assert session.superseded_ids == (before,)

    def test_ip_change_ignored_without_pinning(self) -> None:
        config = SessionConfig(secret_key="s", check_ip_address=False)
        session = make_session(config=config)
        session.login_user(1)
        session.client_ip = "10.9.9.9"

        assert session.validate_activity()
        assert session.is_authenticated()
        assert session.get_user_id() == 1

    def test_missing_ip_is_adopted_on_first_check(self) -> None:
        clock = Clock()
        data = {"user_id": 2, "login_time": int(clock.now), "_last_regenerate": int(clock.now)}
        session = make_session("d" * 32, data, ip="10.0.0.5", clock=clock)

        assert session.validate_activity()
        assert session.get("user_ip") == "10.0.0.5"

        session.client_ip = "10.0.0.6"
        assert not session.validate_activity()
        assert not session.is_authenticated()

    def test_require_login_halts_anonymous(self) -> None:
        session = make_session()
        with pytest.raises(Halt) as info:
            session.require_login("/login", base_url="https://shop.test/store")
        assert isinstance(info.value.response, Redirect)
        assert info.value.response.url == "https://shop.test/store/login"
        assert session.get_flash("error") == LOGIN_REQUIRED_MESSAGE

    def test_require_login_passes_authenticated(self) -> None:
        session = make_session()
        session.login_user(1)
        session.require_login()

    def test_destroy(self) -> None:
        session = make_session("c" * 32, {"user_id": 1})
        session.destroy()
        assert session.all() == {}
        assert session.retired_ids == ("c" * 32,)


class TestMemorySessionStore:
    async def test_round_trip_is_copied(self) -> None:
        store = MemorySessionStore()
        data = {"cart": {"1": 2}}
        await store.save("sid", data)
        data["cart"]["1"] = 99
        loaded = await store.load("sid")
        assert loaded == {"cart": {"1": 2}}
        loaded["cart"]["1"] = 5
        assert await store.load("sid") == {"cart": {"1": 2}}
        assert "sid" in store
        assert len(store) == 1

    async def test_delete(self) -> None:
        store = MemorySessionStore()
        await store.save("sid", {})
        await store.delete("sid")
        await store.delete("never-existed")
        assert await store.load("sid") is None

    async def test_expired_entries_are_missing(self) -> None:
        clock = Clock()
        store = MemorySessionStore(clock=clock)
        await store.save("short", {"a": 1}, ttl=10)
        await store.save("forever", {"b": 2})
        clock.now += 11
        assert await store.load("short") is None
        assert "short" not in store
        assert await store.load("forever") == {"b": 2}

    async def test_gc_purges_expired(self) -> None:
        clock = Clock()
        store = MemorySessionStore(clock=clock)
        for n in range(3):
            await store.save(f"sid{n}", {}, ttl=10 * (n + 1))
        clock.now += 15
        assert await store.gc() == 1
        assert len(store) == 2

    async def test_save_collects_garbage_on_interval(self) -> None:
        clock = Clock()
        store = MemorySessionStore(gc_interval=60, clock=clock)
        await store.save("old", {}, ttl=5)
        clock.now += 30
        await store.save("new", {}, ttl=100)
        assert "old" in store
        clock.now += 31
        await store.save("newer", {}, ttl=100)
        assert "old" not in store
        assert len(store) == 2


class TestFileSessionStore:
    async def test_round_trip(self, tmp_path: Path) -> None:
        store = FileSessionStore(tmp_path / "sessions")
        sid = "A" * 43
        await store.save(sid, {"user_id": 4, "cart": {"2": 1}})
        assert await store.load(sid) == {"user_id": 4, "cart": {"2": 1}}
        assert (tmp_path / "sessions" / f"sess_{sid}.json").exists()

        await store.delete(sid)
        assert await store.load(sid) is None

    async def test_missing_is_none(self, tmp_path: Path) -> None:
        assert await FileSessionStore(tmp_path).load("B" * 43) is None

    async def test_malformed_ids_are_refused(self, tmp_path: Path) -> None:
        store = FileSessionStore(tmp_path)
        assert await store.load("../../etc/passwd") is None
        with pytest.raises(ValueError, match="malformed id"):
            await store.save("../escape", {})
        await store.delete("../escape")

    async def test_corrupt_file_is_discarded(self, tmp_path: Path) -> None:
        store = FileSessionStore(tmp_path)
        sid = "C" * 43
        (tmp_path / f"sess_{sid}.json").write_text("{not json", encoding="utf-8")
        assert await store.load(sid) is None

    async def test_expired_file_is_removed(self, tmp_path: Path) -> None:
        clock = Clock()
        store = FileSessionStore(tmp_path, clock=clock)
        sid = "D" * 43
        await store.save(sid, {"user_id": 1}, ttl=10)
        clock.now += 11
        assert await store.load(sid) is None
        assert not (tmp_path / f"sess_{sid}.json").exists()

    async def test_gc_removes_expired_and_corrupt_files(self, tmp_path: Path) -> None:
        clock = Clock()
        store = FileSessionStore(tmp_path, clock=clock)
        await store.save("E" * 43, {}, ttl=10)
        await store.save("F" * 43, {}, ttl=100)
        (tmp_path / f"sess_{'G' * 43}.json").write_text("[]", encoding="utf-8")
        clock.now += 50
        assert await store.gc() == 2
        assert sorted(p.name for p in tmp_path.glob("sess_*.json")) == [f"sess_{'F' * 43}.json"]


# -- Middleware --


class CounterController:
    def __init__(self, session: Session) -> None:
        self.session = session

    def bump(self, request: Request) -> str:
        count = self.session.get("count", 0) + 1
        self.session.set("count", count)
        return f"count={count}"

    def who(self, request: Request) -> str:
        return f"sid={get_session().id}"


def counter_app(
    store: MemorySessionStore, config: SessionConfig = CONFIG
) -> tuple[App, SessionMiddleware]:
    app = App()
    middleware = SessionMiddleware(config, store)
    app.add_middleware(middleware)
    app.controller("CounterController", CounterController)
    app.router.get("bump", ("CounterController", "bump"))
    app.router.get("who", ("CounterController", "who"))
    return app, middleware


class TestSessionMiddleware:
    def test_sign_and_unsign(self) -> None:
        middleware = SessionMiddleware(CONFIG)
        signed = middleware.sign("abc")
        assert signed != "abc"
        assert middleware.unsign(signed) == "abc"
        assert middleware.unsign(signed + "x") is None

    def test_other_secret_rejected(self) -> None:
        signed = SessionMiddleware(SessionConfig(secret_key="other")).sign("abc")
        assert SessionMiddleware(CONFIG).unsign(signed) is None

    def test_get_session_outside_request(self) -> None:
        with pytest.raises(LookupError, match="No active session"):
            get_session()

    async def test_data_persists_across_requests(self) -> None:
        store = MemorySessionStore()
        app, _ = counter_app(store)
        async with TestClient(app) as client:
            assert (await client.get("/bump")).text == "count=1"
            assert (await client.get("/bump")).text == "count=2"
        assert len(store) == 1

    async def test_cookie_attributes(self) -> None:
        app, _ = counter_app(MemorySessionStore())
        async with TestClient(app) as client:
            response = await client.get("/bump")
        (cookie,) = set_cookie_headers(response)
        assert cookie.startswith("storefront_session=")
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie
        assert "Max-Age" not in cookie
        assert "Secure" not in cookie

    async def test_secure_over_https(self) -> None:
        app, _ = counter_app(MemorySessionStore())
        async with TestClient(app, scheme="https") as client:
            response = await client.get("/bump")
        (cookie,) = set_cookie_headers(response)
        assert "Secure" in cookie

    async def test_cookie_carries_only_signed_id(self) -> None:
        app, middleware = counter_app(MemorySessionStore())
        async with TestClient(app) as client:
            response = await client.get("/who")
            sid = response.text.removeprefix("sid=")
            cookie = client.cookies["storefront_session"]
        assert middleware.unsign(cookie) == sid

    async def test_tampered_cookie_starts_fresh(self) -> None:
        app, _ = counter_app(MemorySessionStore())
        async with TestClient(app) as client:
            await client.get("/bump")
            client.cookies["storefront_session"] = client.cookies["storefront_session"] + "x"
            assert (await client.get("/bump")).text == "count=1"

    async def test_unknown_session_id_starts_fresh(self) -> None:
        app, middleware = counter_app(MemorySessionStore())
        async with TestClient(app) as client:
            client.cookies["storefront_session"] = middleware.sign("D" * 43)
            response = await client.get("/who")
        assert response.text != f"sid={'D' * 43}"

    async def test_retired_ids_are_deleted(self) -> None:
        store = MemorySessionStore()
        middleware = SessionMiddleware(CONFIG, store)
        session = make_session("E" * 32, {})
        await store.save("E" * 32, {"old": True})
        session.login_user(1)
        await middleware.save(session)
        assert "E" * 32 not in store
        assert session.id in store

    async def test_abandoned_sessions_are_purged(self) -> None:
        clock = Clock()
        store = MemorySessionStore(gc_interval=0, clock=clock)
        config = SessionConfig(secret_key="test-secret", gc_maxlifetime=100)
        app, _ = counter_app(store, config)
        async with TestClient(app) as client:
            for _ in range(5):
                client.cookies.clear()
                await client.get("/bump")
            assert len(store) == 5

            clock.now += 101
            client.cookies.clear()
            await client.get("/bump")
        assert len(store) == 1

    async def test_rotated_id_expires_after_grace(self) -> None:
        clock = Clock()
        store = MemorySessionStore(clock=clock)
        middleware = SessionMiddleware(CONFIG, store)
        old = "G" * 32
        data = {"user_id": 1, "login_time": int(clock.now), "_last_regenerate": 0}
        session = make_session(old, data, clock=clock)

        assert session.validate_activity()
        await middleware.save(session)
        assert (await store.load(old))["user_id"] == 1
        assert (await store.load(session.id))["user_id"] == 1

        clock.now += CONFIG.rotation_grace + 1
        assert await store.load(old) is None
        assert await store.load(session.id) is not None
