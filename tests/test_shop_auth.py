"""Login, logout, registration and access control through the full app."""

from conftest import CAPTCHA, PASSWORD, csrf_from, login

from storefront.data.database import Database
from storefront.http.response import Response
from storefront.shop.models import UserRepository
from storefront.testing import TestClient, assert_json, assert_redirect, set_cookie_headers

AJAX = {"X-Requested-With": "XMLHttpRequest"}


class TestLogin:
    async def test_success(self, client: TestClient, customer: int) -> None:
        response = await login(client, "alice@example.com")
        assert_redirect(response, "/")
        assert any(h.startswith("storefront_session=") for h in set_cookie_headers(response))

        home = await client.get("/")
        assert "Hello, Alice Smith" in home.text
        assert '<a href="/logout">Logout</a>' in home.text

    async def test_session_id_rotates(self, client: TestClient, customer: int) -> None:
        await client.get("/login")
        before = client.cookies["storefront_session"]
        await login(client, "alice@example.com")
        assert client.cookies["storefront_session"] != before

    async def test_email_is_trimmed(self, client: TestClient, customer: int) -> None:
        assert_redirect(await login(client, "  alice@example.com "), "/")

    async def test_wrong_password(self, client: TestClient, customer: int) -> None:
        response = await login(client, "alice@example.com", "nope-nope")
        assert_redirect(response, "/login")
        page = await client.get("/login")
        assert "Invalid email or password." in page.text
        assert 'value="alice@example.com"' in page.text

    async def test_unknown_user(self, client: TestClient) -> None:
        assert_redirect(await login(client, "nobody@example.com"), "/login")
        assert "Invalid email or password." in (await client.get("/login")).text

    async def test_wrong_captcha(self, client: TestClient, customer: int) -> None:
        token = csrf_from(await client.get("/login"))
        response = await client.post(
            "/login",
            form={"csrf_token": token, "email": "alice@example.com", "password": PASSWORD, "captcha": "zzz"},
        )
        assert_redirect(response, "/login")
        assert "The verification code is incorrect." in (await client.get("/login")).text

    async def test_captcha_is_case_insensitive(self, client: TestClient, customer: int) -> None:
        token = csrf_from(await client.get("/login"))
        response = await client.post(
            "/login",
            form={
                "csrf_token": token,
                "email": "alice@example.com",
                "password": PASSWORD,
                "captcha": CAPTCHA.lower(),
            },
        )
        assert_redirect(response, "/")

    async def test_missing_token(self, client: TestClient, customer: int) -> None:
        await client.get("/login")
        response = await client.post(
            "/login", form={"email": "alice@example.com", "password": PASSWORD, "captcha": CAPTCHA}
        )
        assert_redirect(response, "/login")
        assert "Invalid security token. Please try again." in (await client.get("/login")).text

    async def test_invalid_email_format(self, client: TestClient) -> None:
        assert_redirect(await login(client, "not-an-email"), "/login")
        assert "Invalid email format or missing password." in (await client.get("/login")).text

    async def test_lockout_after_repeated_failures(self, client: TestClient, customer: int) -> None:
        for _ in range(5):
            await login(client, "alice@example.com", "wrong-password")
        response = await login(client, "alice@example.com")
        assert_redirect(response, "/login")
        page = await client.get("/login")
        assert "Too many failed login attempts. Please try again in 15 minutes." in page.text

    async def test_locked_account(self, client: TestClient, customer: int, db: Database) -> None:
        await db.execute("UPDATE users SET account_status = 'locked' WHERE user_id = ?", customer)
        assert_redirect(await login(client, "alice@example.com"), "/login")
        assert "Your account has been locked" in (await client.get("/login")).text

    async def test_failed_attempts_are_counted(self, client: TestClient, customer: int, db: Database) -> None:
        await login(client, "alice@example.com", "wrong-password")
        await login(client, "alice@example.com", "wrong-password")
        user = await UserRepository(db).find_by_id(customer)
        assert user is not None and user.failed_login_attempts == 2

        await login(client, "alice@example.com")
        user = await UserRepository(db).find_by_id(customer)
        assert user is not None and user.failed_login_attempts == 0

    async def test_login_page_redirects_when_logged_in(self, logged_in: TestClient) -> None:
        assert_redirect(await logged_in.get("/login"), "/")
        assert_redirect(await logged_in.get("/register"), "/")


class TestLogout:
    async def test_logout_flashes_and_forgets_user(self, logged_in: TestClient) -> None:
        response = await logged_in.get("/logout")
        assert_redirect(response, "/login")

        page = await logged_in.get("/login")
        assert "You have been logged out successfully." in page.text
        assert "Hello, Alice Smith" not in page.text
        assert_redirect(await logged_in.get("/orders"), "/login")


class TestAccessControl:
    async def test_protected_page_redirects_with_flash(self, client: TestClient) -> None:
        response = await client.get("/orders")
        assert_redirect(response, "/login")
        page = await client.get("/login")
        assert '<div class="alert alert-error">Please log in to access that page.</div>' in page.text

    async def test_protected_path_is_case_insensitive(self, client: TestClient) -> None:
        assert_redirect(await client.get("/ORDERS"), "/login")

    async def test_checkout_requires_login(self, client: TestClient) -> None:
        assert_redirect(await client.get("/order"), "/login")
        assert "Please login to access this page." in (await client.get("/login")).text

    async def test_cart_page_requires_login(self, client: TestClient) -> None:
        assert_redirect(await client.get("/cart"), "/login")

    async def test_admin_api_requires_login(self, client: TestClient) -> None:
        body = assert_json(await client.get("/api/v1/orders"), 401)
        assert body == {"error": "Authentication required."}

    async def test_logged_in_can_see_orders(self, logged_in: TestClient) -> None:
        response = await logged_in.get("/orders")
        assert response.status == 200
        assert "You have not placed any orders yet." in response.text


class TestRegistration:
    FORM = {
        "name": "Bob O'Neil",
        "phone": "(012) 345-6781",
        "email": "bob@example.com",
        "password": "long-enough-pw",
    }

    async def _register(
        self, client: TestClient, headers: dict[str, str] | None = None, **overrides: str
    ) -> Response:
        token = csrf_from(await client.get("/register"))
        return await client.post(
            "/register", form={"csrf_token": token, **self.FORM, **overrides}, headers=headers
        )

    async def test_register_then_login(self, client: TestClient) -> None:
        assert_redirect(await self._register(client), "/login")
        assert "Registration successful! You can now login." in (await client.get("/login")).text
        assert_redirect(await login(client, "bob@example.com", "long-enough-pw"), "/")

    async def test_validation_errors_are_shown(self, client: TestClient) -> None:
        response = await self._register(client, name="B0b", password="short")
        assert_redirect(response, "/register")
        page = await client.get("/register")
        assert "Please enter a valid name (letters and spaces only)." in page.text
        assert "Password must be at least 8 characters long." in page.text
        assert 'value="bob@example.com"' in page.text

    async def test_duplicate_email(self, client: TestClient, customer: int) -> None:
        await self._register(client, email="alice@example.com")
        assert "This email address is already registered." in (await client.get("/register")).text

    async def test_input_is_escaped_on_output(self, client: TestClient) -> None:
        await self._register(client, name="<script>", password="short")
        page = await client.get("/register")
        assert "<script>" not in page.text
        assert 'value="&lt;script&gt;"' in page.text

    async def test_ajax_validation(self, client: TestClient) -> None:
        response = await self._register(client, headers=AJAX, phone="123")
        body = assert_json(response, 422)
        assert body["success"] is False
        assert set(body["errors"]) == {"phone"}

    async def test_ajax_success(self, client: TestClient, db: Database) -> None:
        body = assert_json(await self._register(client, headers=AJAX))
        assert body == {"success": True, "message": "Registration successful!"}
        user = await UserRepository(db).find_by_email("bob@example.com")
        assert user is not None
        assert user.role == "customer"
        assert user.password != "long-enough-pw"

    async def test_ajax_bad_token(self, client: TestClient) -> None:
        await client.get("/register")
        response = await client.post("/register", form={**self.FORM, "csrf_token": "x"}, headers=AJAX)
        assert assert_json(response, 403)["success"] is False


class TestCheckEmail:
    async def test_exists(self, client: TestClient, customer: int) -> None:
        found = assert_json(await client.post("/ajax/check-email", form={"email": "alice@example.com"}))
        missing = assert_json(await client.post("/ajax/check-email", form={"email": "zed@example.com"}))
        assert found == {"exists": True}
        assert missing == {"exists": False}

    async def test_bad_input(self, client: TestClient) -> None:
        empty = assert_json(await client.post("/ajax/check-email"), 400)
        bad = assert_json(await client.post("/ajax/check-email", form={"email": "nope"}), 400)
        assert empty == {"error": "Email parameter is missing."}
        assert bad == {"error": "Invalid email format."}

    async def test_only_answers_post(self, client: TestClient) -> None:
        response = await client.get("/ajax/check-email", query={"email": "alice@example.com"})
        assert response.status == 404
