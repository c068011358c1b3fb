"""Login, registration and logout."""

import logging
from typing import NoReturn

from storefront.captcha import CaptchaHelper
from storefront.config import AppConfig
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.security.audit import emit_security_event
from storefront.security.lockout import LoginLockout
from storefront.sessions.session import Session
from storefront.shop import views
from storefront.shop.controllers.base import Controller
from storefront.shop.models import UserRepository
from storefront.shop.validation import (
    clean,
    is_valid_email,
    is_valid_name,
    is_valid_password,
    is_valid_phone,
)

logger = logging.getLogger("storefront.shop")

INVALID_TOKEN = "Invalid security token. Please try again."
BAD_CAPTCHA = "The verification code is incorrect."
BAD_INPUT = "Invalid email format or missing password."
BAD_CREDENTIALS = "Invalid email or password."
ACCOUNT_LOCKED = (
    "Your account has been locked due to too many failed login attempts. Please contact support."
)
TOO_MANY_ATTEMPTS = "Too many failed login attempts. Please try again in {minutes} minutes."


class UserController(Controller):
    def __init__(
        self,
        session: Session,
        config: AppConfig,
        users: UserRepository,
        captcha: CaptchaHelper,
        lockout: LoginLockout,
    ) -> None:
        super().__init__(session, config)
        self.users = users
        self.captcha = captcha
        self.lockout = lockout

    # -- Login --

    def show_login(self, request: Request) -> Response:
        if self.session.is_authenticated():
            self.redirect("/")
        self.captcha.generate(self.session)
        content = views.login_page(
            self.session.get_csrf_token(),
            login_error=self.session.get_flash("login_error"),
            captcha_error=self.session.get_flash("captcha_error"),
            email=self.session.get_flash("input_email", ""),
            success=self.session.get_flash("success"),
        )
        return self.render(
            "Login", content, description="Login to GhibliGroceries - Access your account to place orders."
        )

    def _fail_login(self, key: str, message: str, *, email: str | None = None) -> NoReturn:
        """Flash *message* under *key*, issue a fresh code and go back to the form."""
        self.session.flash(key, message)
        if email is not None:
            self.session.flash("input_email", email)
        self.captcha.generate(self.session)
        self.redirect("/login")

    async def login(self, request: Request) -> None:
        if not self.session.validate_csrf_token(await request.post("csrf_token")):
            emit_security_event("csrf.rejected", request=request, details={"form": "login"})
            self._fail_login("login_error", INVALID_TOKEN)

        email = clean(await request.post("email"))
        if not self.captcha.validate(self.session, await request.post("captcha")):
            self._fail_login("captcha_error", BAD_CAPTCHA, email=email)

        password = await request.post("password") or ""
        if not is_valid_email(email) or not password:
            self._fail_login("login_error", BAD_INPUT, email=email)

        locked, retry_after = self.lockout.is_locked(email)
        if locked:
            emit_security_event("auth.login.locked", request=request, details={"email": email})
            minutes = max(1, -(-retry_after // 60))
            self._fail_login("login_error", TOO_MANY_ATTEMPTS.format(minutes=minutes), email=email)

        user = await self.users.authenticate(email, password)
        if user is None:
            await self.users.record_failed_login(email)
            now_locked, _ = self.lockout.record_failure(email)
            emit_security_event(
                "auth.login.failure", request=request, details={"email": email, "locked": now_locked}
            )
            self._fail_login("login_error", BAD_CREDENTIALS, email=email)

        if user.is_locked:
            emit_security_event("auth.login.locked", request=request, user_id=user.user_id)
            self._fail_login("login_error", ACCOUNT_LOCKED)

        self.lockout.record_success(email)
        await self.users.record_login(user.user_id)
        self.session.login_user(user.user_id)
        self.session.set("user_name", user.name)
        self.session.set("user_email", user.email)
        self.session.set("user_role", user.role)
        self.captcha.clear(self.session)
        emit_security_event("auth.login.success", request=request, user_id=user.user_id)
        self.redirect("/")

    def logout(self, request: Request) -> None:
        user_id = self.session.get_user_id()
        self.session.logout_user()
        self.session.flash("success", "You have been logged out successfully.")
        if user_id is not None:
            emit_security_event("auth.logout", request=request, user_id=user_id)
        self.redirect("/login")

    # -- Registration --

    def show_register(self, request: Request) -> Response:
        if self.session.is_authenticated():
            self.redirect("/")
        content = views.register_page(
            self.session.get_csrf_token(),
            error=self.session.get_flash("registration_error"),
            old=self.session.get_flash("input_data", {}),
        )
        return self.render(
            "Register",
            content,
            description="Create an account with GhibliGroceries to start ordering fresh groceries online.",
        )

    async def register(self, request: Request) -> Response:
        """Create an account from the form, answering AJAX callers in JSON."""
        ajax = request.is_ajax
        if self.session.is_authenticated():
            if ajax:
                return self.json({"success": False, "message": "Already logged in."}, 403)
            self.redirect("/")

        if not self.session.validate_csrf_token(await request.input("csrf_token")):
            if ajax:
                return self.json(
                    {"success": False, "message": "Invalid security token. Please refresh and try again."},
                    403,
                )
            self.session.flash("registration_error", INVALID_TOKEN)
            self.redirect("/register")

        name = clean(await request.input("name"))
        phone = clean(await request.input("phone"))
        email = clean(await request.input("email"))
        password = await request.input("password") or ""
        old = {"name": name, "phone": phone, "email": email}

        errors: dict[str, str] = {}
        if not is_valid_name(name):
            errors["name"] = "Please enter a valid name (letters and spaces only)."
        if not is_valid_phone(phone):
            errors["phone"] = "Please enter a valid 10-digit phone number."
        if not is_valid_email(email):
            errors["email"] = "Please enter a valid email address."
        if not is_valid_password(password):
            errors["password"] = "Password must be at least 8 characters long."
        if "email" not in errors and await self.users.email_exists(email):
            errors["email"] = "This email address is already registered."

        if errors:
            if ajax:
                return self.json(
                    {"success": False, "message": "Validation failed.", "errors": errors}, 422
                )
            self.session.flash("registration_error", "<br>".join(errors.values()))
            self.session.flash("input_data", old)
            self.redirect("/register")

        user_id = await self.users.create(name, phone, email, password)
        emit_security_event("auth.register", request=request, user_id=user_id)
        if ajax:
            return self.json({"success": True, "message": "Registration successful!"})
        self.session.flash("success", "Registration successful! You can now login.")
        self.redirect("/login")

    async def check_email(self, request: Request) -> Response:
        email = clean(await request.input("email"))
        if not email:
            return self.json({"error": "Email parameter is missing."}, 400)
        if not is_valid_email(email):
            return self.json({"error": "Invalid email format."}, 400)
        return self.json({"exists": await self.users.email_exists(email)})
