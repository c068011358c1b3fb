"""Home, about, contact and cart pages."""

import logging

from storefront.config import AppConfig
from storefront.http.request import Request
from storefront.http.response import Response
from storefront.sessions.session import Session
from storefront.shop import views
from storefront.shop.cart_data import CartService
from storefront.shop.controllers.base import Controller
from storefront.shop.models import ProductRepository
from storefront.shop.validation import clean, is_valid_email

logger = logging.getLogger("storefront.shop")

MIN_MESSAGE_LENGTH = 10
MAX_MESSAGE_LENGTH = 1000


class PageController(Controller):
    def __init__(
        self,
        session: Session,
        config: AppConfig,
        products: ProductRepository,
        carts: CartService,
    ) -> None:
        super().__init__(session, config)
        self.products = products
        self.carts = carts

    async def index(self, request: Request) -> Response:
        featured = await self.products.featured()
        content = views.home_page(featured, logged_in=self.session.is_authenticated())
        return self.render("Home", content, description="Fresh groceries delivered to your door.")

    def about(self, request: Request) -> Response:
        return self.render("About Us", views.about_page())

    def contact(self, request: Request) -> Response:
        content = views.contact_page(
            self.session.get_csrf_token(),
            message=self.session.get_flash("contact_message"),
            errors=self.session.get_flash("form_errors", {}),
            old=self.session.get_flash("old_input", {}),
        )
        return self.render("Contact Us", content)

    async def submit_contact(self, request: Request) -> None:
        if not self.session.validate_csrf_token(await request.post("csrf_token")):
            self.session.flash(
                "contact_message",
                {"type": "error", "text": "Invalid security token. Please try again."},
            )
            self.redirect("/contact")

        name = clean(await request.post("name"))
        email = clean(await request.post("email"))
        message = clean(await request.post("message"))

        errors: dict[str, str] = {}
        if not name:
            errors["name"] = "Name is required."
        if not is_valid_email(email):
            errors["email"] = "A valid email address is required."
        if not message:
            errors["message"] = "Message is required."
        elif not MIN_MESSAGE_LENGTH <= len(message) <= MAX_MESSAGE_LENGTH:
            errors["message"] = (
                f"Message must be between {MIN_MESSAGE_LENGTH} and {MAX_MESSAGE_LENGTH} characters."
            )

        if errors:
            self.session.flash("form_errors", errors)
            self.session.flash("old_input", {"name": name, "email": email, "message": message})
            self.session.flash(
                "contact_message", {"type": "error", "text": "Please correct the errors below."}
            )
            self.redirect("/contact")

        # Delivery is out of scope; the submission is recorded in the log
        logger.info(
            "Contact form submitted",
            extra={"contact_name": name, "contact_email": email, "message_length": len(message)},
        )
        self.session.flash(
            "contact_message",
            {"type": "success", "text": "Thank you for your message! We will get back to you soon."},
        )
        self.redirect("/contact")

    async def cart(self, request: Request) -> Response:
        if not self.session.is_authenticated():
            self.redirect(self.config.login_url)
        data = await self.carts.summary(self.session)
        return self.render("Your Cart", views.cart_page(data))
