"""Shared controller plumbing."""

from typing import Any, NoReturn

from storefront.config import AppConfig
from storefront.http.redirect import redirect_to
from storefront.http.response import Response, json_response
from storefront.sessions.session import Session
from storefront.shop import views


class Controller:
    """Base for the shop controllers.

    Subclasses declare extra dependencies in their own ``__init__`` and
    pass *session* and *config* up; ``autowire`` resolves the lot.
    """

    def __init__(self, session: Session, config: AppConfig) -> None:
        self.session = session
        self.config = config

    def redirect(self, target: str, status: int = 302) -> NoReturn:
        """Terminate with a redirect to an application path."""
        redirect_to(target, status, base_url=self.config.base_url)

    def require_login(self) -> None:
        self.session.require_login(self.config.login_url, base_url=self.config.base_url)

    @property
    def user_id(self) -> int | None:
        user_id = self.session.get_user_id()
        return None if user_id is None else int(user_id)

    def render(self, title: str, content: str, *, description: str = "") -> Response:
        return Response(views.layout(title, content, session=self.session, description=description))

    def json(self, data: Any, status: int = 200) -> Response:
        return json_response(data, status)
