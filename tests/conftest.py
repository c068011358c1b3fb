"""Shared fixtures: a fresh shop per test with an in-memory database."""

import re
from collections.abc import AsyncIterator

import pytest

from storefront.app import App
from storefront.captcha import CaptchaHelper
from storefront.config import AppConfig
from storefront.data.database import Database
from storefront.http.response import Response
from storefront.shop.bootstrap import create_app
from storefront.shop.models import CategoryRepository, ProductRepository, UserRepository
from storefront.testing import TestClient

SECRET = "test-secret-key"
CAPTCHA = "ABC123"
PASSWORD = "correct-horse"

_CSRF_FIELD = re.compile(r'name="csrf_token" value="([^"]+)"')


class FixedCaptcha(CaptchaHelper):
    """Always issues the same code so tests can solve it."""

    def generate_text(self, length: int = 6) -> str:
        return CAPTCHA[:length]


def csrf_from(response: Response) -> str:
    found = _CSRF_FIELD.search(response.text)
    assert found is not None, "page has no CSRF field"
    return found.group(1)


async def csrf_token(client: TestClient, path: str = "/contact") -> str:
    """The session's current CSRF token, read from a rendered form."""
    return csrf_from(await client.get(path))


async def login(client: TestClient, email: str, password: str = PASSWORD) -> Response:
    token = csrf_from(await client.get("/login"))
    return await client.post(
        "/login",
        form={"csrf_token": token, "email": email, "password": password, "captcha": CAPTCHA},
    )


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(secret_key=SECRET)


@pytest.fixture
def app(config: AppConfig) -> App:
    app = create_app(config, setup_logging=False)
    app.provide("captcha", FixedCaptcha(), overwrite=True)
    return app


@pytest.fixture
def db(app: App) -> Database:
    return app.registry.get("database")


@pytest.fixture
async def client(app: App) -> AsyncIterator[TestClient]:
    async with TestClient(app) as client:
        yield client


@pytest.fixture
async def catalog(client: TestClient, db: Database) -> dict[str, int]:
    """Two top-level categories, one subcategory and three products."""
    categories = CategoryRepository(db)
    products = ProductRepository(db)
    fruit = await categories.create("Fruit")
    apples = await categories.create("Apples", fruit)
    vegetables = await categories.create("Vegetables")
    return {
        "fruit": fruit,
        "apples": apples,
        "vegetables": vegetables,
        "banana": await products.create(fruit, "Banana", 0.5, stock_quantity=10),
        "gala": await products.create(apples, "Gala Apple", 1.25, stock_quantity=5),
        "carrot": await products.create(vegetables, "Carrot", 0.3, stock_quantity=0),
    }


@pytest.fixture
async def customer(client: TestClient, db: Database) -> int:
    return await UserRepository(db).create("Alice Smith", "0123456789", "alice@example.com", PASSWORD)


@pytest.fixture
async def admin(client: TestClient, db: Database) -> int:
    return await UserRepository(db).create(
        "Ada Admin", "0123456780", "ada@example.com", PASSWORD, role="admin"
    )


@pytest.fixture
async def logged_in(client: TestClient, customer: int) -> TestClient:
    response = await login(client, "alice@example.com")
    assert response.status == 302
    assert response.location == "/"
    return client
