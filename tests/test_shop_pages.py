"""Public pages, catalog browsing, the contact form and the CAPTCHA image."""

from conftest import csrf_token

from storefront.testing import TestClient, assert_json, assert_redirect


class TestPages:
    async def test_home(self, client: TestClient, catalog: dict[str, int]) -> None:
        response = await client.get("/")
        assert response.status == 200
        assert "<title>Home | GhibliGroceries</title>" in response.text
        assert response.text.count('<article class="product"') == 2
        assert "Login to order" in response.text

    async def test_security_headers_on_html(self, client: TestClient) -> None:
        response = await client.get("/about")
        assert "About GhibliGroceries" in response.text
        assert response.header("X-Frame-Options") == "DENY"
        assert response.header("X-Content-Type-Options") == "nosniff"
        assert response.header("Content-Security-Policy") is not None

    async def test_no_security_headers_on_json(self, client: TestClient) -> None:
        response = await client.get("/api/cart/count")
        assert response.header("X-Frame-Options") is None

    async def test_trailing_slash_and_case(self, client: TestClient) -> None:
        assert (await client.get("/About/")).status == 200

    async def test_unknown_page(self, client: TestClient) -> None:
        response = await client.get("/no/such/page")
        assert response.status == 404
        assert "404 - Page Not Found" in response.text

    async def test_unknown_api_route(self, client: TestClient) -> None:
        body = assert_json(await client.get("/api/nothing"), 404)
        assert body["error"] == "Not Found"


class TestCatalog:
    async def test_all_products(self, client: TestClient, catalog: dict[str, int]) -> None:
        response = await client.get("/categories")
        assert "All products" in response.text
        for name in ("Banana", "Gala Apple", "Carrot"):
            assert f"<h3>{name}</h3>" in response.text
        assert "?filter=Fruit" in response.text
        assert "?filter=Apples" not in response.text

    async def test_filter_includes_subcategories(self, client: TestClient, catalog: dict[str, int]) -> None:
        response = await client.get("/products", query={"filter": "Fruit"})
        assert "<h3>Banana</h3>" in response.text
        assert "<h3>Gala Apple</h3>" in response.text
        assert "<h3>Carrot</h3>" not in response.text

    async def test_unknown_filter(self, client: TestClient, catalog: dict[str, int]) -> None:
        response = await client.get("/categories", query={"filter": "Nuts"})
        assert "No products found." in response.text
        assert "No category named &quot;Nuts&quot; was found." in response.text

    async def test_logged_in_cards_link_to_order(self, logged_in: TestClient, catalog: dict[str, int]) -> None:
        response = await logged_in.get("/categories")
        assert f'href="/order/product/{catalog["banana"]}"' in response.text

    async def test_products_by_category(self, client: TestClient, catalog: dict[str, int]) -> None:
        body = assert_json(
            await client.get("/ajax/products-by-category", query={"categoryId": str(catalog["fruit"])})
        )
        assert sorted(p["name"] for p in body["products"]) == ["Banana", "Gala Apple"]
        assert assert_json(await client.get("/ajax/products-by-category?categoryId=x"), 400) == {
            "error": "Invalid Category ID provided."
        }

    async def test_subcategories(self, client: TestClient, catalog: dict[str, int]) -> None:
        body = assert_json(await client.get("/ajax/subcategories", query={"parentId": str(catalog["fruit"])}))
        assert body == {
            "subcategories": [
                {"category_id": catalog["apples"], "category_name": "Apples", "parent_id": catalog["fruit"]}
            ]
        }
        assert_json(await client.get("/ajax/subcategories?parentId=0"), 400)


class TestContact:
    async def test_valid_submission(self, client: TestClient) -> None:
        token = await csrf_token(client)
        response = await client.post(
            "/contact/submit",
            form={
                "csrf_token": token,
                "name": "Alice",
                "email": "alice@example.com",
                "message": "Do you stock yuzu?",
            },
        )
        assert_redirect(response, "/contact")
        assert "Thank you for your message!" in (await client.get("/contact")).text

    async def test_errors_keep_input(self, client: TestClient) -> None:
        token = await csrf_token(client)
        await client.post(
            "/contact/submit",
            form={"csrf_token": token, "name": "Alice", "email": "nope", "message": "short"},
        )
        page = await client.get("/contact")
        assert "Please correct the errors below." in page.text
        assert "A valid email address is required." in page.text
        assert "Message must be between 10 and 1000 characters." in page.text
        assert 'value="Alice"' in page.text

    async def test_bad_token(self, client: TestClient) -> None:
        await client.get("/contact")
        response = await client.post(
            "/contact/submit",
            form={"csrf_token": "x", "name": "A", "email": "a@b.co", "message": "long enough text"},
        )
        assert_redirect(response, "/contact")
        assert "Invalid security token. Please try again." in (await client.get("/contact")).text


class TestCaptchaImage:
    async def test_svg(self, client: TestClient) -> None:
        response = await client.get("/captcha")
        assert response.status == 200
        assert response.content_type == "image/svg+xml"
        assert response.text.startswith("<svg")
        assert ">ABC123</text>" in response.text
        assert response.header("Cache-Control") == "no-cache, no-store, must-revalidate"
        assert response.header("X-Frame-Options") is None
