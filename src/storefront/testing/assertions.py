"""Assertion helpers for storefront responses."""

from typing import Any

from storefront.http.response import Response


def assert_redirect(response: Response, location: str | None = None, status: int = 302) -> None:
    """Assert *response* is a redirect, optionally to *location*."""
    assert response.status == status, f"Expected {status}, got {response.status}"
    actual = response.location
    assert actual is not None, "Response has no Location header"
    if location is not None:
        assert actual == location, f"Expected redirect to {location!r}, got {actual!r}"


def assert_json(response: Response, status: int = 200) -> Any:
    """Assert *response* is JSON with *status* and return the decoded body."""
    assert response.status == status, (
        f"Expected {status}, got {response.status}: {response.text[:200]}"
    )
    assert response.content_type.startswith("application/json"), (
        f"Expected JSON, got {response.content_type!r}"
    )
    return response.json()


def set_cookie_headers(response: Response) -> list[str]:
    """Every ``Set-Cookie`` value the response carried."""
    return [value for name, value in response.headers if name.lower() == "set-cookie"]
