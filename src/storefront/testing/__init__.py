"""Test utilities for storefront applications.

Provides an in-process ASGI test client and response assertions::

    from storefront.testing import TestClient, assert_redirect
"""

from storefront.testing.assertions import assert_json, assert_redirect, set_cookie_headers
from storefront.testing.client import TestClient

__all__ = [
    "TestClient",
    "assert_json",
    "assert_redirect",
    "set_cookie_headers",
]
