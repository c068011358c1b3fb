"""URL safety validation for redirect targets.

Prevents open redirects when following a client-supplied location such as
the ``Referer`` header or a ``?next=`` parameter.

Usage::

    from storefront.security.urls import is_safe_url

    next_url = request.query.get("next", "/")
    if not is_safe_url(next_url):
        next_url = "/"
"""


def is_safe_url(url: str | None) -> bool:
    """Check whether *url* is a same-origin path.

    - Must be a non-empty string starting with ``/``
    - Must **not** start with ``//`` or ``/\\`` (protocol-relative)
    - Must **not** contain ``://`` (absolute URL with scheme)

    Examples::

        >>> is_safe_url("/my-orders")
        True
        >>> is_safe_url("/login?next=/cart")
        True
        >>> is_safe_url("//evil.example")
        False
        >>> is_safe_url("https://evil.example")
        False
        >>> is_safe_url("")
        False
    """
    if not url or not isinstance(url, str):
        return False
    if not url.startswith("/"):
        return False
    if url.startswith(("//", "/\\")):
        return False
    return "://" not in url
