"""Input validation for the shop forms.

Values are stored as submitted (trimmed) and escaped when rendered, so
nothing here rewrites user input beyond whitespace.
"""

import re

_EMAIL = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$")
_PHONE_NOISE = re.compile(r"[\s\-()]+")

MIN_PASSWORD_LENGTH = 8


def clean(value: object) -> str:
    """Trimmed string form of a submitted value; ``None`` becomes ``""``."""
    if value is None:
        return ""
    return str(value).strip()


def is_valid_email(email: str) -> bool:
    return len(email) <= 254 and _EMAIL.match(email) is not None


def is_valid_phone(phone: str) -> bool:
    """Ten digits, ignoring spaces, hyphens and parentheses."""
    digits = _PHONE_NOISE.sub("", phone)
    return len(digits) == 10 and digits.isascii() and digits.isdigit()


def is_valid_name(name: str) -> bool:
    """Letters, whitespace, apostrophes and hyphens only."""
    return bool(name) and all(ch.isalpha() or ch.isspace() or ch in "'-" for ch in name)


def is_valid_password(password: str) -> bool:
    return len(password) >= MIN_PASSWORD_LENGTH


def positive_int(value: object) -> int | None:
    """*value* as an int greater than zero, or ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    text = clean(value)
    if not re.fullmatch(r"\+?\d+", text):
        return None
    number = int(text)
    return number if number > 0 else None
