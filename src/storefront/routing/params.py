"""Path parameter coercion.

Route templates carry untyped ``{name}`` segments. Captured values that
look like integers become ``int``; everything else stays ``str``.
"""

import re

_INTEGER = re.compile(r"-?\d+")


def coerce_param(value: str) -> str | int:
    """Convert a captured segment to ``int`` when it is an integer literal.

    ``"42"`` -> ``42``, ``"-3"`` -> ``-3``, ``"1.5"`` / ``"abc"`` / ``"0x1f"``
    stay strings.
    """
    if _INTEGER.fullmatch(value):
        return int(value)
    return value


def coerce_params(captured: dict[str, str]) -> dict[str, str | int]:
    """Coerce every captured group, preserving template order."""
    return {name: coerce_param(value) for name, value in captured.items()}
