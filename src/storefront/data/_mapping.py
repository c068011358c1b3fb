"""Row-to-dataclass mapping with type coercion.

SQLite is loosely typed: a ``DECIMAL`` column comes back as ``float`` or
``str`` depending on how it was written. Fields annotated ``int``,
``float``, ``bool`` or ``str`` are coerced; other fields pass through.
Extra columns in the row are ignored, so ``SELECT *`` is fine.
"""

import dataclasses
import types
from functools import cache
from typing import Any, get_args, get_origin, get_type_hints

_COERCIBLE: dict[type, Any] = {
    int: lambda v: int(v) if v != "" else 0,
    float: lambda v: float(v) if v != "" else 0.0,
    bool: lambda v: bool(int(v)) if isinstance(v, str) else bool(v),
    str: str,
}


@cache
def _coercion_map(cls: type) -> dict[str, type | None]:
    hints = get_type_hints(cls)
    result: dict[str, type | None] = {}
    for f in dataclasses.fields(cls):
        annotation = hints.get(f.name, f.type)
        # X | None coerces to X
        if get_origin(annotation) is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            annotation = args[0] if len(args) == 1 else None
        result[f.name] = annotation if annotation in _COERCIBLE else None
    return result


def _coerce(value: Any, target: type | None) -> Any:
    if target is None or value is None or type(value) is target:
        return value
    return _COERCIBLE[target](value)


def map_row[T](cls: type[T], row: dict[str, Any]) -> T:
    """Build a *cls* dataclass from a column -> value row.

    Raises:
        TypeError: When *cls* is not a dataclass or a required field has
            no matching column.
    """
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} is not a dataclass; rows map onto dataclasses only"
        raise TypeError(msg)
    coercion = _coercion_map(cls)
    return cls(**{k: _coerce(v, coercion[k]) for k, v in row.items() if k in coercion})


def map_rows[T](cls: type[T], rows: list[dict[str, Any]]) -> list[T]:
    return [map_row(cls, row) for row in rows]
