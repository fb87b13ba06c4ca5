"""Typed access into partner JSON payloads; absent fields read as None."""

from __future__ import annotations

from typing import Any

from envcollect.common.http import PayloadError


def dig(payload: Any, *path: str) -> Any:
    node = payload
    for key in path:
        if node is None:
            return None
        if not isinstance(node, dict):
            raise PayloadError(f"Expected object at {'.'.join(path)}")
        node = node.get(key)
    return node


def as_float(value: Any, field: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadError(f"Field {field} is not a number")
    return float(value)


def as_int(value: Any, field: str) -> int | None:
    number = as_float(value, field)
    if number is None:
        return None
    if not number.is_integer():
        raise PayloadError(f"Field {field} is not an integer")
    return int(number)


def as_str(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError(f"Field {field} is not a string")
    return value


def as_bool(value: Any, field: str) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise PayloadError(f"Field {field} is not a boolean")
    return value


def float_at(payload: Any, *path: str) -> float | None:
    return as_float(dig(payload, *path), ".".join(path))


def int_at(payload: Any, *path: str) -> int | None:
    return as_int(dig(payload, *path), ".".join(path))


def str_at(payload: Any, *path: str) -> str | None:
    return as_str(dig(payload, *path), ".".join(path))


def bool_at(payload: Any, *path: str) -> bool | None:
    return as_bool(dig(payload, *path), ".".join(path))


def require_object(payload: Any, what: str) -> dict:
    if not isinstance(payload, dict):
        raise PayloadError(f"{what} payload is not a JSON object")
    return payload
