"""Narrowing of untyped tool arguments into typed values."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class ToolInputError(ValueError):
    """Caller-supplied tool arguments do not match the tool's input shape."""


def require_str(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolInputError(f"{key} must be a non-empty string")
    return value


def optional_str(args: Mapping[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolInputError(f"{key} must be a string when provided")
    return value or None


def optional_bool(args: Mapping[str, Any], key: str, *, default: bool) -> bool:
    value = args.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ToolInputError(f"{key} must be a boolean when provided")
    return value


def optional_int(
    args: Mapping[str, Any],
    key: str,
    *,
    default: int | None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    value = args.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise ToolInputError(f"{key} must be an integer when provided")
    number = int(value)
    if minimum is not None and number < minimum:
        raise ToolInputError(f"{key} must be >= {minimum}")
    if maximum is not None and number > maximum:
        raise ToolInputError(f"{key} must be <= {maximum}")
    return number


def optional_number(
    args: Mapping[str, Any],
    key: str,
    *,
    default: float,
    minimum: float,
    maximum: float,
) -> float:
    value = args.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolInputError(f"{key} must be a number when provided")
    if not minimum <= value <= maximum:
        raise ToolInputError(f"{key} must be between {minimum} and {maximum}")
    return float(value)


def choice(
    args: Mapping[str, Any],
    key: str,
    options: tuple[str, ...],
    *,
    default: str | None = None,
) -> str:
    value = args.get(key)
    if value is None:
        if default is None:
            raise ToolInputError(f"{key} is required; expected one of: {', '.join(options)}")
        return default
    if value not in options:
        raise ToolInputError(f"{key} must be one of: {', '.join(options)}")
    return value


def str_list(
    args: Mapping[str, Any],
    key: str,
    *,
    required: bool = False,
) -> tuple[str, ...]:
    value = args.get(key)
    if value is None:
        if required:
            raise ToolInputError(f"{key} must be a non-empty array of strings")
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ToolInputError(f"{key} must be an array of strings")
    if required and not value:
        raise ToolInputError(f"{key} must be a non-empty array of strings")
    return tuple(value)


def str_mapping(args: Mapping[str, Any], key: str) -> dict[str, str]:
    value = args.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(name, str) and isinstance(item, str) for name, item in value.items()
    ):
        raise ToolInputError(f"{key} must be an object of string values")
    return dict(value)


def timeout_ms(args: Mapping[str, Any]) -> int | None:
    return optional_int(args, "timeout_ms", default=None, minimum=1)
