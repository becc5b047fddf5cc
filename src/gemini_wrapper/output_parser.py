"""Best-effort recovery of a JSON payload from free-form engine output.

The engine answers in natural language and wraps its payload inconsistently,
so parsing is an ordered cascade of independent strategies where the first
strategy that yields a value wins.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable
from typing import Any

ParseStrategy = Callable[[str], Any | None]

_FENCED_BLOCK = re.compile(r"```([A-Za-z0-9_+-]*)[^\S\n]*\n?(.*?)```", re.DOTALL)
_STRUCTURED_FENCE_TAGS = frozenset({"", "json"})


def parse_structured(text: str) -> dict[str, Any] | list[Any] | None:
    """Extract a JSON object or array from ``text``; never raises."""

    if not isinstance(text, str) or not text.strip():
        return None
    return first_success(PARSE_STRATEGIES, text)


def first_success(strategies: Iterable[ParseStrategy], text: str) -> Any | None:
    """Run strategies in order and return the first non-None result."""

    for strategy in strategies:
        result = strategy(text)
        if result is not None:
            return result
    return None


def parse_whole_document(text: str) -> dict[str, Any] | list[Any] | None:
    parsed = _try_load(text.strip())
    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def parse_fenced_block(text: str) -> dict[str, Any] | list[Any] | None:
    for match in _FENCED_BLOCK.finditer(text):
        if match.group(1).lower() not in _STRUCTURED_FENCE_TAGS:
            continue
        parsed = _try_load(match.group(2).strip())
        if isinstance(parsed, (dict, list)):
            return parsed
    return None


def parse_brace_span(text: str) -> dict[str, Any] | None:
    parsed = _try_load(_span(text, "{", "}"))
    if isinstance(parsed, dict):
        return parsed
    return None


def parse_bracket_span(text: str) -> list[Any] | None:
    parsed = _try_load(_span(text, "[", "]"))
    if isinstance(parsed, list):
        return parsed
    return None


PARSE_STRATEGIES: tuple[ParseStrategy, ...] = (
    parse_whole_document,
    parse_fenced_block,
    parse_brace_span,
    parse_bracket_span,
)


def _span(text: str, opening: str, closing: str) -> str | None:
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def _try_load(raw: str | None) -> Any | None:
    if not raw:
        return None
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None


def _reject_constant(name: str) -> Any:
    # NaN and Infinity would not survive a strict re-serialisation round trip.
    raise ValueError(f"Non-standard JSON constant: {name}")
