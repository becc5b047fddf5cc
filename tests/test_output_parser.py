from __future__ import annotations

import json

import allure
import pytest

from gemini_wrapper.output_parser import (
    PARSE_STRATEGIES,
    first_success,
    parse_bracket_span,
    parse_brace_span,
    parse_fenced_block,
    parse_structured,
    parse_whole_document,
)

pytestmark = [
    allure.epic("Delegation"),
    allure.feature("Result Parser"),
]


def test_parse_structured_reads_whole_document() -> None:
    assert parse_structured('{"a":1}') == {"a": 1}
    assert parse_structured("  [1, 2, 3]\n") == [1, 2, 3]


def test_parse_structured_reads_fenced_json_block() -> None:
    text = """
Here is the analysis you asked for.
```json
{
  "summary": "ok",
  "findings": []
}
```
Let me know if you need more.
""".strip()

    assert parse_structured(text) == {"summary": "ok", "findings": []}


def test_parse_fenced_block_skips_non_json_fences() -> None:
    text = 'Example:\n```python\nprint("{}")\n```\nResult:\n```\n{"status": "done"}\n```'

    assert parse_fenced_block(text) == {"status": "done"}


def test_parse_structured_falls_back_to_brace_span() -> None:
    text = 'The answer is {"total": 3, "items": ["a", "b", "c"]} as requested.'

    assert parse_structured(text) == {"total": 3, "items": ["a", "b", "c"]}


def test_parse_structured_falls_back_to_bracket_span() -> None:
    text = 'Findings follow: ["first", "second"] and nothing else.'

    assert parse_structured(text) == ["first", "second"]


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "plain prose without any payload",
        "{not json at all}",
        '{"unterminated": ',
        "[1, 2",
    ],
)
def test_parse_structured_returns_none_for_unstructured_text(text: str) -> None:
    assert parse_structured(text) is None


def test_parse_structured_rejects_scalar_documents() -> None:
    assert parse_structured("42") is None
    assert parse_structured('"just a string"') is None


def test_parse_structured_rejects_non_standard_constants() -> None:
    assert parse_structured('{"score": NaN}') is None
    assert parse_whole_document("[Infinity]") is None


def test_parse_structured_never_raises_on_deep_nesting() -> None:
    text = "[" * 100_000 + "]" * 100_000

    assert parse_structured(text) is None


@pytest.mark.parametrize(
    "text",
    [
        '{"a": 1, "b": [true, null, 2.5]}',
        'prefix ```json\n{"nested": {"x": "y"}}\n``` suffix',
        'noise {"k": "v"} noise',
        "noise [1, {\"z\": 0}] noise",
    ],
)
def test_parse_structured_is_idempotent(text: str) -> None:
    parsed = parse_structured(text)
    assert parsed is not None

    reparsed = parse_structured(json.dumps(parsed))

    assert reparsed == parsed


def test_brace_and_bracket_spans_only_return_their_own_shape() -> None:
    assert parse_brace_span("[1, 2]") is None
    assert parse_bracket_span('{"a": 1}') is None
    assert parse_brace_span('x {"a": [1]} y') == {"a": [1]}


def test_first_success_short_circuits_in_order() -> None:
    calls: list[str] = []

    def never(text: str) -> None:
        calls.append("never")

    def always(text: str) -> dict[str, str]:
        calls.append("always")
        return {"text": text}

    def unreachable(text: str) -> dict[str, str]:
        calls.append("unreachable")
        return {}

    assert first_success((never, always, unreachable), "input") == {"text": "input"}
    assert calls == ["never", "always"]


def test_parse_strategies_are_ordered_whole_fenced_brace_bracket() -> None:
    assert PARSE_STRATEGIES == (
        parse_whole_document,
        parse_fenced_block,
        parse_brace_span,
        parse_bracket_span,
    )
