"""Prompt assembly for the reasoning engine."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

CONTINUATION_OUTPUT_FORMAT = (
    "Continue in the same format as the previous output. "
    "If JSON, maintain the same structure."
)


def build_prompt(
    task: str,
    context: Mapping[str, Any],
    output_format: str | None = None,
) -> str:
    """Render Task, Context and Output Format sections in a fixed order.

    Context entries keep their insertion order. Strings are written as-is,
    anything else becomes an indented JSON block under its key.
    """

    prompt = f"# Task\n{task}\n\n"

    if context:
        prompt += "# Context\n"
        for key, value in context.items():
            if isinstance(value, str):
                prompt += f"## {key}\n{value}\n\n"
            else:
                rendered = json.dumps(value, indent=2, ensure_ascii=False, default=str)
                prompt += f"## {key}\n```json\n{rendered}\n```\n\n"

    if output_format:
        prompt += f"# Output Format\n{output_format}\n"

    return prompt


def build_continuation_prompt(
    *,
    tool: str,
    tool_input: Mapping[str, Any],
    previous_output: str,
    tail_chars: int,
) -> str:
    """Prompt asking the engine to pick up an interrupted task where it stopped."""

    if previous_output and tail_chars > 0:
        tail = previous_output[-tail_chars:]
    else:
        tail = "No previous output captured"
    rendered_input = json.dumps(dict(tool_input), indent=2, ensure_ascii=False, default=str)
    task = (
        "Continue the previous operation that was interrupted.\n"
        "\n"
        "## Original Task\n"
        f"Tool: {tool}\n"
        f"Input: {rendered_input}\n"
        "\n"
        "## Previous Output (continue from here)\n"
        f"{tail}\n"
        "\n"
        "Continue the operation from where it left off.\n"
        "Maintain consistency with the previous output format."
    )
    return build_prompt(task, {}, CONTINUATION_OUTPUT_FORMAT)
