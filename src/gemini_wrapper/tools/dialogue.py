"""gemini_dialogue: a second perspective for brainstorming."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import optional_str, require_str, str_list
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_dialogue_output

OUTPUT_FORMAT = """Return a JSON object with this structure:
{
  "topic": "the discussion topic",
  "perspective": "the perspective adopted",
  "responses": [
    {
      "question": "the question",
      "response": "detailed response",
      "confidence": 0.0-1.0,
      "alternatives": ["alternative approaches"],
      "considerations": ["things to consider"]
    }
  ],
  "synthesis": "overall synthesis of the discussion",
  "recommendations": ["actionable recommendations"],
  "open_questions": ["questions that need further discussion"]
}"""


@dataclass(slots=True)
class DialogueInput:
    topic: str
    context: str
    questions: tuple[str, ...]
    perspective: str | None


class DialogueTool(DelegatedTool):
    contract = ToolContract(
        name="gemini_dialogue",
        description=(
            "Get Gemini's perspective for multi-model brainstorming.\n"
            "Use for exploring design alternatives, second opinions on architecture "
            "and validating assumptions.\n\n"
            "The caller synthesizes Gemini's responses with its own perspective."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "topic": {"type": "string", "description": "Topic or problem to discuss"},
                "context": {
                    "type": "string",
                    "description": "Background context for the discussion",
                },
                "questions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific questions to address",
                },
                "perspective": {
                    "type": "string",
                    "description": (
                        'Specific perspective to adopt (e.g., "security expert", '
                        '"performance engineer")'
                    ),
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["topic", "context", "questions"],
        },
        default_timeout_ms=120_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> DialogueInput:
        return DialogueInput(
            topic=require_str(args, "topic"),
            context=require_str(args, "context"),
            questions=str_list(args, "questions", required=True),
            perspective=optional_str(args, "perspective"),
        )

    def plan(self, tool_input: DialogueInput) -> PromptPlan:
        questions = "\n".join(
            f"{number}. {question}" for number, question in enumerate(tool_input.questions, 1)
        )
        sections = [
            "You are participating in a brainstorming dialogue about:",
            f"## Topic\n{tool_input.topic}",
            f"## Context\n{tool_input.context}",
        ]
        if tool_input.perspective:
            sections.append(
                f"## Your Perspective\nAdopt the perspective of: {tool_input.perspective}",
            )
        sections.append(f"## Questions to Address\n{questions}")
        sections.append(
            "Provide thoughtful, detailed responses to each question.\n"
            "Consider trade-offs, alternatives, and potential issues.\n"
            "Be specific and actionable in your recommendations.",
        )
        return PromptPlan(task="\n\n".join(sections), output_format=OUTPUT_FORMAT)

    def enrich(self, tool_input: DialogueInput, parsed: dict[str, Any]) -> dict[str, Any]:
        return {
            "average_confidence": average_confidence(parsed.get("responses")),
            "validation": validate_dialogue_output(parsed).to_dict(),
        }


def average_confidence(responses: object) -> float | None:
    """Mean of numeric per-response confidences, or None when there are none."""

    if not isinstance(responses, list):
        return None
    scores = [
        float(item["confidence"])
        for item in responses
        if isinstance(item, Mapping)
        and isinstance(item.get("confidence"), (int, float))
        and not isinstance(item.get("confidence"), bool)
    ]
    if not scores:
        return None
    return sum(scores) / len(scores)
