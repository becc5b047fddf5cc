"""gemini_research: web research and documentation lookup."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import choice, optional_int, require_str, str_list
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_research_output

DEPTHS = ("shallow", "medium", "deep")

OUTPUT_FORMAT = """Return a JSON object with this structure:
{
  "query": "the original query",
  "depth": "the depth level used",
  "findings": [
    {
      "title": "finding title",
      "content": "detailed content",
      "relevance": "high|medium|low"
    }
  ],
  "sources": ["source urls or references"],
  "summary": "executive summary of findings",
  "confidence": 0.0-1.0
}"""


@dataclass(slots=True)
class ResearchInput:
    query: str
    depth: str
    sources: tuple[str, ...]
    max_results: int


class ResearchTool(DelegatedTool):
    contract = ToolContract(
        name="gemini_research",
        description=(
            "Delegate web research and documentation lookup to Gemini (2M token context).\n"
            "Use for deep research across multiple sources, documentation analysis across "
            "frameworks and comparative analysis of technologies.\n\n"
            "Returns structured findings with sources for the caller to validate."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Research query or question to investigate",
                },
                "depth": {
                    "type": "string",
                    "enum": list(DEPTHS),
                    "description": (
                        "Research depth: shallow (quick facts), medium (analysis), "
                        "deep (comprehensive)"
                    ),
                    "default": "medium",
                },
                "sources": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific sources or domains to focus on (optional)",
                },
                "max_results": {
                    "type": "number",
                    "description": "Maximum number of findings to return",
                    "default": 10,
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["query"],
        },
        default_timeout_ms=120_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> ResearchInput:
        return ResearchInput(
            query=require_str(args, "query"),
            depth=choice(args, "depth", DEPTHS, default="medium"),
            sources=str_list(args, "sources"),
            max_results=optional_int(args, "max_results", default=10, minimum=1) or 10,
        )

    def plan(self, tool_input: ResearchInput) -> PromptPlan:
        lines = [
            "Research the following query and provide comprehensive findings:",
            "",
            f'"{tool_input.query}"',
            "",
            f"Depth level: {tool_input.depth}",
        ]
        if tool_input.sources:
            lines.append(f"Focus on these sources: {', '.join(tool_input.sources)}")
        lines.append(f"Return up to {tool_input.max_results} findings")
        return PromptPlan(task="\n".join(lines), output_format=OUTPUT_FORMAT)

    def enrich(self, tool_input: ResearchInput, parsed: dict[str, Any]) -> dict[str, Any]:
        return {"validation": validate_research_output(parsed).to_dict()}
