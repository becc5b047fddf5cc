"""gemini_document: documentation generation with section completeness checks."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import choice, optional_bool, require_str, str_list
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_document_output

FORMATS = ("markdown", "jsdoc", "readme", "api")
DEFAULT_REQUIRED_SECTIONS = ("Overview", "Usage", "API")

_EXAMPLES_SHAPE = """,
  "examples": [
    {
      "title": "example title",
      "code": "example code",
      "description": "what this example demonstrates"
    }
  ]"""


@dataclass(slots=True)
class DocumentInput:
    scope: str
    format: str
    sections: tuple[str, ...]
    include_examples: bool


class DocumentTool(DelegatedTool):
    contract = ToolContract(
        name="gemini_document",
        description=(
            "Generate documentation using Gemini's large context.\n"
            "Use for documenting large codebases, API references, README files "
            "and architectural docs.\n\n"
            "Returns structured documentation with completeness validation."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "scope": {
                    "type": "string",
                    "description": "Scope of documentation (file, directory, or project)",
                },
                "format": {
                    "type": "string",
                    "enum": list(FORMATS),
                    "description": "Documentation format to generate",
                },
                "sections": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific sections to include",
                },
                "include_examples": {
                    "type": "boolean",
                    "description": "Include usage examples",
                    "default": True,
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["scope", "format"],
        },
        default_timeout_ms=180_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> DocumentInput:
        return DocumentInput(
            scope=require_str(args, "scope"),
            format=choice(args, "format", FORMATS),
            sections=str_list(args, "sections"),
            include_examples=optional_bool(args, "include_examples", default=True),
        )

    def plan(self, tool_input: DocumentInput) -> PromptPlan:
        requested = ", ".join(tool_input.sections) or "all relevant sections"
        task = "\n".join(
            [
                f"Generate comprehensive {tool_input.format} documentation for: "
                f"{tool_input.scope}",
                "",
                f"Include these sections: {requested}",
                "Include practical usage examples"
                if tool_input.include_examples
                else "Focus on reference documentation only",
                "",
                "Analyze the code thoroughly and create documentation that:",
                "1. Explains the purpose and architecture",
                "2. Documents all public APIs",
                "3. Provides clear usage instructions",
                "4. Includes code examples where helpful",
                "5. Notes any important considerations or gotchas",
            ],
        )
        output_format = (
            "Return a JSON object with this structure:\n"
            "{\n"
            '  "scope": "what was documented",\n'
            f'  "format": "{tool_input.format}",\n'
            f'  "content": "the full documentation content in {tool_input.format} format",\n'
            '  "sections": [\n'
            "    {\n"
            '      "title": "section title",\n'
            '      "content": "section content"\n'
            "    }\n"
            "  ],\n"
            '  "completeness": {\n'
            '    "sections_covered": ["list of sections included"],\n'
            '    "sections_missing": ["sections that couldn\'t be documented"],\n'
            '    "score": 0-100\n'
            "  }"
            f"{_EXAMPLES_SHAPE if tool_input.include_examples else ''}\n"
            "}"
        )
        return PromptPlan(task=task, output_format=output_format, file_refs=(tool_input.scope,))

    def enrich(self, tool_input: DocumentInput, parsed: dict[str, Any]) -> dict[str, Any]:
        required = tool_input.sections or DEFAULT_REQUIRED_SECTIONS
        return {"validation": validate_document_output(parsed, required).to_dict()}
