"""gemini_generate: multi-file code generation with file and fence checks."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import ToolInputError, optional_str, require_str, str_mapping
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_code_blocks, validate_file_list

OUTPUT_FORMAT = """Return a JSON object with this structure:
{
  "spec": "brief summary of the spec",
  "generated_files": [
    {
      "path": "path/to/file.py",
      "content": "full file content",
      "language": "python",
      "description": "what this file does"
    }
  ],
  "summary": "overview of what was generated",
  "dependencies_added": ["any new dependencies needed"],
  "notes": ["implementation notes or warnings"]
}"""


@dataclass(slots=True)
class RequestedFile:
    path: str
    description: str


@dataclass(slots=True)
class GenerateInput:
    spec: str
    files: tuple[RequestedFile, ...]
    templates: dict[str, str]
    style_guide: str | None


class GenerateTool(DelegatedTool):
    contract = ToolContract(
        name="gemini_generate",
        description=(
            "Generate multiple files (>5) using Gemini's large context.\n"
            "Use for scaffolding features that span several files, generating "
            "boilerplate across components and bulk file creation from templates.\n\n"
            "The caller validates syntax and pattern compliance before accepting."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "spec": {
                    "type": "string",
                    "description": "Specification describing what to generate",
                },
                "files": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "path": {"type": "string", "description": "Target file path"},
                            "description": {
                                "type": "string",
                                "description": "What this file should contain",
                            },
                        },
                        "required": ["path", "description"],
                    },
                    "description": "List of files to generate",
                },
                "templates": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                    "description": "Template patterns to follow (optional)",
                },
                "style_guide": {
                    "type": "string",
                    "description": "Coding style guidelines to follow",
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["spec", "files"],
        },
        default_timeout_ms=300_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> GenerateInput:
        return GenerateInput(
            spec=require_str(args, "spec"),
            files=_requested_files(args.get("files")),
            templates=str_mapping(args, "templates"),
            style_guide=optional_str(args, "style_guide"),
        )

    def plan(self, tool_input: GenerateInput) -> PromptPlan:
        file_list = "\n".join(f"- {item.path}: {item.description}" for item in tool_input.files)
        sections = [
            "Generate the following files based on this specification:",
            f"## Specification\n{tool_input.spec}",
            f"## Files to Generate\n{file_list}",
        ]
        if tool_input.style_guide:
            sections.append(f"## Style Guide\n{tool_input.style_guide}")
        if tool_input.templates:
            sections.append(
                f"## Templates to Follow\n{json.dumps(tool_input.templates, indent=2)}",
            )
        sections.append(
            "Generate complete, production-ready code for each file.\n"
            "Follow best practices and the provided style guide.\n"
            "Include proper imports, exports, and documentation.",
        )
        return PromptPlan(task="\n\n".join(sections), output_format=OUTPUT_FORMAT)

    def enrich(self, tool_input: GenerateInput, parsed: dict[str, Any]) -> dict[str, Any]:
        generated = parsed.get("generated_files")
        generated_files = generated if isinstance(generated, list) else []
        file_validation = validate_file_list(
            {"files": generated} if isinstance(generated, list) else {},
            [item.path for item in tool_input.files],
        )

        code_results = [
            validate_code_blocks(item["content"])
            for item in generated_files
            if isinstance(item, Mapping) and isinstance(item.get("content"), str)
        ]
        return {
            "validation": {
                "files": file_validation.to_dict(),
                "code": {
                    "valid": all(result.valid for result in code_results),
                    "errors": [error for result in code_results for error in result.errors],
                    "warnings": [
                        warning for result in code_results for warning in result.warnings
                    ],
                },
            },
        }


def _requested_files(value: object) -> tuple[RequestedFile, ...]:
    if not isinstance(value, list) or not value:
        raise ToolInputError("files must be a non-empty array of {path, description} objects")
    requested: list[RequestedFile] = []
    for index, item in enumerate(value):
        if not isinstance(item, Mapping):
            raise ToolInputError(f"files[{index}] must be an object")
        path = item.get("path")
        description = item.get("description")
        if not isinstance(path, str) or not path.strip():
            raise ToolInputError(f"files[{index}].path must be a non-empty string")
        if not isinstance(description, str):
            raise ToolInputError(f"files[{index}].description must be a string")
        requested.append(RequestedFile(path=path, description=description))
    return tuple(requested)
