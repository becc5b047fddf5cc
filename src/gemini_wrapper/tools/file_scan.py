"""gemini_file_scan: summaries and structure of large directories."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import optional_bool, optional_int, optional_str, require_str
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_file_list

OUTPUT_FORMAT = """Return a JSON object with this structure:
{
  "path": "scanned path",
  "total_files": number,
  "files": [
    {
      "path": "relative/file/path.py",
      "type": "python|typescript|javascript|etc",
      "size_estimate": "small|medium|large",
      "summary": "brief description of file purpose",
      "exports": ["exported symbols"],
      "imports": ["imported modules"]
    }
  ],
  "structure": {
    "directories": ["list of directories"],
    "patterns_found": ["naming conventions", "file organization patterns"]
  },
  "recommendations": ["suggestions for navigating this codebase"]
}"""


@dataclass(slots=True)
class FileScanInput:
    path: str
    pattern: str | None
    max_files: int
    include_content: bool
    recursive: bool

    @property
    def file_ref(self) -> str:
        return f"{self.path.rstrip('/')}/" if self.recursive else self.path


class FileScanTool(DelegatedTool):
    contract = ToolContract(
        name="gemini_file_scan",
        description=(
            "Scan large directories (>10 files) using Gemini's 2M token context.\n"
            "Use for scanning directories with many files, understanding codebase "
            "structure and initial project exploration.\n\n"
            "Returns file summaries and structure analysis."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory path to scan (relative to project root)",
                },
                "pattern": {
                    "type": "string",
                    "description": 'File pattern to match (e.g., "*.py", "**/*.ts")',
                },
                "max_files": {
                    "type": "number",
                    "description": "Maximum number of files to analyze",
                    "default": 50,
                },
                "include_content": {
                    "type": "boolean",
                    "description": "Include file content summaries",
                    "default": True,
                },
                "recursive": {
                    "type": "boolean",
                    "description": "Scan subdirectories recursively",
                    "default": True,
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["path"],
        },
        default_timeout_ms=180_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> FileScanInput:
        return FileScanInput(
            path=require_str(args, "path"),
            pattern=optional_str(args, "pattern"),
            max_files=optional_int(args, "max_files", default=50, minimum=1) or 50,
            include_content=optional_bool(args, "include_content", default=True),
            recursive=optional_bool(args, "recursive", default=True),
        )

    def plan(self, tool_input: FileScanInput) -> PromptPlan:
        lines = [f"Scan and analyze the directory structure at: {tool_input.path}", ""]
        if tool_input.pattern:
            lines.append(f"Focus on files matching: {tool_input.pattern}")
        lines.append(f"Analyze up to {tool_input.max_files} files")
        lines.append(
            "Include content summaries for each file"
            if tool_input.include_content
            else "Only list file metadata",
        )
        lines.extend(
            [
                "",
                "Provide a comprehensive analysis of:",
                "1. All files found",
                "2. Directory structure",
                "3. Code patterns and conventions",
                "4. Dependencies and imports",
                "5. Recommendations for understanding the codebase",
            ],
        )
        return PromptPlan(
            task="\n".join(lines),
            output_format=OUTPUT_FORMAT,
            file_refs=(tool_input.file_ref,),
        )

    def enrich(self, tool_input: FileScanInput, parsed: dict[str, Any]) -> dict[str, Any]:
        return {"validation": validate_file_list(parsed, [tool_input.path]).to_dict()}
