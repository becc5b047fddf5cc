"""gemini_analyze: architecture, pattern and risk analysis of a codebase."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import choice, require_str
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_analysis_output

DEPTHS = ("shallow", "medium", "deep")
FOCUS_INSTRUCTIONS = {
    "architecture": "Focus on architectural patterns, layers, and component relationships",
    "patterns": "Focus on code patterns, design patterns, and anti-patterns",
    "dependencies": "Focus on dependencies, imports, and module relationships",
    "security": "Focus on security vulnerabilities, input validation, and auth patterns",
    "performance": (
        "Focus on performance bottlenecks, optimization opportunities, and efficiency"
    ),
    "all": "Provide comprehensive analysis across all areas",
}
SEVERITIES = ("critical", "high", "medium", "low", "info")


@dataclass(slots=True)
class AnalyzeInput:
    path: str
    depth: str
    focus: str


class AnalyzeTool(DelegatedTool):
    contract = ToolContract(
        name="gemini_analyze",
        description=(
            "Deep codebase analysis using Gemini's 2M token context.\n"
            "Use for understanding large codebase architecture, finding patterns and "
            "anti-patterns, security review and performance bottleneck identification.\n\n"
            "Returns structured analysis with actionable recommendations."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to analyze (file or directory)",
                },
                "depth": {
                    "type": "string",
                    "enum": list(DEPTHS),
                    "description": "Analysis depth",
                    "default": "medium",
                },
                "focus": {
                    "type": "string",
                    "enum": list(FOCUS_INSTRUCTIONS),
                    "description": "Analysis focus area",
                    "default": "all",
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["path"],
        },
        default_timeout_ms=300_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> AnalyzeInput:
        return AnalyzeInput(
            path=require_str(args, "path"),
            depth=choice(args, "depth", DEPTHS, default="medium"),
            focus=choice(args, "focus", tuple(FOCUS_INSTRUCTIONS), default="all"),
        )

    def plan(self, tool_input: AnalyzeInput) -> PromptPlan:
        task = "\n".join(
            [
                f"Perform {tool_input.depth} analysis of: {tool_input.path}",
                "",
                FOCUS_INSTRUCTIONS[tool_input.focus],
                "",
                "Analyze:",
                "1. Overall architecture and structure",
                "2. Code patterns and conventions",
                "3. Dependencies and coupling",
                "4. Potential issues and risks",
                "5. Opportunities for improvement",
                "",
                "Be specific with file locations and code references.",
            ],
        )
        output_format = (
            "Return a JSON object with this structure:\n"
            "{\n"
            '  "path": "analyzed path",\n'
            f'  "depth": "{tool_input.depth}",\n'
            f'  "focus": "{tool_input.focus}",\n'
            '  "summary": "executive summary of the analysis",\n'
            '  "architecture": {\n'
            '    "layers": ["identified architectural layers"],\n'
            '    "components": [\n'
            "      {\n"
            '        "name": "component name",\n'
            '        "purpose": "what it does",\n'
            '        "dependencies": ["what it depends on"]\n'
            "      }\n"
            "    ],\n"
            '    "patterns": ["design patterns identified"]\n'
            "  },\n"
            '  "findings": [\n'
            "    {\n"
            '      "category": "security|performance|architecture|quality",\n'
            '      "severity": "critical|high|medium|low|info",\n'
            '      "title": "finding title",\n'
            '      "description": "detailed description",\n'
            '      "location": "file:line or component",\n'
            '      "recommendation": "how to address"\n'
            "    }\n"
            "  ],\n"
            '  "metrics": {\n'
            '    "total_files": number,\n'
            '    "total_lines": number,\n'
            '    "complexity_score": 0-100\n'
            "  },\n"
            '  "recommendations": [\n'
            "    {\n"
            '      "priority": "high|medium|low",\n'
            '      "title": "recommendation title",\n'
            '      "description": "detailed recommendation",\n'
            '      "effort": "low|medium|high"\n'
            "    }\n"
            "  ]\n"
            "}"
        )
        file_ref = f"{tool_input.path.rstrip('/')}/"
        return PromptPlan(task=task, output_format=output_format, file_refs=(file_ref,))

    def enrich(self, tool_input: AnalyzeInput, parsed: dict[str, Any]) -> dict[str, Any]:
        return {
            "findings_summary": summarize_findings(parsed.get("findings")),
            "validation": validate_analysis_output(parsed).to_dict(),
        }


def summarize_findings(findings: object) -> dict[str, int]:
    """Count findings per severity; unknown severities are not counted."""

    summary = dict.fromkeys(SEVERITIES, 0)
    if not isinstance(findings, list):
        return summary
    for finding in findings:
        if isinstance(finding, Mapping) and finding.get("severity") in summary:
            summary[finding["severity"]] += 1
    return summary
