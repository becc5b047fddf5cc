"""gemini_test: test execution reports and generation of missing tests."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.tools.arguments import choice, optional_bool, optional_number, require_str
from gemini_wrapper.tools.base import DelegatedTool, PromptPlan, ToolContract
from gemini_wrapper.validator import validate_test_output

TEST_TYPES = ("unit", "integration", "e2e", "all")

_GENERATED_TESTS_SHAPE = """  "generated_tests": [
    {
      "path": "path/to/test_module.py",
      "content": "test file content",
      "description": "what this test covers"
    }
  ],
"""


@dataclass(slots=True)
class TestInput:
    __test__ = False

    test_type: str
    scope: str
    coverage_threshold: float
    generate_missing: bool


class TestTool(DelegatedTool):
    __test__ = False

    contract = ToolContract(
        name="gemini_test",
        description=(
            "Execute or generate tests using Gemini's large context.\n"
            "Use for large test suites, generating tests for multiple files and "
            "analyzing coverage gaps.\n\n"
            "Returns structured test results with pass/fail details."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "test_type": {
                    "type": "string",
                    "enum": list(TEST_TYPES),
                    "description": "Type of tests to run or generate",
                },
                "scope": {
                    "type": "string",
                    "description": "Scope of testing (file path, directory, or feature name)",
                },
                "coverage_threshold": {
                    "type": "number",
                    "description": "Minimum coverage percentage required",
                    "default": 80,
                },
                "generate_missing": {
                    "type": "boolean",
                    "description": "Generate tests for uncovered code",
                    "default": False,
                },
                "timeout_ms": {"type": "number", "description": "Override the default timeout"},
            },
            "required": ["test_type", "scope"],
        },
        default_timeout_ms=300_000,
    )

    def narrow(self, args: Mapping[str, Any]) -> TestInput:
        return TestInput(
            test_type=choice(args, "test_type", TEST_TYPES),
            scope=require_str(args, "scope"),
            coverage_threshold=optional_number(
                args,
                "coverage_threshold",
                default=80,
                minimum=0,
                maximum=100,
            ),
            generate_missing=optional_bool(args, "generate_missing", default=False),
        )

    def plan(self, tool_input: TestInput) -> PromptPlan:
        generate = tool_input.generate_missing
        threshold = f"{tool_input.coverage_threshold:g}"
        task = "\n".join(
            [
                f"Analyze and {'generate tests for' if generate else 'execute tests in'}: "
                f"{tool_input.scope}",
                "",
                f"Test type: {tool_input.test_type}",
                f"Coverage threshold: {threshold}%",
                "Generate missing tests for uncovered code"
                if generate
                else "Report test execution results",
                "",
                "Analyze the code structure and:",
                "1. Identify all testable units",
                f"2. {'Generate comprehensive tests' if generate else 'Run existing tests'}",
                "3. Calculate code coverage",
                "4. Provide recommendations for improving test quality",
            ],
        )
        output_format = (
            "Return a JSON object with this structure:\n"
            "{\n"
            f'  "test_type": "{tool_input.test_type}",\n'
            '  "scope": "the scope analyzed",\n'
            '  "total": number,\n'
            '  "passed": number,\n'
            '  "failed": number,\n'
            '  "skipped": number,\n'
            '  "coverage": 0-100,\n'
            '  "results": [\n'
            "    {\n"
            '      "name": "test name",\n'
            '      "status": "pass|fail|skip",\n'
            '      "duration_ms": number,\n'
            '      "error": "error message if failed"\n'
            "    }\n"
            "  ],\n"
            '  "failures": [\n'
            "    {\n"
            '      "test": "failed test name",\n'
            '      "error": "error description",\n'
            '      "stack": "stack trace"\n'
            "    }\n"
            "  ],\n"
            f"{_GENERATED_TESTS_SHAPE if generate else ''}"
            '  "recommendations": ["suggestions for improving tests"]\n'
            "}"
        )
        return PromptPlan(task=task, output_format=output_format, file_refs=(tool_input.scope,))

    def enrich(self, tool_input: TestInput, parsed: dict[str, Any]) -> dict[str, Any]:
        coverage = parsed.get("coverage")
        meets_threshold: bool | None = None
        if isinstance(coverage, (int, float)) and not isinstance(coverage, bool):
            meets_threshold = coverage >= tool_input.coverage_threshold
        return {
            "meets_coverage_threshold": meets_threshold,
            "validation": validate_test_output(parsed).to_dict(),
        }
