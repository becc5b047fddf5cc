"""Structural checks for parsed engine results.

Validation trusts content quality and only checks shape: errors mark missing
critical fields, warnings flag optional gaps and out-of-range scores. Neither
blocks a successful tool response.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from gemini_wrapper.models import ValidationResult

_FENCE_LINE = re.compile(r"^[ \t]*```", re.MULTILINE)


def validate_scope(output: Mapping[str, Any], expected_keys: Iterable[str]) -> ValidationResult:
    expected = list(expected_keys)
    errors = [f"Missing expected key: {key}" for key in expected if key not in output]
    warnings = [
        f"Unexpected key in output: {key}"
        for key in output
        if key not in expected and key != "metadata"
    ]
    return _result(errors, warnings)


def validate_file_list(
    output: Mapping[str, Any],
    requested_paths: Iterable[str],
    *,
    key: str = "files",
) -> ValidationResult:
    """Check that every requested path shows up in the output's file list."""

    files = output.get(key)
    if not isinstance(files, list):
        return _result([f"Output missing {key} array"], [])

    output_paths = {
        item.get("path")
        for item in files
        if isinstance(item, Mapping) and isinstance(item.get("path"), str)
    }
    warnings = [
        f"Requested file not in output: {path}"
        for path in requested_paths
        if path not in output_paths
    ]
    return _result([], warnings)


def validate_code_blocks(content: str) -> ValidationResult:
    """Check fenced code blocks are balanced and flag unimplemented placeholders."""

    errors: list[str] = []
    warnings: list[str] = []

    # Fences alternate open/close, so an odd count means one block never closed.
    fences = len(_FENCE_LINE.findall(content))
    starts, ends = (fences + 1) // 2, fences // 2
    if starts != ends:
        errors.append(f"Unbalanced code blocks: {starts} starts, {ends} ends")

    if "TODO: implement" in content and "Implementation" not in content:
        warnings.append("Contains placeholder TODOs without implementation")

    return _result(errors, warnings)


def validate_research_output(output: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    findings = output.get("findings")
    sources = output.get("sources")
    if not isinstance(findings, list):
        errors.append("Research output missing findings array")
    if not isinstance(sources, list):
        warnings.append("Research output missing sources - cannot verify claims")
    if isinstance(findings, list) and isinstance(sources, list) and findings and not sources:
        warnings.append("Findings present but no sources cited")

    warnings.extend(_range_warnings(output, "confidence", 0.0, 1.0))
    return _result(errors, warnings)


def validate_test_output(output: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    passed = output.get("passed")
    failed = output.get("failed")
    if not _is_number(passed) and not _is_number(failed):
        errors.append("Test output missing pass/fail counts")

    if _is_number(failed) and failed > 0 and not isinstance(output.get("failures"), list):
        warnings.append("Failed tests reported but no failure details provided")

    warnings.extend(_range_warnings(output, "coverage", 0, 100))
    return _result(errors, warnings)


def validate_document_output(
    output: Mapping[str, Any],
    required_sections: Iterable[str],
) -> ValidationResult:
    content = output.get("content")
    if not isinstance(content, str) or not content:
        return _result(["Document output missing content"], [])

    warnings: list[str] = []
    for section in required_sections:
        pattern = re.compile(rf"^#+\s*{re.escape(section)}", re.IGNORECASE | re.MULTILINE)
        if not pattern.search(content):
            warnings.append(f"Missing section: {section}")

    completeness = output.get("completeness")
    if isinstance(completeness, Mapping):
        warnings.extend(_range_warnings(completeness, "score", 0, 100, label="completeness.score"))
    return _result([], warnings)


def validate_analysis_output(output: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not output.get("summary"):
        errors.append("Analysis output missing summary")
    if not output.get("recommendations") and not output.get("findings"):
        warnings.append("Analysis lacks actionable recommendations or findings")

    metrics = output.get("metrics")
    if isinstance(metrics, Mapping):
        warnings.extend(
            _range_warnings(metrics, "complexity_score", 0, 100, label="metrics.complexity_score"),
        )
    return _result(errors, warnings)


def validate_dialogue_output(output: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    responses = output.get("responses")
    if not isinstance(responses, list):
        errors.append("Dialogue output missing responses array")
        responses = []
    elif not responses:
        warnings.append("Dialogue output contains no responses")

    for index, response in enumerate(responses):
        if not isinstance(response, Mapping):
            warnings.append(f"responses[{index}] is not an object")
            continue
        warnings.extend(
            _range_warnings(
                response,
                "confidence",
                0.0,
                1.0,
                label=f"responses[{index}].confidence",
            ),
        )

    if not output.get("synthesis"):
        warnings.append("Dialogue output missing synthesis")
    return _result(errors, warnings)


def combine_validations(*results: ValidationResult) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    for result in results:
        errors.extend(result.errors)
        warnings.extend(result.warnings)
    return _result(errors, warnings)


def _result(errors: list[str], warnings: list[str]) -> ValidationResult:
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _range_warnings(
    container: Mapping[str, Any],
    key: str,
    low: float,
    high: float,
    *,
    label: str | None = None,
) -> list[str]:
    value = container.get(key)
    if value is None:
        return []
    name = label or key
    if not _is_number(value):
        return [f"{name} is not a number: {value!r}"]
    if not low <= value <= high:
        return [f"{name} out of range {low}..{high}: {value}"]
    return []
