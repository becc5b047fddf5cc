"""Shared delegation flow for tool handlers.

Every handler narrows raw arguments, renders a prompt with a literal output
shape, runs the engine, then parses and validates what came back. Parse
failures degrade to a raw-text success; validation only attaches warnings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from gemini_wrapper.backend.base import DelegatedRunner, DelegationRequest, ExecutionResult
from gemini_wrapper.output_parser import parse_structured
from gemini_wrapper.prompts import build_prompt
from gemini_wrapper.tools.arguments import timeout_ms

logger = logging.getLogger(__name__)

RAW_OUTPUT_WARNING = "Could not parse structured output - returning raw"


@dataclass(frozen=True, slots=True)
class ToolContract:
    """Static description of one tool: name, input schema and default timeout."""

    name: str
    description: str
    input_schema: dict[str, Any]
    default_timeout_ms: int | None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
        if self.default_timeout_ms is not None:
            payload["default_timeout_ms"] = self.default_timeout_ms
        return payload


class ToolHandler(Protocol):
    """Anything the dispatcher can route a tool call to."""

    contract: ToolContract

    @property
    def name(self) -> str: ...

    async def handle(self, args: Mapping[str, Any]) -> dict[str, Any]: ...


@dataclass(slots=True)
class PromptPlan:
    """Prompt pieces and engine inputs derived from one narrowed call."""

    task: str
    output_format: str
    file_refs: tuple[str, ...] = ()
    context: dict[str, Any] = field(default_factory=dict)


class DelegatedTool:
    """Base handler: subclasses supply ``contract``, ``narrow``, ``plan`` and ``enrich``."""

    contract: ToolContract

    def __init__(self, runner: DelegatedRunner) -> None:
        self.runner = runner

    @property
    def name(self) -> str:
        return self.contract.name

    def narrow(self, args: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    def plan(self, tool_input: Any) -> PromptPlan:
        raise NotImplementedError

    def enrich(self, tool_input: Any, parsed: dict[str, Any]) -> dict[str, Any]:
        """Validation block and derived fields merged into a parsed response."""

        return {}

    async def handle(self, args: Mapping[str, Any]) -> dict[str, Any]:
        tool_input = self.narrow(args)
        requested_timeout = timeout_ms(args)
        plan = self.plan(tool_input)
        prompt = build_prompt(plan.task, plan.context, plan.output_format)

        result = await self.runner.execute_delegated(
            prompt,
            DelegationRequest(
                tool=self.name,
                input=dict(args),
                timeout_ms=requested_timeout or self.contract.default_timeout_ms or 0,
                file_refs=plan.file_refs,
            ),
        )
        if not result.success:
            return failure_response(result)

        parsed = parse_structured(result.output)
        if not isinstance(parsed, dict):
            logger.warning(
                "Engine output not structured: tool=%s session_id=%s parsed_type=%s",
                self.name,
                result.session_id,
                type(parsed).__name__,
            )
            response: dict[str, Any] = {
                "success": True,
                "raw_output": result.output,
                "warning": RAW_OUTPUT_WARNING,
            }
        else:
            response = {"success": True, **parsed}
            response.update(self.enrich(tool_input, parsed))

        if result.needs_continue:
            response["needs_continue"] = True
        response["session_id"] = result.session_id
        return response


def failure_response(result: ExecutionResult) -> dict[str, Any]:
    """Error payload carrying the session id so callers can resume."""

    response: dict[str, Any] = {
        "success": False,
        "error": result.error,
        "session_id": result.session_id,
        "needs_continue": result.needs_continue,
    }
    if result.error_kind is not None:
        response["error_kind"] = result.error_kind.value
    failure_class = result.details.get("failure_class")
    if failure_class is not None:
        response["failure_class"] = failure_class
    return response
