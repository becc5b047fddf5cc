"""gemini_continue: resume a session interrupted by a timeout or truncation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from gemini_wrapper.continuation import ContinuationController
from gemini_wrapper.models import MAX_CONTINUE_ATTEMPTS
from gemini_wrapper.tools.arguments import require_str
from gemini_wrapper.tools.base import ToolContract


class ContinueTool:
    """Entry point for caller-triggered continuation; no prompt of its own."""

    contract = ToolContract(
        name="gemini_continue",
        description=(
            "Continue a Gemini operation that timed out or was truncated.\n"
            "Use when a previous gemini_* call returned needs_continue: true.\n\n"
            f"Retrieves the session and resumes from where it stopped "
            f"(max {MAX_CONTINUE_ATTEMPTS} attempts)."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "session_id": {
                    "type": "string",
                    "description": "Session ID from the previous incomplete operation",
                },
            },
            "required": ["session_id"],
        },
        default_timeout_ms=None,
    )

    def __init__(self, controller: ContinuationController) -> None:
        self.controller = controller

    @property
    def name(self) -> str:
        return self.contract.name

    async def handle(self, args: Mapping[str, Any]) -> dict[str, Any]:
        return await self.controller.resume(require_str(args, "session_id"))
