"""Caller-triggered resumption of interrupted delegated sessions.

Every resume is explicit and bounded: a session may be continued at most
``MAX_CONTINUE_ATTEMPTS`` times, each attempt with a fresh timeout. Terminal
sessions are answered from the stored record without touching it.
"""

from __future__ import annotations

import logging
from typing import Any

from gemini_wrapper.backend.base import DelegatedRunner, DelegationRequest
from gemini_wrapper.backend.cli_backend import join_outputs
from gemini_wrapper.config import Settings
from gemini_wrapper.models import MAX_CONTINUE_ATTEMPTS, ErrorKind, SessionStatus
from gemini_wrapper.output_parser import parse_structured
from gemini_wrapper.prompts import build_continuation_prompt
from gemini_wrapper.repository import SessionRepository

logger = logging.getLogger(__name__)

CONTINUE_LIMIT_SESSION_ERROR = "Maximum continue attempts reached"
CONTINUE_LIMIT_RESPONSE_ERROR = f"Maximum continue attempts ({MAX_CONTINUE_ATTEMPTS}) reached"


class ContinuationController:
    """Resume sessions stuck in ``needs_continue`` through the execution engine."""

    def __init__(
        self,
        repository: SessionRepository,
        runner: DelegatedRunner,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.runner = runner
        self.settings = settings

    async def resume(self, session_id: str) -> dict[str, Any]:
        session = self.repository.load(session_id)
        if session is None:
            return {"success": False, "error": f"Session not found: {session_id}"}

        if session.status is SessionStatus.COMPLETE:
            return {
                "success": True,
                "message": "Session already complete",
                "output": session.output,
                "session_id": session.id,
            }

        if session.status is SessionStatus.ERROR:
            return {
                "success": False,
                "error": "Session ended in error",
                "original_error": session.error,
                "session_id": session.id,
            }

        if session.status is SessionStatus.RUNNING:
            return {
                "success": False,
                "error": "Session is still running",
                "continue_count": session.continue_count,
                "session_id": session.id,
            }

        if session.continue_count >= MAX_CONTINUE_ATTEMPTS:
            logger.warning("Continuation limit reached: session_id=%s", session.id)
            self.repository.mark_error(session.id, CONTINUE_LIMIT_SESSION_ERROR)
            return {
                "success": False,
                "error": CONTINUE_LIMIT_RESPONSE_ERROR,
                "error_kind": ErrorKind.CONTINUATION_EXHAUSTED.value,
                "partial_output": session.output,
                "session_id": session.id,
            }

        previous_output = session.partial_output
        resumed = self.repository.increment_continue(session.id)
        if resumed is None:
            return {"success": False, "error": f"Session not found: {session_id}"}
        logger.info(
            "Resuming session: session_id=%s tool=%s attempt=%d/%d",
            resumed.id,
            resumed.tool,
            resumed.continue_count,
            MAX_CONTINUE_ATTEMPTS,
        )

        prompt = build_continuation_prompt(
            tool=resumed.tool,
            tool_input=resumed.input,
            previous_output=previous_output,
            tail_chars=self.settings.continue_tail_chars,
        )
        result = await self.runner.execute_delegated(
            prompt,
            DelegationRequest(
                tool=resumed.tool,
                input=resumed.input,
                timeout_ms=self.settings.continue_timeout_ms,
                session_id=resumed.id,
                carry_output=previous_output,
            ),
        )

        if result.needs_continue:
            return {
                "success": False,
                "error": "Operation still incomplete after continuation",
                "needs_continue": True,
                "continue_count": resumed.continue_count,
                "partial_output": result.output,
                "session_id": resumed.id,
            }

        if not result.success:
            response: dict[str, Any] = {
                "success": False,
                "error": result.error,
                "session_id": resumed.id,
            }
            if result.error_kind is not None:
                response["error_kind"] = result.error_kind.value
            return response

        combined = join_outputs(previous_output, result.output)
        parsed = parse_structured(combined)
        if parsed is None:
            logger.warning("Continued output is not structured: session_id=%s", resumed.id)
        return {
            "success": True,
            "output": parsed if parsed is not None else combined,
            "raw": parsed is None,
            "continue_count": resumed.continue_count,
            "session_id": resumed.id,
        }
