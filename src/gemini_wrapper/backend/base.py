"""Execution engine interface for delegated engine runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from gemini_wrapper.models import ErrorKind


@dataclass(slots=True)
class DelegationRequest:
    """Inputs required to run one delegated execution."""

    tool: str
    input: dict[str, Any]
    timeout_ms: int
    file_refs: tuple[str, ...] = ()
    all_files: bool = False
    session_id: str | None = None
    carry_output: str = ""


@dataclass(slots=True)
class ExecutionResult:
    """Synchronous answer to one spawn attempt, bound to the session it updated."""

    success: bool
    output: str
    session_id: str
    error: str | None = None
    needs_continue: bool = False
    error_kind: ErrorKind | None = None
    exit_code: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


class DelegatedRunner(Protocol):
    """Protocol implemented by execution engines (real or stubbed)."""

    async def execute_delegated(
        self,
        prompt: str,
        request: DelegationRequest,
    ) -> ExecutionResult:
        """Run the engine on ``prompt`` and return the classified outcome."""
