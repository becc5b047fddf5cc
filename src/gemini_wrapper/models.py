"""Domain models for delegated sessions and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

MAX_CONTINUE_ATTEMPTS = 5


class SessionStatus(str, Enum):
    """Durable session lifecycle states."""

    RUNNING = "running"
    NEEDS_CONTINUE = "needs_continue"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETE, SessionStatus.ERROR})

ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.RUNNING: frozenset(
        {SessionStatus.NEEDS_CONTINUE, SessionStatus.COMPLETE, SessionStatus.ERROR},
    ),
    SessionStatus.NEEDS_CONTINUE: frozenset(
        {SessionStatus.RUNNING, SessionStatus.COMPLETE, SessionStatus.ERROR},
    ),
    SessionStatus.COMPLETE: frozenset(),
    SessionStatus.ERROR: frozenset(),
}


class ErrorKind(str, Enum):
    """Outcome taxonomy for one delegated execution."""

    SPAWN_FAILURE = "spawn_failure"
    EXIT_FAILURE = "exit_failure"
    TIMEOUT_RECOVERABLE = "timeout_recoverable"
    TIMEOUT_FATAL = "timeout_fatal"
    CONTINUATION_EXHAUSTED = "continuation_exhausted"


class FailureClass(str, Enum):
    """Normalized causes of a non-zero engine exit."""

    BILLING_OR_QUOTA = "billing_or_quota"
    ACCESS_OR_AUTH = "access_or_auth"
    MODEL_NOT_AVAILABLE = "model_not_available"
    RATE_LIMITED = "rate_limited"
    BACKEND_TRANSIENT = "backend_transient"
    BACKEND_NON_RETRYABLE = "backend_non_retryable"


class SessionTransitionError(RuntimeError):
    """Raised when a write would break the session state machine."""


@dataclass(slots=True)
class GeminiSession:
    """Durable record of one delegated task."""

    id: str
    tool: str
    status: SessionStatus
    input: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    continue_count: int = 0
    output: dict[str, Any] | None = None
    error: str | None = None

    @property
    def partial_output(self) -> str:
        """Raw text captured so far, regardless of how the output was recorded."""

        if not self.output:
            return ""
        for key in ("partial_output", "output"):
            value = self.output.get(key)
            if isinstance(value, str):
                return value
        return ""

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "tool": self.tool,
            "status": self.status.value,
            "input": self.input,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "continue_count": self.continue_count,
        }
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> GeminiSession:
        """Deserialize and validate a stored session record."""

        session_id = raw.get("id")
        tool = raw.get("tool")
        session_input = raw.get("input")
        output = raw.get("output")
        error = raw.get("error")
        continue_count = raw.get("continue_count", 0)
        if not isinstance(session_id, str) or not session_id:
            raise ValueError("session.id must be a non-empty string")
        if not isinstance(tool, str) or not tool:
            raise ValueError("session.tool must be a non-empty string")
        if not isinstance(session_input, dict):
            raise TypeError("session.input must be an object")
        if output is not None and not isinstance(output, dict):
            raise TypeError("session.output must be an object when provided")
        if error is not None and not isinstance(error, str):
            raise TypeError("session.error must be a string when provided")
        if (
            isinstance(continue_count, bool)
            or not isinstance(continue_count, int)
            or not 0 <= continue_count <= MAX_CONTINUE_ATTEMPTS
        ):
            raise ValueError(
                f"session.continue_count must be an integer in 0..{MAX_CONTINUE_ATTEMPTS}",
            )
        return cls(
            id=session_id,
            tool=tool,
            status=SessionStatus(raw.get("status")),
            input=session_input,
            created_at=from_iso(str(raw.get("created_at"))),
            updated_at=from_iso(str(raw.get("updated_at"))),
            continue_count=continue_count,
            output=output,
            error=error,
        )


@dataclass(slots=True)
class ValidationResult:
    """Structural check outcome: errors flag missing critical fields, warnings never block."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def from_iso(value: str) -> datetime:
    """Parse ISO datetime and ensure timezone-aware UTC fallback."""

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
