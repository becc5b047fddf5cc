"""Runtime configuration for the delegation layer."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SESSION_SUBDIR = Path(".claude") / "sessions"
DEFAULT_TRUNCATION_MARKER = "[Output truncated]"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(slots=True)
class Settings:
    """Settings for the engine subprocess, session storage and continuation."""

    session_dir: Path = DEFAULT_SESSION_SUBDIR
    gemini_command: tuple[str, ...] = ("gemini",)
    max_output_chars: int = 100_000
    truncation_marker: str = DEFAULT_TRUNCATION_MARKER
    continue_timeout_ms: int = 300_000
    continue_tail_chars: int = 5_000
    max_concurrent_processes: int = 0
    kill_grace_seconds: float = 2.0
    session_max_age_hours: float = 24.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, session_dir: Path | None = None) -> Settings:
        """Load settings from environment with defaults suited to a per-project checkout."""

        return cls(
            session_dir=session_dir or _resolve_session_dir(),
            gemini_command=_parse_command(os.getenv("GEMINI_WRAPPER_COMMAND", "gemini")),
            max_output_chars=int(os.getenv("GEMINI_WRAPPER_MAX_OUTPUT_CHARS", "100000")),
            truncation_marker=os.getenv(
                "GEMINI_WRAPPER_TRUNCATION_MARKER",
                DEFAULT_TRUNCATION_MARKER,
            ),
            continue_timeout_ms=int(os.getenv("GEMINI_WRAPPER_CONTINUE_TIMEOUT_MS", "300000")),
            continue_tail_chars=int(os.getenv("GEMINI_WRAPPER_CONTINUE_TAIL_CHARS", "5000")),
            max_concurrent_processes=int(
                os.getenv("GEMINI_WRAPPER_MAX_CONCURRENT_PROCESSES", "0"),
            ),
            kill_grace_seconds=float(os.getenv("GEMINI_WRAPPER_KILL_GRACE_SECONDS", "2.0")),
            session_max_age_hours=float(
                os.getenv("GEMINI_WRAPPER_SESSION_MAX_AGE_HOURS", "24"),
            ),
            log_level=os.getenv("GEMINI_WRAPPER_LOG_LEVEL", "WARNING").strip().upper(),
        )

    def validate(self) -> None:
        """Raise configuration error for values the engine cannot work with."""

        if not self.gemini_command:
            raise ValueError("GEMINI_WRAPPER_COMMAND must not be empty.")
        if self.max_output_chars <= 0:
            raise ValueError("GEMINI_WRAPPER_MAX_OUTPUT_CHARS must be > 0.")
        if not self.truncation_marker:
            raise ValueError("GEMINI_WRAPPER_TRUNCATION_MARKER must not be empty.")
        if self.continue_timeout_ms <= 0:
            raise ValueError("GEMINI_WRAPPER_CONTINUE_TIMEOUT_MS must be > 0.")
        if self.continue_tail_chars < 0:
            raise ValueError("GEMINI_WRAPPER_CONTINUE_TAIL_CHARS must be >= 0.")
        if self.max_concurrent_processes < 0:
            raise ValueError(
                "GEMINI_WRAPPER_MAX_CONCURRENT_PROCESSES must be >= 0 (0 means unlimited).",
            )
        if self.kill_grace_seconds < 0:
            raise ValueError("GEMINI_WRAPPER_KILL_GRACE_SECONDS must be >= 0.")
        if self.session_max_age_hours < 0:
            raise ValueError("GEMINI_WRAPPER_SESSION_MAX_AGE_HOURS must be >= 0.")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid GEMINI_WRAPPER_LOG_LEVEL: {self.log_level!r}")


def _resolve_session_dir() -> Path:
    configured = os.getenv("GEMINI_WRAPPER_SESSION_DIR", os.getenv("SCW_SESSION_DIR", "")).strip()
    if configured:
        return Path(configured)
    return Path.cwd() / DEFAULT_SESSION_SUBDIR


def _parse_command(value: str) -> tuple[str, ...]:
    try:
        return tuple(shlex.split(value))
    except ValueError as error:
        raise ValueError(f"Invalid GEMINI_WRAPPER_COMMAND: {value!r}") from error
