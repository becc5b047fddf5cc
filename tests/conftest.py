"""Shared test fixtures."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import pytest

from gemini_wrapper.backend.base import DelegationRequest, ExecutionResult
from gemini_wrapper.config import Settings
from gemini_wrapper.repository import SessionRepository

ECHO_AGENT_COMMAND = (sys.executable, "-m", "gemini_wrapper.backend.echo_agent")


def echo_command(*extra: str) -> tuple[str, ...]:
    """Engine command running the local echo agent with extra options."""

    return (*ECHO_AGENT_COMMAND, *extra)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        session_dir=tmp_path / "sessions",
        gemini_command=ECHO_AGENT_COMMAND,
        kill_grace_seconds=0.5,
    )


@pytest.fixture()
def repository(settings: Settings) -> SessionRepository:
    return SessionRepository(settings.session_dir)


@pytest.fixture()
def echo_agent(monkeypatch):
    """Monkeypatch Settings.from_env to run the echo agent instead of the real engine."""

    original_from_env = Settings.from_env

    def _patched_from_env(session_dir=None):
        settings = original_from_env(session_dir=session_dir)
        return replace(settings, gemini_command=ECHO_AGENT_COMMAND)

    monkeypatch.setattr(Settings, "from_env", staticmethod(_patched_from_env))


@dataclass(slots=True)
class StubRunner:
    """Runner double that records requests and replays canned results."""

    results: list[ExecutionResult] = field(default_factory=list)
    calls: list[tuple[str, DelegationRequest]] = field(default_factory=list)

    async def execute_delegated(
        self,
        prompt: str,
        request: DelegationRequest,
    ) -> ExecutionResult:
        self.calls.append((prompt, request))
        if not self.results:
            raise AssertionError("StubRunner received an unexpected call")
        return self.results.pop(0)


def ok_result(output: str, **overrides: Any) -> ExecutionResult:
    values: dict[str, Any] = {"success": True, "output": output, "session_id": "stub-session"}
    values.update(overrides)
    return ExecutionResult(**values)
