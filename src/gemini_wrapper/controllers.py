"""Controllers for gemini-wrapper CLI commands."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path

from gemini_wrapper.config import Settings
from gemini_wrapper.dispatch import ToolDispatcher, ToolResponse
from gemini_wrapper.models import SessionStatus
from gemini_wrapper.repository import SessionRepository
from gemini_wrapper.server import run_stdio_server

CONTINUE_TOOL = "gemini_continue"


@dataclass(slots=True)
class ServeCommand:
    """CLI input for the MCP stdio server."""

    session_dir: Path | None


@dataclass(slots=True)
class ToolCallCommand:
    """CLI input for a single tool dispatch."""

    session_dir: Path | None
    tool: str
    arguments_json: str


@dataclass(slots=True)
class ContinueCommand:
    """CLI input for resuming an interrupted session."""

    session_dir: Path | None
    session_id: str


@dataclass(slots=True)
class SessionListCommand:
    """CLI input for session listing."""

    session_dir: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class SessionShowCommand:
    """CLI input for session inspection."""

    session_dir: Path | None
    session_id: str


@dataclass(slots=True)
class SessionCleanupCommand:
    """CLI input for removing stale session records."""

    session_dir: Path | None
    max_age_hours: float | None


@dataclass(slots=True)
class CommandResult:
    """Lines to print plus the success flag that decides the exit code."""

    lines: list[str]
    success: bool = True


class GeminiWrapperCliController:
    """Coordinates tool dispatch, server and session maintenance CLI operations."""

    def serve(self, command: ServeCommand) -> None:
        settings = _settings(command.session_dir)
        run_stdio_server(ToolDispatcher.from_settings(settings))

    def list_tools(self) -> list[str]:
        dispatcher = ToolDispatcher.from_settings(Settings.from_env())
        contracts = dispatcher.list_tools()
        lines = [f"Tools: {len(contracts)}"]
        for contract in contracts:
            summary = contract.description.splitlines()[0]
            timeout = (
                f"{contract.default_timeout_ms // 1000}s"
                if contract.default_timeout_ms is not None
                else "-"
            )
            lines.append(f"  {contract.name} timeout={timeout} {summary}")
        return lines

    def call_tool(self, command: ToolCallCommand) -> CommandResult:
        try:
            arguments = json.loads(command.arguments_json)
        except ValueError as error:
            return CommandResult(lines=[f"Invalid --args JSON: {error}"], success=False)
        if not isinstance(arguments, dict):
            return CommandResult(lines=["--args must be a JSON object"], success=False)

        settings = _settings(command.session_dir)
        response = _dispatch(settings, command.tool, arguments)
        return _response_result(response)

    def continue_session(self, command: ContinueCommand) -> CommandResult:
        settings = _settings(command.session_dir)
        response = _dispatch(settings, CONTINUE_TOOL, {"session_id": command.session_id})
        return _response_result(response)

    def list_sessions(self, command: SessionListCommand) -> list[str]:
        settings = _settings(command.session_dir)
        status_filter = _parse_status(command.status)
        sessions = SessionRepository(settings.session_dir).list()
        if status_filter is not None:
            sessions = [session for session in sessions if session.status is status_filter]
        sessions = sessions[: command.limit]

        lines = [f"Sessions: {len(sessions)}"]
        for session in sessions:
            lines.append(
                f"  {session.id} tool={session.tool} status={session.status.value} "
                f"continues={session.continue_count} "
                f"updated_at={session.updated_at.isoformat()}",
            )
        return lines

    def show_session(self, command: SessionShowCommand) -> CommandResult:
        settings = _settings(command.session_dir)
        session = SessionRepository(settings.session_dir).load(command.session_id)
        if session is None:
            return CommandResult(
                lines=[f"Session not found: {command.session_id}"],
                success=False,
            )

        output = session.partial_output
        return CommandResult(
            lines=[
                f"Session: {session.id}",
                f"Tool: {session.tool}",
                f"Status: {session.status.value}",
                f"Continues: {session.continue_count}",
                f"Created: {session.created_at.isoformat()}",
                f"Updated: {session.updated_at.isoformat()}",
                f"Error: {session.error or '-'}",
                f"Input: {json.dumps(session.input, ensure_ascii=False, default=str)}",
                f"Output chars: {len(output)}",
            ],
        )

    def cleanup_sessions(self, command: SessionCleanupCommand) -> list[str]:
        settings = _settings(command.session_dir)
        max_age_hours = (
            command.max_age_hours
            if command.max_age_hours is not None
            else settings.session_max_age_hours
        )
        removed = SessionRepository(settings.session_dir).cleanup(max_age_hours)
        return [f"Sessions removed: {removed} (older than {max_age_hours:g}h)"]


def _settings(session_dir: Path | None) -> Settings:
    settings = Settings.from_env(session_dir=session_dir)
    settings.validate()
    return settings


def _dispatch(settings: Settings, tool: str, arguments: dict) -> ToolResponse:
    dispatcher = ToolDispatcher.from_settings(settings)
    return asyncio.run(dispatcher.call(tool, arguments))


def _response_result(response: ToolResponse) -> CommandResult:
    payload = response.payload
    success = not response.is_error and not (
        isinstance(payload, dict) and payload.get("success") is False
    )
    return CommandResult(lines=[response.text], success=success)


def _parse_status(value: str | None) -> SessionStatus | None:
    if value is None:
        return None
    return SessionStatus(value.strip().lower())
