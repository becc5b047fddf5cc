"""CLI entrypoint for gemini-wrapper."""

import logging
import os
from pathlib import Path

import rich_click as click

from gemini_wrapper import __version__
from gemini_wrapper.config import LOG_LEVELS
from gemini_wrapper.controllers import (
    CommandResult,
    ContinueCommand,
    GeminiWrapperCliController,
    ServeCommand,
    SessionCleanupCommand,
    SessionListCommand,
    SessionShowCommand,
    ToolCallCommand,
)
from gemini_wrapper.models import SessionStatus

click.rich_click.USE_MARKDOWN = True
CONTROLLER = GeminiWrapperCliController()

_SESSION_DIR_OPTION = click.option(
    "--session-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Session storage directory (defaults to GEMINI_WRAPPER_SESSION_DIR or .claude/sessions).",
)


@click.group()
@click.version_option(version=__version__, prog_name="gemini-wrapper")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level for stderr diagnostics (defaults to GEMINI_WRAPPER_LOG_LEVEL).",
)
def gemini_wrapper(log_level: str | None) -> None:
    """Delegate long-context tasks to the Gemini CLI with resumable sessions."""

    level = (log_level or os.getenv("GEMINI_WRAPPER_LOG_LEVEL", "WARNING")).strip().upper()
    if level not in LOG_LEVELS:
        raise click.UsageError(f"Invalid GEMINI_WRAPPER_LOG_LEVEL: {level!r}")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@gemini_wrapper.command("serve")
@_SESSION_DIR_OPTION
def serve(session_dir: Path | None) -> None:
    """Run the MCP server on stdio."""

    CONTROLLER.serve(ServeCommand(session_dir=session_dir))


@gemini_wrapper.command("tools")
def tools() -> None:
    """List available tools with their default timeouts."""

    _emit_lines(CONTROLLER.list_tools())


@gemini_wrapper.command("call")
@click.argument("tool")
@click.option(
    "--args",
    "arguments_json",
    default="{}",
    show_default=True,
    help="Tool arguments as a JSON object.",
)
@_SESSION_DIR_OPTION
def call(tool: str, arguments_json: str, session_dir: Path | None) -> None:
    """Dispatch one tool call and print the JSON response.

    Example: `gemini-wrapper call gemini_research --args '{"query": "asyncio timeouts"}'`
    """

    _emit_result(
        CONTROLLER.call_tool(
            ToolCallCommand(session_dir=session_dir, tool=tool, arguments_json=arguments_json),
        ),
    )


@gemini_wrapper.command("continue")
@click.argument("session_id")
@_SESSION_DIR_OPTION
def continue_session(session_id: str, session_dir: Path | None) -> None:
    """Resume a session that needs continuation."""

    _emit_result(
        CONTROLLER.continue_session(
            ContinueCommand(session_dir=session_dir, session_id=session_id),
        ),
    )


@gemini_wrapper.group()
def sessions() -> None:
    """Session maintenance commands."""


@sessions.command("list")
@click.option(
    "--status",
    type=click.Choice([status.value for status in SessionStatus], case_sensitive=False),
    default=None,
    help="Only show sessions in this status.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="How many sessions to display, newest first.",
)
@_SESSION_DIR_OPTION
def sessions_list(status: str | None, limit: int, session_dir: Path | None) -> None:
    """List sessions by most recent update."""

    _emit_lines(
        CONTROLLER.list_sessions(
            SessionListCommand(session_dir=session_dir, status=status, limit=limit),
        ),
    )


@sessions.command("show")
@click.argument("session_id")
@_SESSION_DIR_OPTION
def sessions_show(session_id: str, session_dir: Path | None) -> None:
    """Show one session record."""

    _emit_result(
        CONTROLLER.show_session(SessionShowCommand(session_dir=session_dir, session_id=session_id)),
    )


@sessions.command("cleanup")
@click.option(
    "--max-age-hours",
    type=click.FloatRange(min=0),
    default=None,
    help="Delete sessions not updated for this many hours (defaults to settings).",
)
@_SESSION_DIR_OPTION
def sessions_cleanup(max_age_hours: float | None, session_dir: Path | None) -> None:
    """Delete stale session records."""

    _emit_lines(
        CONTROLLER.cleanup_sessions(
            SessionCleanupCommand(session_dir=session_dir, max_age_hours=max_age_hours),
        ),
    )


def _emit_result(result: CommandResult) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Command failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    gemini_wrapper()
