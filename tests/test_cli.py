from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import allure
from click.testing import CliRunner

from gemini_wrapper.main import gemini_wrapper
from gemini_wrapper.models import utc_now
from gemini_wrapper.repository import SessionRepository

pytestmark = [
    allure.epic("Delegation"),
    allure.feature("CLI"),
]


def _json_prefix(output: str) -> dict:
    """Decode the JSON document printed before any trailing error line."""

    payload, _ = json.JSONDecoder().raw_decode(output)
    return payload


def test_tools_command_lists_catalogue() -> None:
    result = CliRunner().invoke(gemini_wrapper, ["tools"])

    assert result.exit_code == 0, result.output
    assert "Tools: 8" in result.output
    assert "gemini_research timeout=120s" in result.output
    assert "gemini_continue timeout=-" in result.output


def test_log_level_option_accepts_any_case() -> None:
    result = CliRunner().invoke(gemini_wrapper, ["--log-level", "debug", "tools"])

    assert result.exit_code == 0, result.output
    assert "Tools: 8" in result.output


def test_invalid_log_level_option_is_a_usage_error() -> None:
    result = CliRunner().invoke(gemini_wrapper, ["--log-level", "LOUD", "tools"])

    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)
    assert "LOUD" in result.output


def test_invalid_log_level_env_is_a_usage_error(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_WRAPPER_LOG_LEVEL", "loud")

    result = CliRunner().invoke(gemini_wrapper, ["tools"])

    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)
    assert "LOUD" in result.output


def test_call_command_runs_tool_against_echo_agent(tmp_path: Path, echo_agent) -> None:
    session_dir = tmp_path / "sessions"

    result = CliRunner().invoke(
        gemini_wrapper,
        [
            "call",
            "gemini_file_scan",
            "--args",
            json.dumps({"path": "src", "recursive": False}),
            "--session-dir",
            str(session_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    payload = _json_prefix(result.output)
    assert payload["success"] is True
    assert payload["files"] == ["src"]
    assert SessionRepository(session_dir).load(payload["session_id"]) is not None


def test_call_command_unknown_tool_exits_with_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        gemini_wrapper,
        ["call", "gemini_missing", "--session-dir", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert _json_prefix(result.output)["error"] == "Unknown tool: gemini_missing"


def test_call_command_rejects_non_object_args(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        gemini_wrapper,
        ["call", "gemini_research", "--args", "[1]", "--session-dir", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert "--args must be a JSON object" in result.output


def test_continue_command_reports_missing_session(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        gemini_wrapper,
        ["continue", "nope", "--session-dir", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert _json_prefix(result.output) == {"success": False, "error": "Session not found: nope"}


def test_continue_command_returns_completed_output(tmp_path: Path) -> None:
    repository = SessionRepository(tmp_path)
    session = repository.create("gemini_research", {"query": "q"})
    repository.mark_complete(session.id, "all done")

    result = CliRunner().invoke(
        gemini_wrapper,
        ["continue", session.id, "--session-dir", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    payload = _json_prefix(result.output)
    assert payload["message"] == "Session already complete"
    assert payload["output"] == {"output": "all done"}


def test_sessions_list_show_and_cleanup(tmp_path: Path) -> None:
    repository = SessionRepository(tmp_path)
    waiting = repository.create("gemini_analyze", {"path": "src"})
    repository.mark_needs_continue(waiting.id, "partial text")
    done = repository.create("gemini_research", {"query": "q"})
    repository.mark_complete(done.id, "ok")
    runner = CliRunner()

    listed = runner.invoke(
        gemini_wrapper,
        ["sessions", "list", "--status", "needs_continue", "--session-dir", str(tmp_path)],
    )
    assert listed.exit_code == 0, listed.output
    assert "Sessions: 1" in listed.output
    assert f"{waiting.id} tool=gemini_analyze status=needs_continue" in listed.output

    shown = runner.invoke(
        gemini_wrapper,
        ["sessions", "show", waiting.id, "--session-dir", str(tmp_path)],
    )
    assert shown.exit_code == 0, shown.output
    assert "Status: needs_continue" in shown.output
    assert "Output chars: 12" in shown.output

    path = repository.path_for(done.id)
    record = json.loads(path.read_text("utf-8"))
    record["updated_at"] = (utc_now() - timedelta(hours=48)).isoformat()
    path.write_text(json.dumps(record), "utf-8")

    cleaned = runner.invoke(
        gemini_wrapper,
        ["sessions", "cleanup", "--max-age-hours", "24", "--session-dir", str(tmp_path)],
    )
    assert cleaned.exit_code == 0, cleaned.output
    assert "Sessions removed: 1 (older than 24h)" in cleaned.output
    assert repository.load(done.id) is None
    assert repository.load(waiting.id) is not None


def test_sessions_show_missing_session_fails(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        gemini_wrapper,
        ["sessions", "show", "nope", "--session-dir", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert "Session not found: nope" in result.output
