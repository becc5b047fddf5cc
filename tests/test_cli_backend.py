from __future__ import annotations

import asyncio
import gc
import json
from dataclasses import replace

import allure
import pytest
from conftest import echo_command

from gemini_wrapper.backend import DelegationRequest, GeminiCliBackend, build_command_args
from gemini_wrapper.backend.cli_backend import join_outputs, run_engine_process
from gemini_wrapper.config import Settings
from gemini_wrapper.models import ErrorKind, SessionStatus
from gemini_wrapper.output_parser import parse_structured
from gemini_wrapper.repository import SessionRepository

pytestmark = [
    allure.epic("Delegation"),
    allure.feature("Process Execution Engine"),
]


def _request(**overrides) -> DelegationRequest:
    values = {"tool": "gemini_research", "input": {"query": "q"}, "timeout_ms": 20_000}
    values.update(overrides)
    return DelegationRequest(**values)


def _run(settings: Settings, repository: SessionRepository, request: DelegationRequest):
    backend = GeminiCliBackend(repository, settings)
    return asyncio.run(backend.execute_delegated("do the task", request))


def test_build_command_args_orders_file_markers_before_prompt() -> None:
    args = build_command_args(
        ("gemini", "--model", "pro"),
        prompt="hello",
        file_refs=("src/", "@docs/readme.md", "tests"),
    )

    assert args == [
        "gemini",
        "--model",
        "pro",
        "@src/",
        "@docs/readme.md",
        "@tests",
        "-p",
        "hello",
    ]


def test_build_command_args_all_files_replaces_markers() -> None:
    args = build_command_args(("gemini",), prompt="p", file_refs=("src",), all_files=True)

    assert args == ["gemini", "--all_files", "-p", "p"]


def test_build_command_args_rejects_empty_command() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        build_command_args((), prompt="p")


def test_join_outputs_newline_joins_previous_partial() -> None:
    assert join_outputs("", "new") == "new"
    assert join_outputs("old", "new") == "old\nnew"


def test_clean_exit_with_structured_output_completes(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(settings, gemini_command=echo_command("--reply", '{"a":1}'))

    result = _run(settings, repository, _request())

    assert result.success is True
    assert result.needs_continue is False
    assert result.output == '{"a":1}'
    assert parse_structured(result.output) == {"a": 1}
    session = repository.load(result.session_id)
    assert session is not None
    assert session.status is SessionStatus.COMPLETE
    assert session.output == {"output": '{"a":1}'}
    assert session.input == {"query": "q"}


def test_engine_receives_file_markers_and_prompt(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    result = _run(settings, repository, _request(file_refs=("src/", "README.md")))

    echoed = json.loads(result.output)
    assert echoed["prompt"] == "do the task"
    assert echoed["files"] == ["src/", "README.md"]
    assert echoed["all_files"] is False


def test_timeout_with_partial_output_needs_continue(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(settings, gemini_command=echo_command("--reply", "partial", "--hang"))

    result = _run(settings, repository, _request(timeout_ms=1_500))

    assert result.success is False
    assert result.needs_continue is True
    assert result.output == "partial"
    assert result.error_kind is ErrorKind.TIMEOUT_RECOVERABLE
    session = repository.load(result.session_id)
    assert session is not None
    assert session.status is SessionStatus.NEEDS_CONTINUE
    assert session.partial_output == "partial"


def test_timeout_without_output_is_fatal(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(settings, gemini_command=echo_command("--reply", "", "--hang"))

    result = _run(settings, repository, _request(timeout_ms=1_500))

    assert result.success is False
    assert result.needs_continue is False
    assert result.error == "Operation timed out"
    assert result.error_kind is ErrorKind.TIMEOUT_FATAL
    session = repository.load(result.session_id)
    assert session is not None
    assert session.status is SessionStatus.ERROR
    assert session.error == "Operation timed out with no output"


def test_output_of_exactly_max_length_needs_continue(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(
        settings,
        gemini_command=echo_command("--reply", "x", "--repeat", "100000"),
        max_output_chars=100_000,
    )

    result = _run(settings, repository, _request())

    assert len(result.output) == 100_000
    assert result.success is True
    assert result.needs_continue is True
    session = repository.load(result.session_id)
    assert session is not None
    assert session.status is SessionStatus.NEEDS_CONTINUE


def test_output_just_below_max_length_completes(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(
        settings,
        gemini_command=echo_command("--reply", "x", "--repeat", "99999"),
        max_output_chars=100_000,
    )

    result = _run(settings, repository, _request())

    assert result.success is True
    assert result.needs_continue is False


def test_truncation_marker_needs_continue(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(
        settings,
        gemini_command=echo_command("--reply", "first half [Output truncated]"),
    )

    result = _run(settings, repository, _request())

    assert result.success is True
    assert result.needs_continue is True


def test_non_zero_exit_records_stderr_and_classifies(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(
        settings,
        gemini_command=echo_command(
            "--reply",
            "",
            "--stderr",
            "Quota exceeded for project",
            "--exit-code",
            "3",
        ),
    )

    result = _run(settings, repository, _request())

    assert result.success is False
    assert result.needs_continue is False
    assert result.exit_code == 3
    assert result.error == "Quota exceeded for project"
    assert result.error_kind is ErrorKind.EXIT_FAILURE
    assert result.details["failure_class"] == "billing_or_quota"
    session = repository.load(result.session_id)
    assert session is not None
    assert session.status is SessionStatus.ERROR
    assert session.error == "Quota exceeded for project"


def test_non_zero_exit_without_stderr_reports_exit_code(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(settings, gemini_command=echo_command("--exit-code", "2"))

    result = _run(settings, repository, _request())

    assert result.error == "Gemini CLI exited with code 2"
    session = repository.load(result.session_id)
    assert session is not None
    assert session.error == "Exit code: 2"


def test_spawn_failure_marks_error_immediately(
    settings: Settings,
    repository: SessionRepository,
    tmp_path,
) -> None:
    settings = replace(settings, gemini_command=(str(tmp_path / "missing-gemini"),))

    result = _run(settings, repository, _request())

    assert result.success is False
    assert result.error_kind is ErrorKind.SPAWN_FAILURE
    assert result.error is not None
    assert result.error.startswith("Failed to execute gemini:")
    session = repository.load(result.session_id)
    assert session is not None
    assert session.status is SessionStatus.ERROR


def test_bound_session_must_be_running(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    session = repository.create("gemini_research", {"query": "q"})
    repository.mark_needs_continue(session.id, "partial")

    with pytest.raises(ValueError, match="must be running"):
        _run(settings, repository, _request(session_id=session.id))


def test_bound_session_records_carried_output(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(settings, gemini_command=echo_command("--reply", "second"))
    session = repository.create("gemini_research", {"query": "q"})
    repository.mark_needs_continue(session.id, "first")
    repository.increment_continue(session.id)

    result = _run(
        settings,
        repository,
        _request(session_id=session.id, carry_output="first"),
    )

    assert result.session_id == session.id
    assert result.output == "second"
    stored = repository.load(session.id)
    assert stored is not None
    assert stored.status is SessionStatus.COMPLETE
    assert stored.partial_output == "first\nsecond"
    assert stored.continue_count == 1


def _engine_windows(trace) -> list[tuple[float, float]]:
    lines = trace.read_text("utf-8").splitlines()
    return sorted((entry["start"], entry["end"]) for entry in map(json.loads, lines))


@pytest.mark.parametrize(("cap", "overlapping"), [(1, False), (0, True)])
def test_concurrency_cap_controls_overlap(
    settings: Settings,
    repository: SessionRepository,
    tmp_path,
    cap: int,
    overlapping: bool,
) -> None:
    trace = tmp_path / "trace.jsonl"
    settings = replace(
        settings,
        gemini_command=echo_command("--reply", "ok", "--delay", "0.8", "--trace", str(trace)),
        max_concurrent_processes=cap,
    )
    backend = GeminiCliBackend(repository, settings)

    async def _run_pair():
        return await asyncio.gather(
            backend.execute_delegated("one", _request()),
            backend.execute_delegated("two", _request()),
        )

    results = asyncio.run(_run_pair())

    assert [result.output for result in results] == ["ok", "ok"]
    assert len({result.session_id for result in results}) == 2
    (_, first_end), (second_start, _) = _engine_windows(trace)
    assert (second_start < first_end) is overlapping


@pytest.mark.filterwarnings("error::pytest.PytestUnraisableExceptionWarning")
def test_timeout_with_pipes_held_by_grandchild_closes_transport(
    settings: Settings,
    repository: SessionRepository,
) -> None:
    settings = replace(
        settings,
        gemini_command=("sh", "-c", "sleep 5 & printf partial; wait"),
    )

    result = _run(settings, repository, _request(timeout_ms=300))
    gc.collect()

    assert result.needs_continue is True
    assert result.error_kind is ErrorKind.TIMEOUT_RECOVERABLE
    assert result.output == "partial"


def test_run_engine_process_decodes_utf8_output() -> None:
    capture = asyncio.run(
        run_engine_process(
            [*echo_command("--reply", "héllo ✓"), "-p", "x"],
            timeout_seconds=20,
            kill_grace_seconds=0.5,
        ),
    )

    assert capture.stdout == "héllo ✓"
    assert capture.exit_code == 0
    assert capture.timed_out is False
