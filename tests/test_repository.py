from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import allure
import pytest

from gemini_wrapper.models import (
    ALLOWED_TRANSITIONS,
    MAX_CONTINUE_ATTEMPTS,
    SessionStatus,
    SessionTransitionError,
    utc_now,
)
from gemini_wrapper.repository import SessionRepository

pytestmark = [
    allure.epic("Delegation"),
    allure.feature("Session Store"),
]


def test_create_persists_running_session_immediately(repository: SessionRepository) -> None:
    session = repository.create("gemini_research", {"query": "q"})

    path = repository.path_for(session.id)
    assert path.exists()
    stored = json.loads(path.read_text("utf-8"))
    assert stored["status"] == "running"
    assert stored["continue_count"] == 0
    assert stored["input"] == {"query": "q"}
    assert "output" not in stored
    assert path.name == f"gemini-{session.id}.json"


def test_load_returns_none_for_missing_invalid_and_corrupt_records(
    repository: SessionRepository,
) -> None:
    assert repository.load("does-not-exist") is None
    assert repository.load("../escape") is None

    session = repository.create("gemini_analyze", {"path": "src"})
    repository.path_for(session.id).write_text("{broken", "utf-8")
    assert repository.load(session.id) is None

    other = repository.create("gemini_analyze", {"path": "src"})
    repository.path_for(other.id).write_text(json.dumps(["not", "an", "object"]), "utf-8")
    assert repository.load(other.id) is None


def test_update_returns_none_for_unknown_session(repository: SessionRepository) -> None:
    assert repository.update("missing", status=SessionStatus.ERROR) is None


def test_update_rejects_unknown_fields(repository: SessionRepository) -> None:
    session = repository.create("gemini_test", {})

    with pytest.raises(ValueError, match="Unsupported session fields: tool"):
        repository.update(session.id, tool="other")


def test_update_refreshes_updated_at(repository: SessionRepository) -> None:
    session = repository.create("gemini_test", {})

    updated = repository.mark_needs_continue(session.id, "partial")

    assert updated is not None
    assert updated.updated_at >= session.updated_at
    assert updated.created_at == session.created_at
    assert updated.partial_output == "partial"


def test_allowed_transitions_through_continuation(repository: SessionRepository) -> None:
    session = repository.create("gemini_generate", {"spec": "s"})

    repository.mark_needs_continue(session.id, "part one")
    resumed = repository.increment_continue(session.id)
    assert resumed is not None
    assert resumed.status is SessionStatus.RUNNING
    assert resumed.continue_count == 1

    completed = repository.mark_complete(session.id, "part one\npart two")
    assert completed is not None
    assert completed.status is SessionStatus.COMPLETE
    assert completed.output == {"output": "part one\npart two"}
    assert completed.partial_output == "part one\npart two"


@pytest.mark.parametrize("terminal", [SessionStatus.COMPLETE, SessionStatus.ERROR])
def test_terminal_sessions_accept_no_further_writes(
    repository: SessionRepository,
    terminal: SessionStatus,
) -> None:
    session = repository.create("gemini_document", {})
    if terminal is SessionStatus.COMPLETE:
        repository.mark_complete(session.id, "done")
    else:
        repository.mark_error(session.id, "boom")
    before = repository.path_for(session.id).read_text("utf-8")

    with pytest.raises(SessionTransitionError):
        repository.mark_needs_continue(session.id, "more")
    with pytest.raises(SessionTransitionError):
        repository.increment_continue(session.id)
    with pytest.raises(SessionTransitionError):
        repository.update(session.id, error="changed")

    assert repository.path_for(session.id).read_text("utf-8") == before


def test_continue_count_never_exceeds_cap(repository: SessionRepository) -> None:
    session = repository.create("gemini_research", {})
    for _ in range(MAX_CONTINUE_ATTEMPTS):
        repository.mark_needs_continue(session.id, "p")
        repository.increment_continue(session.id)

    repository.mark_needs_continue(session.id, "p")
    with pytest.raises(SessionTransitionError, match="cannot exceed"):
        repository.increment_continue(session.id)

    stored = repository.load(session.id)
    assert stored is not None
    assert stored.continue_count == MAX_CONTINUE_ATTEMPTS


def test_continue_count_never_decreases(repository: SessionRepository) -> None:
    session = repository.create("gemini_research", {})
    repository.mark_needs_continue(session.id, "p")
    repository.increment_continue(session.id)

    with pytest.raises(SessionTransitionError, match="cannot decrease"):
        repository.update(session.id, continue_count=0)


def test_running_session_cannot_be_resumed_again(repository: SessionRepository) -> None:
    session = repository.create("gemini_research", {})
    before = repository.path_for(session.id).read_text("utf-8")

    with pytest.raises(SessionTransitionError, match="only grows when resuming"):
        repository.increment_continue(session.id)

    assert repository.path_for(session.id).read_text("utf-8") == before


def test_status_self_transitions_are_not_allowed() -> None:
    for status, targets in ALLOWED_TRANSITIONS.items():
        assert status not in targets


def test_save_persists_full_record(repository: SessionRepository) -> None:
    session = repository.create("gemini_dialogue", {"topic": "t"})
    session.status = SessionStatus.ERROR
    session.error = "manual"

    repository.save(session)

    stored = repository.load(session.id)
    assert stored is not None
    assert stored.status is SessionStatus.ERROR
    assert stored.error == "manual"


def test_list_orders_by_updated_at_descending(repository: SessionRepository) -> None:
    first = repository.create("gemini_research", {"n": 1})
    second = repository.create("gemini_research", {"n": 2})
    repository.mark_needs_continue(first.id, "touched last")

    listed = repository.list()

    assert [session.id for session in listed] == [first.id, second.id]


def test_list_skips_corrupt_records_and_missing_directory(tmp_path: Path) -> None:
    assert SessionRepository(tmp_path / "absent").list() == []

    repository = SessionRepository(tmp_path)
    kept = repository.create("gemini_research", {})
    (tmp_path / "gemini-corrupt.json").write_text("not json", "utf-8")

    assert [session.id for session in repository.list()] == [kept.id]


def test_cleanup_removes_only_stale_sessions(repository: SessionRepository) -> None:
    stale = repository.create("gemini_research", {})
    fresh = repository.create("gemini_research", {})
    path = repository.path_for(stale.id)
    record = json.loads(path.read_text("utf-8"))
    record["updated_at"] = (utc_now() - timedelta(hours=30)).isoformat()
    path.write_text(json.dumps(record), "utf-8")

    removed = repository.cleanup(24)

    assert removed == 1
    assert repository.load(stale.id) is None
    assert repository.load(fresh.id) is not None
