"""File-per-session persistence for delegated sessions.

Each session lives in ``<session_dir>/gemini-<id>.json``. There is no locking:
writes are last-writer-wins, so a session id must have a single active owner
(one continuation at a time). Distinct ids never contend.
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any
from uuid import uuid4

from gemini_wrapper.models import (
    ALLOWED_TRANSITIONS,
    MAX_CONTINUE_ATTEMPTS,
    GeminiSession,
    SessionStatus,
    SessionTransitionError,
    utc_now,
)

logger = logging.getLogger(__name__)

SESSION_FILE_PREFIX = "gemini-"
SESSION_FILE_SUFFIX = ".json"

_SESSION_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
_UPDATABLE_FIELDS = frozenset({"status", "output", "error", "continue_count"})


class SessionRepository:
    """Durable key-value store of session records keyed by session id."""

    def __init__(self, session_dir: Path) -> None:
        self.session_dir = session_dir

    def path_for(self, session_id: str) -> Path:
        """Deterministic record location for a session id."""

        if not _SESSION_ID.match(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.session_dir / f"{SESSION_FILE_PREFIX}{session_id}{SESSION_FILE_SUFFIX}"

    def create(self, tool: str, session_input: dict[str, Any]) -> GeminiSession:
        """Persist a new running session before anything is spawned for it."""

        now = utc_now()
        session = GeminiSession(
            id=str(uuid4()),
            tool=tool,
            status=SessionStatus.RUNNING,
            input=dict(session_input),
            created_at=now,
            updated_at=now,
        )
        self._write(session)
        logger.info("Session created: session_id=%s tool=%s", session.id, tool)
        return session

    def load(self, session_id: str) -> GeminiSession | None:
        """Return the stored session, or None when it is missing or unreadable."""

        try:
            path = self.path_for(session_id)
        except ValueError:
            return None
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text("utf-8"))
            if not isinstance(raw, dict):
                raise TypeError("session record must be a JSON object")
            return GeminiSession.from_dict(raw)
        except (OSError, ValueError, TypeError) as error:
            logger.warning("Ignoring unreadable session record %s: %s", path, error)
            return None

    def save(self, session: GeminiSession) -> GeminiSession:
        """Persist the full record, refreshing ``updated_at``.

        Refuses to overwrite a record that already reached a terminal state or
        to move the status along an edge the state machine does not allow.
        """

        stored = self.load(session.id)
        if stored is not None:
            _check_write(stored, session)
        session.updated_at = utc_now()
        self._write(session)
        return session

    def update(self, session_id: str, **fields: Any) -> GeminiSession | None:
        """Read-modify-write of selected fields; None when the id does not exist."""

        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported session fields: {', '.join(sorted(unknown))}")
        stored = self.load(session_id)
        if stored is None:
            return None

        updated = GeminiSession.from_dict(stored.to_dict())
        if "status" in fields:
            updated.status = SessionStatus(fields["status"])
        if "output" in fields:
            updated.output = fields["output"]
        if "error" in fields:
            updated.error = fields["error"]
        if "continue_count" in fields:
            updated.continue_count = fields["continue_count"]

        _check_write(stored, updated)
        updated.updated_at = utc_now()
        self._write(updated)
        return updated

    def mark_needs_continue(self, session_id: str, partial_output: str) -> GeminiSession | None:
        return self.update(
            session_id,
            status=SessionStatus.NEEDS_CONTINUE,
            output={"partial_output": partial_output},
        )

    def mark_complete(self, session_id: str, output: str) -> GeminiSession | None:
        return self.update(session_id, status=SessionStatus.COMPLETE, output={"output": output})

    def mark_error(self, session_id: str, error: str) -> GeminiSession | None:
        return self.update(session_id, status=SessionStatus.ERROR, error=error)

    def increment_continue(self, session_id: str) -> GeminiSession | None:
        """Count one more continuation attempt and put the session back to running."""

        stored = self.load(session_id)
        if stored is None:
            return None
        return self.update(
            session_id,
            status=SessionStatus.RUNNING,
            continue_count=stored.continue_count + 1,
        )

    def list(self) -> list[GeminiSession]:
        """All readable sessions, most recently updated first."""

        if not self.session_dir.is_dir():
            return []
        sessions: list[GeminiSession] = []
        for path in self.session_dir.glob(f"{SESSION_FILE_PREFIX}*{SESSION_FILE_SUFFIX}"):
            session_id = path.name[len(SESSION_FILE_PREFIX) : -len(SESSION_FILE_SUFFIX)]
            session = self.load(session_id)
            if session is not None:
                sessions.append(session)
        return sorted(sessions, key=lambda item: item.updated_at, reverse=True)

    def cleanup(self, max_age_hours: float = 24) -> int:
        """Delete sessions last updated before ``now - max_age_hours``; return count removed."""

        cutoff = utc_now() - timedelta(hours=max_age_hours)
        removed = 0
        for session in self.list():
            if session.updated_at >= cutoff:
                continue
            try:
                self.path_for(session.id).unlink()
            except FileNotFoundError:
                continue
            removed += 1
        if removed:
            logger.info("Removed %d sessions older than %s hours", removed, max_age_hours)
        return removed

    def _write(self, session: GeminiSession) -> None:
        path = self.path_for(session.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        temp_path.write_text(
            json.dumps(session.to_dict(), ensure_ascii=False, indent=2),
            "utf-8",
        )
        os.replace(temp_path, path)


def _check_write(stored: GeminiSession, updated: GeminiSession) -> None:
    if stored.status.is_terminal:
        raise SessionTransitionError(
            f"Session {stored.id} is {stored.status.value} and accepts no further writes.",
        )
    # A write that keeps the status only changes fields; it is not a transition.
    if (
        updated.status is not stored.status
        and updated.status not in ALLOWED_TRANSITIONS[stored.status]
    ):
        raise SessionTransitionError(
            f"Illegal session transition {stored.status.value} -> {updated.status.value} "
            f"for {stored.id}.",
        )
    if updated.continue_count < stored.continue_count:
        raise SessionTransitionError(f"continue_count of {stored.id} cannot decrease.")
    if updated.continue_count > stored.continue_count and not (
        stored.status is SessionStatus.NEEDS_CONTINUE and updated.status is SessionStatus.RUNNING
    ):
        raise SessionTransitionError(
            f"continue_count of {stored.id} only grows when resuming from needs_continue.",
        )
    if updated.continue_count > MAX_CONTINUE_ATTEMPTS:
        raise SessionTransitionError(
            f"continue_count of {stored.id} cannot exceed {MAX_CONTINUE_ATTEMPTS}.",
        )
