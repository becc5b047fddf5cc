"""Subprocess-based execution engine for the Gemini CLI."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass

from gemini_wrapper.backend.base import DelegationRequest, ExecutionResult
from gemini_wrapper.config import Settings
from gemini_wrapper.failure_classifier import classify_exit_failure
from gemini_wrapper.models import ErrorKind, SessionStatus
from gemini_wrapper.repository import SessionRepository

logger = logging.getLogger(__name__)

PROMPT_FLAG = "-p"
ALL_FILES_FLAG = "--all_files"
FILE_MARKER_PREFIX = "@"

_READ_CHUNK_BYTES = 65_536


@dataclass(slots=True)
class ProcessCapture:
    """Text and exit state collected from one engine subprocess."""

    stdout: str
    stderr: str
    exit_code: int | None
    timed_out: bool


class GeminiCliBackend:
    """Spawn the engine, enforce the timeout and record the outcome on the session."""

    def __init__(self, repository: SessionRepository, settings: Settings) -> None:
        self.repository = repository
        self.settings = settings
        limit = settings.max_concurrent_processes
        self._slots = asyncio.Semaphore(limit) if limit > 0 else None

    async def execute_delegated(
        self,
        prompt: str,
        request: DelegationRequest,
    ) -> ExecutionResult:
        session_id = self._bind_session(request)
        run_args = build_command_args(
            self.settings.gemini_command,
            prompt=prompt,
            file_refs=request.file_refs,
            all_files=request.all_files,
        )
        timeout_seconds = request.timeout_ms / 1000
        logger.info(
            "Spawning engine: session_id=%s tool=%s timeout=%.1fs file_refs=%d all_files=%s",
            session_id,
            request.tool,
            timeout_seconds,
            len(request.file_refs),
            request.all_files,
        )

        started = time.monotonic()
        try:
            async with self._slot():
                capture = await run_engine_process(
                    run_args,
                    timeout_seconds=timeout_seconds,
                    kill_grace_seconds=self.settings.kill_grace_seconds,
                )
        except (OSError, ValueError) as error:
            logger.warning("Engine failed to start: session_id=%s error=%s", session_id, error)
            self.repository.mark_error(session_id, str(error))
            return ExecutionResult(
                success=False,
                output="",
                session_id=session_id,
                error=f"Failed to execute gemini: {error}",
                error_kind=ErrorKind.SPAWN_FAILURE,
            )

        result = self._classify(session_id, capture, request.carry_output)
        logger.info(
            "Engine finished: session_id=%s success=%s needs_continue=%s elapsed=%.1fs chars=%d",
            session_id,
            result.success,
            result.needs_continue,
            time.monotonic() - started,
            len(capture.stdout),
        )
        return result

    def _bind_session(self, request: DelegationRequest) -> str:
        if request.session_id is None:
            return self.repository.create(request.tool, request.input).id

        session = self.repository.load(request.session_id)
        if session is None:
            raise ValueError(f"Session not found: {request.session_id}")
        if session.status is not SessionStatus.RUNNING:
            raise ValueError(
                f"Session {session.id} must be running to execute, got {session.status.value}",
            )
        return session.id

    def _classify(
        self,
        session_id: str,
        capture: ProcessCapture,
        carry_output: str,
    ) -> ExecutionResult:
        text = capture.stdout
        recorded = join_outputs(carry_output, text)

        if capture.timed_out:
            if text:
                logger.warning("Engine timed out with partial output: session_id=%s", session_id)
                self.repository.mark_needs_continue(session_id, recorded)
                return ExecutionResult(
                    success=False,
                    output=text,
                    session_id=session_id,
                    error="Operation timed out - use gemini_continue to resume",
                    needs_continue=True,
                    error_kind=ErrorKind.TIMEOUT_RECOVERABLE,
                )
            logger.warning("Engine timed out without output: session_id=%s", session_id)
            self.repository.mark_error(session_id, "Operation timed out with no output")
            return ExecutionResult(
                success=False,
                output="",
                session_id=session_id,
                error="Operation timed out",
                error_kind=ErrorKind.TIMEOUT_FATAL,
            )

        exit_code = capture.exit_code
        if exit_code != 0:
            stderr = capture.stderr.strip()
            classification = classify_exit_failure(
                exit_code=exit_code if exit_code is not None else -1,
                stdout=capture.stdout,
                stderr=capture.stderr,
            )
            self.repository.mark_error(session_id, stderr or f"Exit code: {exit_code}")
            return ExecutionResult(
                success=False,
                output=text,
                session_id=session_id,
                error=stderr or f"Gemini CLI exited with code {exit_code}",
                error_kind=ErrorKind.EXIT_FAILURE,
                exit_code=exit_code,
                details=classification.to_details(),
            )

        if self._looks_truncated(text):
            self.repository.mark_needs_continue(session_id, recorded)
            return ExecutionResult(
                success=True,
                output=text,
                session_id=session_id,
                needs_continue=True,
                exit_code=0,
            )

        self.repository.mark_complete(session_id, recorded)
        return ExecutionResult(success=True, output=text, session_id=session_id, exit_code=0)

    def _looks_truncated(self, text: str) -> bool:
        return (
            len(text) >= self.settings.max_output_chars
            or self.settings.truncation_marker in text
        )

    @asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._slots is None:
            yield
            return
        async with self._slots:
            yield


def build_command_args(
    command: Sequence[str],
    *,
    prompt: str,
    file_refs: Sequence[str] = (),
    all_files: bool = False,
) -> list[str]:
    """Engine argv: command, then file markers or the all-files flag, then the prompt flag."""

    if not command:
        raise ValueError("Engine command must not be empty.")
    args = list(command)
    if all_files:
        args.append(ALL_FILES_FLAG)
    else:
        for ref in file_refs:
            path = ref.removeprefix(FILE_MARKER_PREFIX)
            if path:
                args.append(f"{FILE_MARKER_PREFIX}{path}")
    args.extend([PROMPT_FLAG, prompt])
    return args


def join_outputs(previous: str, current: str) -> str:
    """Newline-join earlier partial output with the newest capture."""

    if not previous:
        return current
    return f"{previous}\n{current}"


async def run_engine_process(
    run_args: Sequence[str],
    *,
    timeout_seconds: float,
    kill_grace_seconds: float,
) -> ProcessCapture:
    """Run one engine subprocess, streaming its pipes until exit or timeout."""

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    timed_out = False

    async with _spawned_process(run_args, kill_grace_seconds=kill_grace_seconds) as process:
        readers = asyncio.gather(
            _drain(process.stdout, stdout_chunks),
            _drain(process.stderr, stderr_chunks),
        )
        try:
            try:
                await asyncio.wait_for(process.wait(), timeout=timeout_seconds)
            except TimeoutError:
                timed_out = True
                await _terminate_process(process, kill_grace_seconds)
            try:
                await asyncio.wait_for(readers, timeout=kill_grace_seconds + 1)
            except TimeoutError:
                logger.warning("Engine pipes still open after exit; keeping captured output")
        finally:
            if not readers.done():
                readers.cancel()

        return ProcessCapture(
            stdout="".join(stdout_chunks),
            stderr="".join(stderr_chunks),
            exit_code=process.returncode,
            timed_out=timed_out,
        )


@asynccontextmanager
async def _spawned_process(
    run_args: Sequence[str],
    *,
    kill_grace_seconds: float,
) -> AsyncIterator[asyncio.subprocess.Process]:
    process = await asyncio.create_subprocess_exec(
        *run_args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=os.environ.copy(),
    )
    try:
        yield process
    finally:
        await _terminate_process(process, kill_grace_seconds)
        # Grandchildren can hold the pipes open after the engine exits.
        process._transport.close()  # noqa: SLF001


async def _drain(stream: asyncio.StreamReader | None, sink: list[str]) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            sink.append(decoder.decode(b"", final=True))
            return
        sink.append(decoder.decode(chunk))


async def _terminate_process(process: asyncio.subprocess.Process, grace_seconds: float) -> None:
    if process.returncode is not None:
        return
    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_seconds)
    except TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
