"""Local stand-in for the Gemini CLI used by integration tests and smoke runs.

Accepts the same argv contract as the real engine (``@path`` markers,
``--all_files``, ``-p <prompt>``). Without options it echoes what it received
as JSON. ``--script`` points to a JSON list of steps; every invocation consumes
the first step, which lets one command line behave differently across
continuation attempts.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, TextIO


def main(argv: list[str] | None = None) -> int:
    """Run one deterministic engine invocation."""

    parser = argparse.ArgumentParser(prog="echo_agent")
    parser.add_argument("refs", nargs="*", help="File inclusion markers (@path).")
    parser.add_argument("-p", "--prompt", required=True)
    parser.add_argument("--all_files", action="store_true")
    parser.add_argument("--reply", default=None, help="Text to print instead of the echo.")
    parser.add_argument("--repeat", type=int, default=1, help="Repeat --reply this many times.")
    parser.add_argument("--stderr", default="", help="Text to print on stderr.")
    parser.add_argument("--exit-code", type=int, default=0)
    parser.add_argument("--hang", action="store_true", help="Sleep after replying.")
    parser.add_argument("--hang-seconds", type=float, default=60.0)
    parser.add_argument("--delay", type=float, default=0.0, help="Sleep before replying.")
    parser.add_argument("--trace", type=Path, default=None, help="Append start/end times here.")
    parser.add_argument("--script", type=Path, default=None, help="JSON list of steps.")
    args = parser.parse_intermixed_args(argv)
    started = time.time()

    step: dict[str, Any] = {
        "reply": args.reply,
        "repeat": args.repeat,
        "stderr": args.stderr,
        "exit_code": args.exit_code,
        "hang": args.hang,
    }
    if args.script is not None:
        step.update(_pop_step(args.script))
    if args.delay > 0:
        time.sleep(args.delay)

    reply = step.get("reply")
    if reply is None:
        reply = json.dumps(
            {
                "prompt": args.prompt,
                "files": [ref.removeprefix("@") for ref in args.refs],
                "all_files": args.all_files,
            },
        )
    _write(sys.stdout, str(reply) * int(step.get("repeat") or 1))
    if args.trace is not None:
        with args.trace.open("a", encoding="utf-8") as trace:
            trace.write(json.dumps({"start": started, "end": time.time()}) + "\n")
    if step.get("stderr"):
        _write(sys.stderr, str(step["stderr"]))

    if step.get("hang"):
        time.sleep(args.hang_seconds)
    return int(step.get("exit_code") or 0)


def _write(stream: TextIO, text: str) -> None:
    stream.buffer.write(text.encode("utf-8"))
    stream.flush()


def _pop_step(script_path: Path) -> dict[str, Any]:
    steps = json.loads(script_path.read_text("utf-8"))
    if not isinstance(steps, list) or not steps:
        raise SystemExit(f"No steps left in {script_path}")
    step, *remaining = steps
    script_path.write_text(json.dumps(remaining), "utf-8")
    if not isinstance(step, dict):
        raise SystemExit(f"Step must be an object in {script_path}")
    return step


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
