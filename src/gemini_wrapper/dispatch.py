"""Tool dispatch boundary: ``{tool, arguments}`` in, JSON text plus error flag out."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from gemini_wrapper.backend.cli_backend import GeminiCliBackend
from gemini_wrapper.config import Settings
from gemini_wrapper.continuation import ContinuationController
from gemini_wrapper.repository import SessionRepository
from gemini_wrapper.tools import ToolContract, ToolHandler, build_tools

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolResponse:
    """Serialized tool answer as handed back to the host."""

    text: str
    is_error: bool = False

    @property
    def payload(self) -> Any:
        return json.loads(self.text)


class ToolDispatcher:
    """Route tool calls to handlers and convert every outcome into a response."""

    def __init__(self, handlers: Mapping[str, ToolHandler]) -> None:
        self.handlers = dict(handlers)

    @classmethod
    def from_settings(cls, settings: Settings) -> ToolDispatcher:
        repository = SessionRepository(settings.session_dir)
        backend = GeminiCliBackend(repository, settings)
        controller = ContinuationController(repository, backend, settings)
        return cls(build_tools(backend, controller))

    def list_tools(self) -> list[ToolContract]:
        return [handler.contract for handler in self.handlers.values()]

    async def call(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResponse:
        args = dict(arguments or {})
        handler = self.handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool requested: %s", name)
            return _respond(
                {"error": f"Unknown tool: {name}", "available_tools": list(self.handlers)},
                is_error=True,
            )

        try:
            result = await handler.handle(args)
        except Exception as error:  # noqa: BLE001
            logger.warning("Tool handler failed: tool=%s error=%s", name, error)
            return _respond({"error": str(error), "tool": name, "input": args}, is_error=True)

        return _respond(result)


def _respond(payload: Mapping[str, Any], *, is_error: bool = False) -> ToolResponse:
    return ToolResponse(
        text=json.dumps(payload, indent=2, ensure_ascii=False, default=str),
        is_error=is_error,
    )
