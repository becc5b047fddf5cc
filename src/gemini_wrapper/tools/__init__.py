"""Tool handlers exposed through the dispatch boundary."""

from __future__ import annotations

from gemini_wrapper.backend.base import DelegatedRunner
from gemini_wrapper.continuation import ContinuationController
from gemini_wrapper.tools.analyze import AnalyzeTool
from gemini_wrapper.tools.arguments import ToolInputError
from gemini_wrapper.tools.base import DelegatedTool, ToolContract, ToolHandler
from gemini_wrapper.tools.continue_session import ContinueTool
from gemini_wrapper.tools.dialogue import DialogueTool
from gemini_wrapper.tools.document import DocumentTool
from gemini_wrapper.tools.file_scan import FileScanTool
from gemini_wrapper.tools.generate import GenerateTool
from gemini_wrapper.tools.research import ResearchTool
from gemini_wrapper.tools.testing import TestTool

DELEGATED_TOOL_TYPES: tuple[type[DelegatedTool], ...] = (
    ResearchTool,
    FileScanTool,
    GenerateTool,
    DialogueTool,
    TestTool,
    DocumentTool,
    AnalyzeTool,
)


def build_tools(
    runner: DelegatedRunner,
    controller: ContinuationController,
) -> dict[str, ToolHandler]:
    """Instantiate every tool, keyed by tool name, in catalogue order."""

    handlers: list[ToolHandler] = [tool_type(runner) for tool_type in DELEGATED_TOOL_TYPES]
    handlers.append(ContinueTool(controller))
    return {handler.name: handler for handler in handlers}


__all__ = [
    "DELEGATED_TOOL_TYPES",
    "ContinueTool",
    "DelegatedTool",
    "ToolContract",
    "ToolHandler",
    "ToolInputError",
    "build_tools",
]
