"""MCP stdio server exposing the delegation tools through FastMCP."""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from gemini_wrapper.dispatch import ToolDispatcher

logger = logging.getLogger(__name__)

SERVER_NAME = "gemini-wrapper"

Depth = Literal["shallow", "medium", "deep"]


def build_server(dispatcher: ToolDispatcher) -> FastMCP:  # noqa: C901
    """Register one typed MCP tool per dispatcher handler."""

    mcp = FastMCP(name=SERVER_NAME)
    descriptions = {contract.name: contract.description for contract in dispatcher.list_tools()}

    async def forward(tool: str, **arguments: Any) -> dict[str, Any]:
        response = await dispatcher.call(
            tool,
            {key: value for key, value in arguments.items() if value is not None},
        )
        if response.is_error:
            raise ToolError(response.text)
        return json.loads(response.text)

    @mcp.tool(name="gemini_research", description=descriptions["gemini_research"])
    async def gemini_research(
        query: str,
        depth: Depth = "medium",
        sources: list[str] | None = None,
        max_results: int = 10,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_research",
            query=query,
            depth=depth,
            sources=sources,
            max_results=max_results,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_file_scan", description=descriptions["gemini_file_scan"])
    async def gemini_file_scan(  # noqa: PLR0913
        path: str,
        pattern: str | None = None,
        max_files: int = 50,
        include_content: bool = True,
        recursive: bool = True,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_file_scan",
            path=path,
            pattern=pattern,
            max_files=max_files,
            include_content=include_content,
            recursive=recursive,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_generate", description=descriptions["gemini_generate"])
    async def gemini_generate(
        spec: str,
        files: list[dict[str, str]],
        templates: dict[str, str] | None = None,
        style_guide: str | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_generate",
            spec=spec,
            files=files,
            templates=templates,
            style_guide=style_guide,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_dialogue", description=descriptions["gemini_dialogue"])
    async def gemini_dialogue(
        topic: str,
        context: str,
        questions: list[str],
        perspective: str | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_dialogue",
            topic=topic,
            context=context,
            questions=questions,
            perspective=perspective,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_test", description=descriptions["gemini_test"])
    async def gemini_test(
        test_type: Literal["unit", "integration", "e2e", "all"],
        scope: str,
        coverage_threshold: float = 80,
        generate_missing: bool = False,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_test",
            test_type=test_type,
            scope=scope,
            coverage_threshold=coverage_threshold,
            generate_missing=generate_missing,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_document", description=descriptions["gemini_document"])
    async def gemini_document(
        scope: str,
        format: Literal["markdown", "jsdoc", "readme", "api"],  # noqa: A002
        sections: list[str] | None = None,
        include_examples: bool = True,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_document",
            scope=scope,
            format=format,
            sections=sections,
            include_examples=include_examples,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_analyze", description=descriptions["gemini_analyze"])
    async def gemini_analyze(
        path: str,
        depth: Depth = "medium",
        focus: Literal[
            "architecture",
            "patterns",
            "dependencies",
            "security",
            "performance",
            "all",
        ] = "all",
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        return await forward(
            "gemini_analyze",
            path=path,
            depth=depth,
            focus=focus,
            timeout_ms=timeout_ms,
        )

    @mcp.tool(name="gemini_continue", description=descriptions["gemini_continue"])
    async def gemini_continue(session_id: str) -> dict[str, Any]:
        return await forward("gemini_continue", session_id=session_id)

    logger.info("MCP server ready: tools=%d", len(descriptions))
    return mcp


def run_stdio_server(dispatcher: ToolDispatcher) -> None:
    """Serve over stdio until the host closes the stream."""

    build_server(dispatcher).run(transport="stdio", show_banner=False)
