from __future__ import annotations

from typing import Any, Dict, List, Optional

import anyio
import anyio.to_thread
import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from . import __version__
from .constants import SERVER_NAME
from .schemas import TOOLS
from .tools import ToolOrchestrator


class ToolFailure(RuntimeError):
    """Carries an error-flagged tool result through the MCP server.

    The low-level server reports any exception from a tool handler as a
    result with ``isError`` set and the exception text as its content.
    """


def build_server(orchestrator: Optional[ToolOrchestrator] = None) -> Server:
    orchestrator = orchestrator or ToolOrchestrator()
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return list(TOOLS)

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        # Filesystem and crypto work is blocking; keep the event loop free
        result = await anyio.to_thread.run_sync(orchestrator.call, name, arguments)
        if result.is_error:
            raise ToolFailure(result.text)
        return [types.TextContent(type="text", text=result.text)]

    return server


async def serve(orchestrator: Optional[ToolOrchestrator] = None) -> None:
    """Run the MCP server over stdio until the client disconnects."""
    server = build_server(orchestrator)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run(orchestrator: Optional[ToolOrchestrator] = None) -> None:
    anyio.run(serve, orchestrator)
