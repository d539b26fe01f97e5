"""MCP server wiring for github-kanban-mcp.

Tool results and tool errors are both serialized to JSON text here, once, for every
tool. Errors use the envelope built by `errors.to_error_result`.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .config import load_config_from_env
from .errors import ConfigError, ToolError, to_error_result
from .tools import TOOL_METADATA, Dispatcher, build_runtime

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

server = Server("github-kanban-mcp", version=__version__)

_DISPATCHER: Dispatcher | None = None


def get_dispatcher() -> Dispatcher:
    """Build the dispatcher from the environment on first use."""
    global _DISPATCHER  # pylint: disable=global-statement
    if _DISPATCHER is None:
        _DISPATCHER = Dispatcher(build_runtime(load_config_from_env()))
    return _DISPATCHER


def set_dispatcher(dispatcher: Dispatcher | None) -> None:
    """Install (or clear) the dispatcher used by call_tool."""
    global _DISPATCHER  # pylint: disable=global-statement
    _DISPATCHER = dispatcher


def build_tools() -> list[Tool]:
    return [
        Tool(name=tool_name, description=metadata["description"], inputSchema=metadata["inputSchema"])
        for tool_name, metadata in TOOL_METADATA.items()
    ]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = build_tools()
    logger.info("Listed %s tools", len(tools))
    return tools


def to_text_content(result: Any) -> list[TextContent]:
    """Serialize a tool result into a single MCP text content item."""
    return [TextContent(type="text", text=json.dumps(result, indent=2, ensure_ascii=False, default=str))]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent.

    Failures come back as a JSON error envelope (`ok: false`, `code`, `jsonrpc_code`,
    `message`, optional `hint` and `status_code`).
    """
    if not isinstance(arguments, dict):
        arguments = {}

    logger.info("Tool called: %s", name)

    try:
        result = await get_dispatcher().dispatch(name, arguments)
    except ToolError as err:
        logger.error("Tool %s failed: %s", name, err.message)
        return to_text_content(to_error_result(err))
    return to_text_content(result)


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid host configuration.
    try:
        _ = get_dispatcher()
    except ConfigError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Lightweight self-test: tool listing and configuration loading."""
    tools = build_tools()
    config = load_config_from_env()
    print(
        f"github-kanban-mcp {__version__}: {len(tools)} tools, backend={config.backend}",
        file=sys.stderr,
    )
