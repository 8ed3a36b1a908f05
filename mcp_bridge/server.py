"""Stdio MCP server that proxies tool discovery and calls to the backend."""

import logging
from typing import Any

import anyio
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from mcp_bridge.client import BackendClient
from mcp_bridge.config import get_bridge_settings

logger = logging.getLogger(__name__)

SERVER_NAME = "inky-rules"


def build_server(backend: BackendClient) -> Server:
    """Wire tools/list and tools/call to the backend."""
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        result = await backend.call("tools/list")
        return [types.Tool.model_validate(tool) for tool in result.get("tools", [])]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        result = await backend.call("tools/call", {"name": name, "arguments": arguments})
        return [types.TextContent.model_validate(item) for item in result.get("content", [])]

    return server


async def serve() -> None:
    settings = get_bridge_settings()
    backend = BackendClient(
        settings.endpoint,
        settings.api_key.get_secret_value(),
        timeout=settings.request_timeout_seconds,
    )
    server = build_server(backend)
    logger.info(f"Bridging stdio to {settings.endpoint}")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await backend.aclose()


def main() -> None:
    # stdout carries the protocol; logs go to stderr
    logging.basicConfig(
        level=get_bridge_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    anyio.run(serve)


if __name__ == "__main__":
    main()
