"""Tests for the stdio bridge's backend client."""

import json

import httpx
import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from mcp_bridge.client import BackendClient
from mcp_bridge.config import BridgeSettings
from mcp_bridge.server import build_server

ENDPOINT = "https://inky.test/api/mcp"

TOOLS = [
    {
        "name": "list_rules",
        "description": "List rules",
        "inputSchema": {"type": "object", "properties": {}},
    }
]


def _client(handler) -> BackendClient:  # type: ignore[no-untyped-def]
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BackendClient(ENDPOINT, "inky_abc_secret", client=http)


@pytest.mark.asyncio
async def test_call_forwards_request_with_bearer() -> None:
    """Test the JSON-RPC envelope and credentials sent to the backend."""
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == httpx.URL(ENDPOINT)
        assert request.headers["Authorization"] == "Bearer inky_abc_secret"
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"tools": TOOLS}})

    client = _client(handler)

    result = await client.call("tools/list")
    await client.call("tools/call", {"name": "list_rules", "arguments": {}})

    assert result == {"tools": TOOLS}
    assert seen[0] == {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}
    assert seen[1]["id"] == 2
    assert seen[1]["params"] == {"name": "list_rules", "arguments": {}}


@pytest.mark.asyncio
async def test_backend_jsonrpc_error_becomes_internal_error() -> None:
    """Test a backend error object surfaces as McpError -32603."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401,
            json={"jsonrpc": "2.0", "id": None, "error": {"code": -32001, "message": "Unauthorized"}},
        )

    with pytest.raises(McpError) as exc_info:
        await _client(handler).call("tools/list")

    assert exc_info.value.error.code == types.INTERNAL_ERROR
    assert exc_info.value.error.message == "Unauthorized"
    assert exc_info.value.error.data == {"backend_code": -32001, "status": 401}


@pytest.mark.asyncio
async def test_http_error_without_body_becomes_internal_error() -> None:
    """Test a non-JSON HTTP failure surfaces as McpError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(McpError) as exc_info:
        await _client(handler).call("tools/list")

    assert exc_info.value.error.code == types.INTERNAL_ERROR
    assert "502" in exc_info.value.error.message


@pytest.mark.asyncio
async def test_transport_error_becomes_internal_error() -> None:
    """Test connection failures surface as McpError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(McpError) as exc_info:
        await _client(handler).call("tools/list")

    assert exc_info.value.error.code == types.INTERNAL_ERROR


@pytest.mark.asyncio
async def test_list_tools_handler_proxies_backend_catalog() -> None:
    """Test the stdio server's tools/list handler returns the backend's tools."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"tools": TOOLS}})

    server = build_server(_client(handler))
    list_handler = server.request_handlers[types.ListToolsRequest]

    result = await list_handler(types.ListToolsRequest(method="tools/list"))

    assert [tool.name for tool in result.root.tools] == ["list_rules"]


def test_bridge_settings_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test settings read the editor environment and build the endpoint URL."""
    monkeypatch.setenv("API_KEY", "inky_a_b")
    monkeypatch.setenv("INKY_API_URL", "https://rules.example.com/")

    settings = BridgeSettings()  # type: ignore[call-arg]

    assert settings.api_key.get_secret_value() == "inky_a_b"
    assert settings.endpoint == "https://rules.example.com/api/mcp"
