"""Protocol endpoint - JSON-RPC 2.0 over POST /api/mcp, SSE over GET /api/mcp.

Also hosts the dashboard routes that issue and revoke protocol access tokens.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from backend.app.api.auth import resolve_protocol_context
from backend.app.api.dependencies import get_rule_service, get_user_repository
from backend.app.api.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RATE_LIMITED,
    UNAUTHORIZED,
    JsonRpcError,
    RequestId,
    error_response,
    success_response,
    text_content,
)
from backend.app.config import settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import RuleRecord, UserRepository
from backend.app.errors import AuthError, InkyError, NotFoundError, ValidationError
from backend.app.middleware.ratelimit import (
    RateLimitMiddleware,
    enforce_rate_limit,
    get_rate_limit_middleware,
)
from backend.app.security.tokens import generate_token
from backend.app.services.rules import RuleService
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mcp"])

SERVER_INFO = {"name": "inky-rules", "version": "0.1.0"}

KNOWN_METHODS = frozenset({"initialize", "tools/list", "tools/call"})

TOOLS: list[dict[str, Any]] = [
    {
        "name": "list_rules",
        "description": "List all user's rules, optionally filtered by repository",
        "inputSchema": {
            "type": "object",
            "properties": {
                "repository_id": {
                    "type": "string",
                    "description": "Optional repository ID to filter rules",
                },
            },
        },
    },
    {
        "name": "search_rules",
        "description": "Find the user's rules most relevant to a free-text query",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "What to search for"},
                "repository_id": {
                    "type": "string",
                    "description": "Optional repository ID to filter rules",
                },
                "top_k": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 20,
                    "description": "Maximum number of rules to return (default 5)",
                },
            },
            "required": ["query"],
        },
    },
]


def serialize_rule(record: RuleRecord) -> dict[str, Any]:
    """Rule fields exposed to protocol clients."""
    return {
        "id": str(record.rule_id),
        "name": record.name,
        "content": record.content,
        "version": record.version,
        "is_active": record.is_active,
        "repository_id": str(record.repository_id) if record.repository_id else None,
        "created_at": record.created_at.isoformat(),
    }


def _parse_repository_id(arguments: dict[str, Any], request_id: RequestId) -> UUID | None:
    raw = arguments.get("repository_id")
    if raw is None or raw == "":
        return None
    try:
        return UUID(str(raw))
    except ValueError as e:
        raise JsonRpcError(INVALID_PARAMS, "repository_id must be a UUID", request_id) from e


async def _call_tool(
    name: str,
    arguments: dict[str, Any],
    ctx: RequestContext,
    rule_service: RuleService,
    request_id: RequestId,
) -> dict[str, Any]:
    if name == "list_rules":
        repository_id = _parse_repository_id(arguments, request_id)
        records = await rule_service.list_rules(ctx, repository_id)
        return text_content(json.dumps([serialize_rule(r) for r in records], indent=2))

    if name == "search_rules":
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise JsonRpcError(INVALID_PARAMS, "query must be a non-empty string", request_id)

        top_k = arguments.get("top_k", 5)
        if isinstance(top_k, bool) or not isinstance(top_k, int) or not 1 <= top_k <= 20:
            raise JsonRpcError(INVALID_PARAMS, "top_k must be an integer in 1..20", request_id)

        repository_id = _parse_repository_id(arguments, request_id)
        hits = await rule_service.search(ctx, query, repository_id, top_k)
        payload = [{**serialize_rule(r), "relevance_score": score} for r, score in hits]
        return text_content(json.dumps(payload, indent=2))

    raise JsonRpcError(METHOD_NOT_FOUND, f"Unknown tool: {name}", request_id)


async def _dispatch(
    method: str,
    params: dict[str, Any],
    ctx: RequestContext,
    rule_service: RuleService,
    request_id: RequestId,
) -> dict[str, Any]:
    if method == "initialize":
        return {
            "protocolVersion": settings.mcp_protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": SERVER_INFO,
        }

    if method == "tools/list":
        return {"tools": TOOLS}

    if method == "tools/call":
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise JsonRpcError(INVALID_PARAMS, "Missing tool name", request_id)

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "arguments must be an object", request_id)

        try:
            return await _call_tool(name, arguments, ctx, rule_service, request_id)
        except ValidationError as e:
            raise JsonRpcError(INVALID_PARAMS, str(e), request_id) from e
        except NotFoundError as e:
            raise JsonRpcError(METHOD_NOT_FOUND, str(e), request_id) from e
        except InkyError as e:
            logger.warning(f"Tool {name} failed: {type(e).__name__}")
            raise JsonRpcError(INTERNAL_ERROR, f"Failed to run {name}", request_id) from e

    raise JsonRpcError(METHOD_NOT_FOUND, f"Unknown method: {method}", request_id)


def _parse_envelope(raw: bytes) -> tuple[str, dict[str, Any], RequestId]:
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise JsonRpcError(PARSE_ERROR, "Invalid JSON") from e

    if not isinstance(body, dict):
        raise JsonRpcError(INVALID_REQUEST, "Request must be a JSON object")

    request_id = body.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (str, int, type(None))):
        raise JsonRpcError(INVALID_REQUEST, "id must be a string or integer")

    method = body.get("method")
    if not isinstance(method, str) or not method:
        raise JsonRpcError(INVALID_REQUEST, "Missing method or id", request_id)

    params = body.get("params") or {}
    if not isinstance(params, dict):
        raise JsonRpcError(INVALID_PARAMS, "params must be an object", request_id)

    return method, params, request_id


@router.post("/api/mcp", response_model=None)
async def mcp_endpoint(
    request: Request,
    users: Annotated[UserRepository, Depends(get_user_repository)],
    rule_service: Annotated[RuleService, Depends(get_rule_service)],
    limiter: Annotated[RateLimitMiddleware, Depends(get_rate_limit_middleware)],
    x_user_id: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> Response:
    """JSON-RPC 2.0 protocol endpoint.

    Supports initialize, tools/list and tools/call. Notifications get an
    empty 200. Errors are returned as JSON-RPC error objects with a matching
    HTTP status.
    """
    method_label = "unknown"
    request_id: RequestId = None

    try:
        try:
            ctx = await resolve_protocol_context(
                users, x_user_id=x_user_id, authorization=authorization
            )
        except AuthError as e:
            raise JsonRpcError(UNAUTHORIZED, str(e)) from e

        allowed, retry_after = limiter.check_rate_limit(request.url.path, ctx)
        if not allowed:
            metrics.inc_mcp_request(method_label, "rate_limited")
            return error_response(
                JsonRpcError(RATE_LIMITED, "Too many requests"),
                headers={"Retry-After": str(retry_after)},
            )

        method, params, request_id = _parse_envelope(await request.body())
        method_label = method if method in KNOWN_METHODS else "other"

        if method.startswith("notifications/"):
            metrics.inc_mcp_request("notification", "success")
            return Response(status_code=status.HTTP_200_OK)

        if request_id is None:
            raise JsonRpcError(INVALID_REQUEST, "Missing method or id")

        result = await _dispatch(method, params, ctx, rule_service, request_id)
        metrics.inc_mcp_request(method_label, "success")
        return success_response(result, request_id)

    except JsonRpcError as e:
        metrics.inc_mcp_request(method_label, "error")
        return error_response(e)
    except Exception:
        logger.exception("Unexpected protocol endpoint error")
        metrics.inc_mcp_request(method_label, "error")
        return error_response(
            JsonRpcError(INTERNAL_ERROR, "An unexpected error occurred", request_id)
        )


def _sse_message(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def protocol_event_stream(
    is_disconnected: Callable[[], Awaitable[bool]],
    ping_interval: float,
) -> AsyncGenerator[str, None]:
    """Server-to-client channel: one initialized notification, then periodic pings."""
    yield _sse_message(
        {"jsonrpc": JSONRPC_VERSION, "method": "notifications/initialized", "params": {}}
    )

    while True:
        await asyncio.sleep(ping_interval)
        if await is_disconnected():
            break
        yield _sse_message(
            {
                "jsonrpc": JSONRPC_VERSION,
                "method": "ping",
                "params": {"timestamp": int(time.time() * 1000)},
            }
        )


@router.get("/api/mcp", response_model=None)
async def mcp_events(
    request: Request,
    users: Annotated[UserRepository, Depends(get_user_repository)],
    x_user_id: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> Response:
    """SSE keep-alive channel for protocol clients."""
    try:
        await resolve_protocol_context(users, x_user_id=x_user_id, authorization=authorization)
    except AuthError as e:
        return error_response(JsonRpcError(UNAUTHORIZED, str(e)))

    return StreamingResponse(
        protocol_event_stream(request.is_disconnected, settings.mcp_ping_interval_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


class TokenResponse(BaseModel):
    """Response for POST /mcp/token; the token is only ever shown here."""

    token: str
    token_id: str
    created_at: datetime
    config: dict[str, Any]


def build_editor_config(token: str, api_url: str) -> dict[str, Any]:
    """Editor configuration that launches the stdio bridge with this token."""
    return {
        "mcpServers": {
            "inky": {
                "command": "npx",
                "args": ["-y", settings.mcp_server_package],
                "env": {"API_KEY": token, "INKY_API_URL": api_url},
            },
        },
    }


@router.post("/mcp/token", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def rotate_token(
    request: Request,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> TokenResponse:
    """Issue a new access token, replacing any previous one."""
    issued = generate_token()
    created_at = datetime.now(timezone.utc)

    await users.set_token(
        ctx.user_id,
        token_id=issued.token_id,
        token_hash=issued.secret_hash,
        created_at=created_at,
    )
    logger.info(f"Rotated access token for user {ctx.user_id}")

    return TokenResponse(
        token=issued.token,
        token_id=issued.token_id,
        created_at=created_at,
        config=build_editor_config(issued.token, str(request.base_url).rstrip("/")),
    )


@router.delete("/mcp/token", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_token(
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> Response:
    """Revoke the caller's access token."""
    await users.set_token(ctx.user_id, token_id=None, token_hash=None, created_at=None)
    logger.info(f"Revoked access token for user {ctx.user_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

