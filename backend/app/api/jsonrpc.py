"""JSON-RPC 2.0 envelopes and error codes for the protocol endpoint."""

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
UNAUTHORIZED = -32001
RATE_LIMITED = -32029

RequestId = str | int | None

_ERROR_DEFAULTS: dict[int, tuple[str, int]] = {
    PARSE_ERROR: ("Parse error", status.HTTP_400_BAD_REQUEST),
    INVALID_REQUEST: ("Invalid Request", status.HTTP_400_BAD_REQUEST),
    METHOD_NOT_FOUND: ("Method not found", status.HTTP_404_NOT_FOUND),
    INVALID_PARAMS: ("Invalid params", status.HTTP_400_BAD_REQUEST),
    INTERNAL_ERROR: ("Internal error", status.HTTP_500_INTERNAL_SERVER_ERROR),
    UNAUTHORIZED: ("Unauthorized", status.HTTP_401_UNAUTHORIZED),
    RATE_LIMITED: ("Rate limit exceeded", status.HTTP_429_TOO_MANY_REQUESTS),
}


class JsonRpcError(Exception):
    """Error to be returned as a JSON-RPC error object."""

    def __init__(self, code: int, data: str | None = None, request_id: RequestId = None) -> None:
        message, http_status = _ERROR_DEFAULTS.get(
            code, ("Server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
        )
        super().__init__(f"{code} {message}: {data}")
        self.code = code
        self.message = message
        self.data = data
        self.request_id = request_id
        self.http_status = http_status


def success_response(result: dict[str, Any], request_id: RequestId) -> JSONResponse:
    """Build a JSON-RPC result envelope."""
    return JSONResponse({"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id})


def error_response(
    error: JsonRpcError, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Build a JSON-RPC error envelope with the code's HTTP status."""
    payload: dict[str, Any] = {"code": error.code, "message": error.message}
    if error.data is not None:
        payload["data"] = error.data

    return JSONResponse(
        {"jsonrpc": JSONRPC_VERSION, "error": payload, "id": error.request_id},
        status_code=error.http_status,
        headers=headers,
    )


def text_content(text: str) -> dict[str, Any]:
    """Tool result carrying a single text item."""
    return {"content": [{"type": "text", "text": text}]}
