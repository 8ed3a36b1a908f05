"""HTTP client for the protocol endpoint."""

import itertools
import logging
from typing import Any

import httpx
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, ErrorData

logger = logging.getLogger(__name__)


def _bridge_error(message: str, data: Any = None) -> McpError:
    return McpError(ErrorData(code=INTERNAL_ERROR, message=message, data=data))


class BackendClient:
    """Forwards JSON-RPC calls to POST /api/mcp with a bearer token.

    Every failure surfaces as McpError with code -32603 so the editor sees a
    well-formed protocol error.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one request and return its result object.

        Raises:
            McpError: On transport, HTTP or JSON-RPC errors
        """
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            payload["params"] = params

        try:
            response = await self._client.post(self.endpoint, json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning(f"Backend unreachable for {method}: {type(e).__name__}")
            raise _bridge_error(f"Backend unreachable: {type(e).__name__}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            raise _bridge_error(
                str(error.get("message", "Backend error")),
                {"backend_code": error.get("code"), "status": response.status_code},
            )

        if response.status_code >= 400:
            raise _bridge_error(f"Backend returned HTTP {response.status_code}")

        if not isinstance(body, dict) or not isinstance(body.get("result"), dict):
            raise _bridge_error("Malformed backend response")

        return body["result"]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
