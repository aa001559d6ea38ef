"""
src/tools/mcp_client.py - JSON-RPC client for the remote pricing/catalog tool service

Provides:
- McpClient.list_tools(): the remote tool catalog (tools/list)
- McpClient.call_tool(name, arguments): invoke one remote tool (tools/call)
- extract_json_from_sse(payload): unwrap a JSON body from text/event-stream framing

Every completed request is recorded in the ToolCallStore and flips the shared
ConnectionStatus, whatever the caller then does with the outcome. Nothing is
retried here.
"""


import json
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from orchestrator.models import McpResultLogEntry, ToolCallLogEntry, ToolDefinition
from tools.logs import ConnectionStatus, McpResultStore, ToolCallStore


logger = logging.getLogger(__name__)


class McpError(Exception):
    """Base class for remote tool service failures."""


class McpConfigurationError(McpError):
    """The service URL is not configured."""


class McpTransportError(McpError):
    """Network failure, non-success HTTP status, or a body that is not JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class McpProtocolError(McpError):
    """JSON-RPC error envelope, or a response without a result."""


# --- Event-stream framing -------------------------------------------------------
def extract_json_from_sse(payload: str) -> str:
    """
    Return the JSON document carried by an event-stream payload.

    Frames are separated by blank lines; each frame is its `data:` lines joined
    with newlines, `[DONE]` sentinels dropped. The first frame that looks like
    JSON wins, then the first frame, then the raw payload.
    """

    if not payload or not payload.strip():
        return payload

    frames: List[str] = []
    lines: List[str] = []

    for raw_line in payload.split("\n"):
        line = raw_line.rstrip("\r")
        if not line:
            if lines:
                frames.append("\n".join(lines))
                lines = []
            continue

        if line[:5].lower() != "data:":
            continue

        data = line[5:].lstrip()
        if data.upper() == "[DONE]":
            continue
        lines.append(data)

    if lines:
        frames.append("\n".join(lines))

    for frame in frames:
        if frame.lstrip().startswith(("{", "[")):
            return frame

    return frames[0] if frames else payload


def _dump_arguments(params: Any) -> str:

    if isinstance(params, dict):
        params = {k: v for k, v in params.items() if v is not None}

    return json.dumps(params, ensure_ascii=False, separators=(",", ":"), default=str)


# --- Client ---------------------------------------------------------------------
class McpClient:

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        *,
        tool_calls: ToolCallStore,
        results: McpResultStore,
        status: ConnectionStatus,
        http_client: Optional[httpx.AsyncClient] = None,
    ):

        self.url = url
        self.api_key = api_key
        self.tool_calls = tool_calls
        self.results = results
        self.status = status
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def list_tools(self) -> List[ToolDefinition]:
        """Fetch the remote tool catalog. Entries without a name are skipped."""

        result = await self._send("tools/list", None)

        tools = result.get("tools") if isinstance(result, dict) else None
        if not isinstance(tools, list):
            return []

        out = []
        for tool in tools:
            if not isinstance(tool, dict):
                continue
            name = tool.get("name")
            if isinstance(name, str) and name.strip():
                description = tool.get("description")
                out.append(ToolDefinition(name=name, description=description if isinstance(description, str) else None))

        return out

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a remote tool and return the JSON-RPC `result` value."""

        return await self._send("tools/call", {"name": name, "arguments": arguments or {}})

    def _headers(self) -> Dict[str, str]:

        headers = {"Accept": "application/json, text/event-stream"}
        if self.api_key and self.api_key.strip():
            headers["Authorization"] = f"Bearer {self.api_key}"

        return headers

    async def _send(self, method: str, params: Optional[Dict[str, Any]]) -> Any:

        if not self.url or not self.url.strip():
            raise McpConfigurationError("VANTAGE_INSTANCES_MCP_URL is not configured.")

        log_name = params["name"] if method == "tools/call" else method
        args_json = _dump_arguments(params)
        envelope = {"jsonrpc": "2.0", "method": method, "params": params, "id": uuid.uuid4().hex}

        started = time.perf_counter()
        try:
            logger.info("MCP request %s", method)
            try:
                response = await self._http.post(self.url, json=envelope, headers=self._headers())
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise McpTransportError(f"MCP request failed: {exc}") from exc

            raw = response.text
            content_type = response.headers.get("content-type", "")
            content = extract_json_from_sse(raw) if content_type.lower().startswith("text/event-stream") else raw
            elapsed = time.perf_counter() - started

            logger.info("MCP raw response %s %s", method, raw)

            if not response.is_success:
                raise McpTransportError(
                    f"MCP server returned {response.status_code}: {content}",
                    status_code=response.status_code,
                )

            try:
                root = json.loads(content)
            except ValueError as exc:
                raise McpTransportError(f"MCP response is not valid JSON: {exc}") from exc

            if isinstance(root, dict) and "error" in root:
                raise McpProtocolError(f"MCP error: {json.dumps(root['error'], ensure_ascii=False)}")

            if not isinstance(root, dict) or "result" not in root:
                raise McpProtocolError("MCP response missing result.")

        except McpError as exc:
            elapsed = time.perf_counter() - started
            self._record(log_name, args_json, elapsed, succeeded=False, error=str(exc))
            self.status.mark_mcp_failed(str(exc))
            logger.exception("MCP request failed %s", method)
            raise

        now = datetime.now(timezone.utc)
        self.results.add(McpResultLogEntry(tool_name=log_name, raw_result_json=content, timestamp=now))
        self._record(log_name, args_json, elapsed, succeeded=True)
        self.status.mark_mcp_connected()
        logger.info("MCP tool call %s %s %.1fms", log_name, args_json, elapsed * 1000)

        return root["result"]

    def _record(self, name: str, args_json: str, elapsed: float, *, succeeded: bool, error: Optional[str] = None) -> None:

        self.tool_calls.add(ToolCallLogEntry(
            name=name,
            arguments_json=args_json,
            duration=timedelta(seconds=elapsed),
            timestamp=datetime.now(timezone.utc),
            succeeded=succeeded,
            error_message=error,
        ))
