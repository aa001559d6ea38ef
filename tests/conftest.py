"""
Shared fixtures: a fake JSON-RPC tool service behind httpx.MockTransport and a
scripted model backend.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from orchestrator.llm_openai import EventSubscription, ModelBackend, ModelSession, SessionEvent
from tools.logs import ConnectionStatus, McpResultStore, ToolCallStore
from tools.mcp_client import McpClient


MCP_URL = "https://mcp.example.test/mcp"


class FakeToolService:
    """
    Minimal JSON-RPC tool server.

    `tools` answers tools/list; `handlers` maps remote tool name to either a
    result value or a callable(arguments) -> result. Every request is kept in
    `requests` (decoded envelopes) for assertions.
    """

    def __init__(self, tools: Optional[List[str]] = None, handlers: Optional[Dict[str, Any]] = None):
        self.tools = tools or []
        self.handlers = handlers or {}
        self.requests: List[Dict[str, Any]] = []

    @property
    def tool_calls(self) -> List[Dict[str, Any]]:
        return [r["params"] for r in self.requests if r["method"] == "tools/call"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        envelope = json.loads(request.content)
        self.requests.append(envelope)

        if envelope["method"] == "tools/list":
            result = {"tools": [{"name": name, "description": f"{name} tool"} for name in self.tools]}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": envelope["id"], "result": result})

        name = envelope["params"]["name"]
        if name not in self.handlers:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": envelope["id"], "error": {"code": -32602, "message": f"unknown tool {name}"}},
            )

        handler = self.handlers[name]
        result = handler(envelope["params"]["arguments"]) if callable(handler) else handler
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": envelope["id"], "result": result})


class ScriptedSession(ModelSession):
    """
    Model session that replays canned replies.

    Each entry in `replies` is either a string (returned from send) or a list
    of SessionEvents (published to subscribers after send).
    """

    def __init__(self, replies: List[Any], streaming: bool = False, fetched: Optional[Dict[str, str]] = None):
        self.replies = list(replies)
        self.streaming = streaming
        self.fetched = fetched or {}
        self.prompts: List[str] = []
        self.subscriptions: List[EventSubscription] = []
        self.closed = False

    def subscribe(self) -> Optional[EventSubscription]:
        if not self.streaming:
            return None
        subscription = EventSubscription(on_close=self.subscriptions.remove)
        self.subscriptions.append(subscription)
        return subscription

    async def send(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else None
        if isinstance(reply, list):
            events: List[SessionEvent] = reply
            for subscription in list(self.subscriptions):
                for event in events:
                    subscription.publish(event)
            return None
        return reply

    async def fetch_response(self, response_id: str) -> Optional[str]:
        return self.fetched.get(response_id)

    async def close(self) -> None:
        self.closed = True


class ScriptedBackend(ModelBackend):

    def __init__(self, session: ScriptedSession):
        self.session = session
        self.sessions_created = 0

    async def create_session(self) -> ModelSession:
        self.sessions_created += 1
        return self.session


@pytest.fixture
def status() -> ConnectionStatus:
    return ConnectionStatus()


@pytest.fixture
def tool_calls() -> ToolCallStore:
    return ToolCallStore()


@pytest.fixture
def results() -> McpResultStore:
    return McpResultStore()


@pytest.fixture
def make_client(status, tool_calls, results) -> Callable[..., McpClient]:
    """Factory: McpClient whose HTTP traffic goes to `handler`."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], url: Optional[str] = MCP_URL, api_key: Optional[str] = None) -> McpClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return McpClient(url, api_key, tool_calls=tool_calls, results=results, status=status, http_client=http)

    return _make


@pytest.fixture
def pricing_service() -> FakeToolService:
    """Tool service with a small ec2/azure catalog."""

    def region_pricing(arguments: Dict[str, Any]) -> Dict[str, Any]:
        return {"instanceType": arguments["instanceType"], "region": arguments["region"], "hourly": 0.096}

    return FakeToolService(
        tools=[
            "get-ec2-region-pricing",
            "get-ec2-instance-families",
            "get-azure-region-pricing",
            "get-gcp-indexes",
            "get-rds-instance-families",
            "list-something-else",
        ],
        handlers={
            "get-ec2-region-pricing": region_pricing,
            "get-azure-region-pricing": region_pricing,
            "get-ec2-instance-families": {"families": ["m5", "c5", "t3"]},
            "get-ec2-instances-for-family": {"instances": ["m5.large", "m5.xlarge"]},
            "get-ec2-indexes": {"indexes": ["compute", "memory"]},
        },
    )
