"""
src/orchestrator/router.py

Tool execution bridge: maps a validated ToolCall from the model's plan onto the
catalog functions, resolving which provider the call is about.
"""


from typing import Any, Dict

from context.selectors import extract_provider
from orchestrator.models import ToolCall
from tools import catalog
from tools.mcp_client import McpClient


def resolve_provider(args: Dict[str, Any], user_text: str) -> str:
    """Explicit `provider` argument, else a provider named in the user's text, else aws."""

    explicit = catalog.string_arg(args, "provider")
    if explicit and explicit.strip():
        return catalog.normalize_provider(explicit)

    return catalog.normalize_provider(extract_provider(user_text))


async def execute_tool_call(client: McpClient, call: ToolCall, user_text: str) -> Any:
    """
    Run one allow-listed tool call. Unsupported operations come back as
    {"error": ...}; client failures propagate.
    """

    args = call.args or {}
    provider = resolve_provider(args, user_text)
    name = (call.name or "").lower()

    if name == "list_providers":
        return await catalog.list_providers(client)
    elif name == "list_families":
        return await catalog.list_families(client, provider)
    elif name == "search_instances":
        return await catalog.search_instances(client, provider, args)
    elif name == "get_pricing":
        return await catalog.get_pricing(client, provider, args)
    elif name == "compare_instances":
        return await catalog.compare_instances(client, provider, args)

    return {"error": f"Unsupported tool {call.name}"}
