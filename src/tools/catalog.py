"""
src/tools/catalog.py - pricing catalog tools

Maps the five abstract tools the model can request onto the provider-specific
tools the remote catalog service actually implements.

Provides:
- list_providers(client): providers that have any get-<provider>-... tool
- list_families(client, provider): instance families for a provider
- search_instances(client, provider, args): instances in a family, or the provider index
- get_pricing(client, provider, args): hourly price/specs for one instance type in a region
- compare_instances(client, provider, args): get_pricing for several instance types, in order
- normalize_provider(value): fold aliases (ec2, google) onto canonical provider names

Key ideas:

1) Fixed tables
   Each abstract operation has its own provider -> remote tool table. A provider
   missing from a table simply cannot do that operation; callers get a
   structured {"error": ...} back instead of an exception, so the model can
   explain the limitation to the user.

2) No state
   Every function takes the McpClient explicitly. Failures from the client
   itself (transport, protocol) are not caught here.
"""


from __future__ import annotations
import json
from typing import Any, Dict, List, Mapping, Optional

from config import DEFAULT_PROVIDER
from tools.mcp_client import McpClient


# --- Provider tables ------------------------------------------------------------
PROVIDER_ALIASES: Dict[str, str] = {
    "ec2": "aws",
    "google": "gcp",
}

FAMILIES_TOOLS: Dict[str, str] = {
    "aws": "get-ec2-instance-families",
    "azure": "get-azure-instance-families",
    "gcp": "get-gcp-instance-families",
    "rds": "get-rds-instance-families",
    "elasticache": "get-elasticache-instance-families",
    "opensearch": "get-opensearch-instance-families",
}

INSTANCES_FOR_FAMILY_TOOLS: Dict[str, str] = {
    "aws": "get-ec2-instances-for-family",
    "azure": "get-azure-instances-for-family",
    "gcp": "get-gcp-instances-for-family",
    "rds": "get-rds-instances-for-family",
    "elasticache": "get-elasticache-instances-for-family",
    "opensearch": "get-opensearch-instances-for-family",
}

INDEXES_TOOLS: Dict[str, str] = {
    "aws": "get-ec2-indexes",
    "azure": "get-azure-indexes",
    "gcp": "get-gcp-indexes",
    "rds": "get-rds-indexes",
    "elasticache": "get-elasticache-indexes",
    "opensearch": "get-opensearch-indexes",
}

REGION_PRICING_TOOLS: Dict[str, str] = {
    "aws": "get-ec2-region-pricing",
    "azure": "get-azure-region-pricing",
    "gcp": "get-gcp-region-pricing",
    "rds": "get-rds-region-pricing",
    "elasticache": "get-elasticache-region-pricing",
    "opensearch": "get-opensearch-region-pricing",
    "redshift": "get-redshift-region-pricing",
}


def _unsupported(tool: str) -> Dict[str, str]:
    return {"error": f"Provider not supported for {tool}."}


# --- Argument helpers -----------------------------------------------------------
def _stringify(value: Any) -> str:

    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)

    return str(value)


def string_arg(args: Mapping[str, Any], name: str) -> Optional[str]:
    """Argument `name` as text, or None when absent/null."""

    value = args.get(name)
    if value is None:
        return None

    return _stringify(value)


def string_list_arg(args: Mapping[str, Any], name: str) -> List[str]:
    """Argument `name` as a list of non-blank strings; a scalar becomes a one-item list."""

    value = args.get(name)
    if value is None:
        return []

    items = value if isinstance(value, (list, tuple)) else [value]
    out = []
    for item in items:
        if item is None:
            continue
        text = _stringify(item)
        if text.strip():
            out.append(text)

    return out


def normalize_provider(value: Optional[str]) -> str:
    """
    Canonical provider token.

    Blank -> the default provider (aws). Matching is case-insensitive, known
    aliases fold onto their canonical name and anything else passes through
    lower-cased, so normalising twice changes nothing.
    """

    if value is None or not value.strip():
        return DEFAULT_PROVIDER.value

    lower = value.strip().lower()

    return PROVIDER_ALIASES.get(lower, lower)


# --- Public API -----------------------------------------------------------------
async def list_providers(client: McpClient) -> Dict[str, Any]:
    """Providers derived from the remote catalog's get-<provider>-... tool names."""

    tools = await client.list_tools()
    providers = set()

    for tool in tools:
        if not tool.name.lower().startswith("get-"):
            continue
        parts = [p.strip() for p in tool.name.split("-") if p.strip()]
        if len(parts) < 2:
            continue
        providers.add(normalize_provider(parts[1]))

    return {"providers": sorted(providers)}


async def list_families(client: McpClient, provider: str) -> Any:

    tool = FAMILIES_TOOLS.get(provider)
    if tool is None:
        return _unsupported("list_families")

    return await client.call_tool(tool)


async def search_instances(client: McpClient, provider: str, args: Mapping[str, Any]) -> Any:
    """
    With a `family`, list that family's instances; otherwise return the
    provider's index. Other search filters are left to the model to apply
    over the returned data.
    """

    family = string_arg(args, "family")
    if family and family.strip():
        tool = INSTANCES_FOR_FAMILY_TOOLS.get(provider)
        if tool is None:
            return _unsupported("search_instances")
        return await client.call_tool(tool, {"family": family})

    tool = INDEXES_TOOLS.get(provider)
    if tool is None:
        return _unsupported("search_instances")

    return await client.call_tool(tool)


async def get_pricing(client: McpClient, provider: str, args: Mapping[str, Any]) -> Any:

    instance_type = string_arg(args, "instanceType")
    region = string_arg(args, "region")

    if not instance_type or not instance_type.strip() or not region or not region.strip():
        return {"error": "instanceType and region are required for get_pricing."}

    tool = REGION_PRICING_TOOLS.get(provider)
    if tool is None:
        return _unsupported("get_pricing")

    return await client.call_tool(tool, {"instanceType": instance_type, "region": region})


async def compare_instances(client: McpClient, provider: str, args: Mapping[str, Any]) -> Any:
    """
    Region pricing for each instance type in `list`, one call at a time.

    Results keep the input order. A failing call aborts the whole comparison.
    """

    region = string_arg(args, "region")
    instance_types = string_list_arg(args, "list")

    if not region or not region.strip() or not instance_types:
        return {"error": "region and list are required for compare_instances."}

    tool = REGION_PRICING_TOOLS.get(provider)
    if tool is None:
        return _unsupported("compare_instances")

    results = []
    for instance_type in instance_types:
        result = await client.call_tool(tool, {"instanceType": instance_type, "region": region})
        results.append({"instanceType": instance_type, "result": result})

    return {"region": region, "provider": provider, "results": results}
