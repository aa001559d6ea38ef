"""
src/tools/permissions.py - the tool allow-list

The model only ever sees five abstract tools. Plans naming anything else are
refused outright; nothing outside this list is dispatched to the remote service.

Usage:
    from tools.permissions import is_allowed_tool
    if not is_allowed_tool(call.name):
        return REFUSAL
"""


from typing import Optional, Tuple


ALLOWED_TOOLS: Tuple[str, ...] = (
    "list_providers",
    "list_families",
    "search_instances",
    "get_pricing",
    "compare_instances",
)


def is_allowed_tool(name: Optional[str]) -> bool:
    """
    Return True if `name` is one of the five abstract tools (case-insensitive).

    Args:
        name: Tool name as written by the model; None is never allowed.
    """

    if not name:
        return False

    return name.lower() in ALLOWED_TOOLS
