"""
src/context/loader.py

Startup probes: load the remote tool catalog, start the model backend, and
optionally push a debug prompt through the whole turn loop. Each probe records
its outcome in the ConnectionStatus and never raises.
"""


import logging
from typing import List, Optional

from orchestrator.agent import PricingAgent
from orchestrator.llm_openai import ModelBackend
from orchestrator.models import ToolDefinition
from tools.logs import ConnectionStatus
from tools.mcp_client import McpClient, McpError


logger = logging.getLogger(__name__)


async def load_tool_catalog(client: McpClient, status: ConnectionStatus) -> List[ToolDefinition]:
    """Fetch the remote tool list into the status record; [] when the service is unreachable."""

    try:
        tools = await client.list_tools()
    except McpError as e:
        status.mark_mcp_failed(str(e))
        logger.error("Failed to load MCP tools: %s", e)
        return []

    status.set_mcp_tools(tools)
    status.mark_mcp_connected()
    logger.info("MCP tools loaded %d", len(tools))

    return tools


async def start_model_backend(backend: ModelBackend, status: ConnectionStatus) -> None:

    try:
        await backend.start()
    except Exception as e:
        status.mark_model_failed(str(e))
        logger.exception("Model backend failed to start")


async def run_debug_prompt(agent: PricingAgent, prompt: Optional[str]) -> Optional[str]:
    """Send `prompt` through the agent once and log the reply. No-op when blank."""

    if not prompt or not prompt.strip():
        return None

    logger.info("Sending debug prompt: %s", prompt)
    try:
        response = await agent.handle(prompt)
    except Exception:
        logger.exception("Debug prompt failed")
        return None

    logger.info("Debug prompt response: %s", response)

    return response
