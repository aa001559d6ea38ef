"""
src/app.py

Chat front-end (Gradio) mounted on a FastAPI app that also serves /health.

Tabs:
- Chat: ask pricing questions
- Status: connectivity of the tool service and the model backend
- Tool calls / Raw results: recent remote calls, for troubleshooting
"""


import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List

import gradio as gr
import uvicorn
from fastapi import FastAPI

import config
from context.loader import load_tool_catalog, run_debug_prompt, start_model_backend
from orchestrator.agent import PricingAgent
from orchestrator.llm_openai import ModelBackend, OpenAIBackend
from orchestrator.models import AnswerPayload
from tools.logs import ConnectionStatus, McpResultStore, ToolCallStore, connection_status
from tools.mcp_client import McpClient


logger = logging.getLogger(__name__)

APP_TITLE = "Cloud Pricing Assistant"
APP_DESC = (
    "Ask about cloud instance prices, e.g. "
    "'price of m5.large in us-east-1' or 'compare D2s_v5 and D4s_v5 in eastus'."
)
ERROR_REPLY = "Something went wrong while answering. Please try again."


@dataclass
class Services:

    status: ConnectionStatus
    tool_calls: ToolCallStore
    results: McpResultStore
    client: McpClient
    backend: ModelBackend
    agent: PricingAgent


def build_services() -> Services:
    """Wire the process-wide services from config."""

    tool_calls = ToolCallStore()
    results = McpResultStore()
    client = McpClient(
        config.MCP_URL,
        config.MCP_API_KEY,
        config.MCP_TIMEOUT_SECONDS,
        tool_calls=tool_calls,
        results=results,
        status=connection_status,
    )
    backend = OpenAIBackend(
        config.OPENAI_MODEL,
        config.OPENAI_API_KEY,
        stream=config.OPENAI_STREAM,
        status=connection_status,
    )
    agent = PricingAgent(backend, client, response_timeout=config.MODEL_RESPONSE_TIMEOUT_SECONDS)

    return Services(connection_status, tool_calls, results, client, backend, agent)


# -------- Rendering ----------------------------------------------------------------
def _markdown_table(rows: List[List[Any]]) -> str:

    header, *body = rows
    lines = [
        "| " + " | ".join(str(c) for c in header) + " |",
        "|" + "---|" * len(header),
    ]
    for row in body:
        lines.append("| " + " | ".join(str(c) for c in row) + " |")

    return "\n".join(lines)


def render_answer(text: str) -> str:
    """Structured answers (message/table/options/note JSON) become Markdown; anything else is shown as-is."""

    try:
        data = json.loads(text)
    except ValueError:
        return text
    if not isinstance(data, dict) or "message" not in data:
        return text

    try:
        payload = AnswerPayload.model_validate(data)
    except ValueError:
        return text

    parts = [payload.message or ""]
    if payload.table:
        parts.append(_markdown_table(payload.table))
    if payload.comparable_options:
        keys = list(dict.fromkeys(k for option in payload.comparable_options for k in option))
        parts.append(_markdown_table([keys] + [[o.get(k, "") for k in keys] for o in payload.comparable_options]))
    if payload.note:
        parts.append(f"_{payload.note}_")

    return "\n\n".join(p for p in parts if p)


# -------- UI -----------------------------------------------------------------------
def make_responder(agent: PricingAgent):
    """Chat callback for gr.ChatInterface; history is ignored, each turn stands alone."""

    async def respond(message: str, history: Any) -> str:
        try:
            reply = await agent.handle(message)
        except Exception:
            logger.exception("Chat turn failed")
            return ERROR_REPLY
        return render_answer(reply)

    return respond


def build_ui(services: Services) -> gr.Blocks:

    def status_json() -> Dict[str, Any]:
        return services.status.snapshot()

    def tool_calls_json() -> List[Dict[str, Any]]:
        return [e.model_dump(mode="json") for e in reversed(services.tool_calls.entries)]

    def results_json() -> List[Dict[str, Any]]:
        return [e.model_dump(mode="json") for e in reversed(services.results.entries)]

    with gr.Blocks(title=APP_TITLE) as demo:
        gr.Markdown(f"# {APP_TITLE}")
        gr.Markdown(APP_DESC)

        with gr.Tab("Chat"):
            gr.ChatInterface(fn=make_responder(services.agent))

        for label, fn in (("Status", status_json), ("Tool calls", tool_calls_json), ("Raw results", results_json)):
            with gr.Tab(label):
                out = gr.JSON(label=label)
                refresh = gr.Button("Refresh", variant="primary")
                refresh.click(fn=fn, inputs=[], outputs=[out])

    return demo


def create_app(services: Services) -> FastAPI:

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await start_model_backend(services.backend, services.status)
        await load_tool_catalog(services.client, services.status)
        await run_debug_prompt(services.agent, config.DEBUG_PROMPT)
        yield
        await services.agent.aclose()
        await services.client.aclose()
        await services.backend.aclose()

    api = FastAPI(title=APP_TITLE, lifespan=lifespan)

    @api.get("/health")
    async def health() -> Dict[str, Any]:
        return services.status.snapshot()

    return gr.mount_gradio_app(api, build_ui(services), path="/")


if __name__ == "__main__":

    config.configure_logging()
    uvicorn.run(create_app(build_services()), host=config.APP_HOST, port=config.APP_PORT)

# EOF
