"""
src/orchestrator/agent.py

PricingAgent: one user message in, one reply out.

    pre-flight region check -> planning round -> (tool execution -> answering round)

The model is asked for a JSON plan; at most one round of tool calls runs per
turn. Every failure path ends in a fixed, user-safe reply.
"""


import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from config import MODEL_RESPONSE_TIMEOUT_SECONDS
from context.selectors import build_clarifying_question
from orchestrator import prompts
from orchestrator.llm_openai import (
    MODEL_ERROR_PREFIX,
    EventSubscription,
    Idle,
    MessageDelta,
    MessageFinal,
    ModelBackend,
    ModelSession,
    SessionError,
)
from orchestrator.models import (
    AskClarifyingQuestion,
    CallTools,
    DirectAnswer,
    Plan,
    ToolCall,
    UnrecognizedPlan,
)
from orchestrator.router import execute_tool_call
from tools.mcp_client import McpClient
from tools.permissions import is_allowed_tool


logger = logging.getLogger(__name__)


MODEL_ERROR_DEFAULT = f"{MODEL_ERROR_PREFIX} quota exceeded or request failed."
MODEL_TIMEOUT = "The model did not respond in time."
MODEL_NO_RESPONSE = "No response from the model."
MODEL_NO_STREAM = "The model session did not stream a response."


# -------- Parsing helpers ----------------------------------------------------------
def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```lang ... ``` fence; other text is returned as-is."""

    if not text or not text.strip():
        return text

    trimmed = text.strip()
    if not trimmed.startswith("```"):
        return text

    newline = trimmed.find("\n")
    if newline < 0:
        return text

    body = trimmed[newline + 1:]
    end = body.rfind("```")
    if end >= 0:
        return body[:end].strip()

    return body.strip()


def extract_json(text: str) -> Optional[str]:
    """First '{' to last '}' of the fence-stripped text."""

    text = strip_code_fences(text or "")
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None

    return text[start:end + 1]


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


_PLAN_TYPES = {
    "ask_clarifying_question": AskClarifyingQuestion,
    "direct_answer": DirectAnswer,
    "call_tools": CallTools,
}


def parse_plan(text: str) -> Optional[Plan]:
    """
    Decode the model's reply into a Plan, or None when it carries no usable JSON.

    Keys are matched case-insensitively; an unknown or missing action still
    parses, as UnrecognizedPlan.
    """

    raw = extract_json(text)
    if raw is None:
        return None

    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    data = _lower_keys(data)
    if isinstance(data.get("calls"), list):
        data["calls"] = [_lower_keys(c) if isinstance(c, dict) else c for c in data["calls"]]

    action = data.get("action")
    plan_type = _PLAN_TYPES.get(action.lower()) if isinstance(action, str) else None

    try:
        if plan_type is None:
            return UnrecognizedPlan(action=action if isinstance(action, str) else None)
        data["action"] = action.lower()
        return plan_type.model_validate(data)
    except ValidationError:
        return None


def sanitize_question(question: str) -> str:
    """Keep a single question: cut after the first '?', or make the text end in one."""

    trimmed = question.strip()
    index = trimmed.find("?")
    if index >= 0:
        return trimmed[:index + 1]

    if trimmed.endswith("."):
        trimmed = trimmed[:-1].rstrip()

    return trimmed + "?"


def is_model_error(response: Optional[str]) -> bool:

    return bool(response) and response.lower().startswith(MODEL_ERROR_PREFIX.lower())


def _looks_like_response_id(text: str) -> bool:

    try:
        uuid.UUID(text.strip())
    except ValueError:
        return False

    return True


def _reply_for(plan: Optional[Plan]) -> Optional[str]:
    """Reply text for question/answer plans; None for anything else."""

    if isinstance(plan, AskClarifyingQuestion) and plan.question and plan.question.strip():
        return sanitize_question(plan.question)

    if isinstance(plan, DirectAnswer):
        answer = plan.content()
        if answer and answer.strip():
            return answer

    return None


# -------- Orchestrate ---------------------------------------------------------------
class PricingAgent:

    def __init__(
        self,
        backend: ModelBackend,
        client: McpClient,
        *,
        response_timeout: float = MODEL_RESPONSE_TIMEOUT_SECONDS,
    ):

        self.backend = backend
        self.client = client
        self.response_timeout = response_timeout
        self._session: Optional[ModelSession] = None
        self._session_lock = asyncio.Lock()
        self._submit_lock = asyncio.Lock()

    async def handle(self, user_text: str) -> str:
        """Entry point: one user message, one reply."""

        clarification = build_clarifying_question(user_text)
        if clarification:
            return clarification

        plan_prompt = prompts.build_plan_prompt(user_text)
        logger.info("Plan prompt %s", plan_prompt)
        plan_response = await self._send_prompt(plan_prompt)
        if is_model_error(plan_response):
            return plan_response

        plan = parse_plan(plan_response)
        if plan is None:
            return prompts.UNPARSEABLE_PLAN

        reply = _reply_for(plan)
        if reply is not None:
            return reply

        if not isinstance(plan, CallTools) or not plan.calls:
            return prompts.NEED_MORE_DETAIL

        # Refuse the whole plan before anything runs
        if not all(is_allowed_tool(call.name) for call in plan.calls):
            return prompts.TOOL_REFUSAL

        tool_results = await self._execute(plan.calls, user_text)
        if tool_results is None:
            return prompts.TOOL_FAILURE

        answer_prompt = prompts.build_answer_prompt(user_text, tool_results)
        logger.info("Answer prompt %s", answer_prompt)
        answer_response = await self._send_prompt(answer_prompt)
        if is_model_error(answer_response):
            return answer_response

        # A call_tools plan here is ignored: one tool round per turn
        reply = _reply_for(parse_plan(answer_response))
        if reply is not None:
            return reply

        return strip_code_fences(answer_response)

    async def _execute(self, calls: List[ToolCall], user_text: str) -> Optional[List[Dict[str, Any]]]:
        """Run calls in plan order. None if any of them raises."""

        results = []
        for call in calls:
            try:
                result = await execute_tool_call(self.client, call, user_text)
            except Exception:
                logger.exception("Tool call failed %s", call.name)
                return None
            results.append({"tool": call.name, "result": result})

        return results

    # --- Model session ------------------------------------------------------------
    async def _get_session(self) -> ModelSession:

        if self._session is not None:
            return self._session

        async with self._session_lock:
            if self._session is None:
                self._session = await self.backend.create_session()

        return self._session

    async def _submit(self, session: ModelSession, prompt: str) -> Tuple[Optional[EventSubscription], Optional[str]]:
        """
        Subscribe, then send. Pairs are serialised per session so a subscription
        is always bound to its own prompt; synchronous sends are not held up.
        """

        async with self._submit_lock:
            subscription = session.subscribe()
            if subscription is not None:
                try:
                    return subscription, await session.send(prompt)
                except BaseException:
                    subscription.close()
                    raise

        return None, await session.send(prompt)

    async def _send_prompt(self, prompt: str) -> str:

        session = await self._get_session()
        subscription, sent = await self._submit(session, prompt)
        try:
            if sent and sent.strip():
                logger.info("Model response (immediate) %s", sent)
                if not _looks_like_response_id(sent):
                    return sent

            if subscription is None:
                if sent and _looks_like_response_id(sent):
                    fetched = await session.fetch_response(sent.strip())
                    if fetched and fetched.strip():
                        logger.info("Model response (fetched) %s", fetched)
                        return fetched
                return MODEL_NO_STREAM

            try:
                response = await asyncio.wait_for(self._collect(subscription), timeout=self.response_timeout)
            except asyncio.TimeoutError:
                logger.warning("Model did not respond within %ss", self.response_timeout)
                return MODEL_TIMEOUT

            logger.info("Model response (streamed) %s", response)
            return response.strip() if response.strip() else MODEL_NO_RESPONSE
        finally:
            if subscription is not None:
                subscription.close()

    @staticmethod
    async def _collect(subscription: EventSubscription) -> str:
        """Accumulate streamed text until the session signals it is done."""

        buffer = ""
        async for event in subscription:
            if isinstance(event, MessageDelta):
                buffer += event.text
            elif isinstance(event, MessageFinal):
                if event.text:
                    buffer = event.text
                if buffer:
                    return buffer
                if not event.has_tool_requests:
                    return ""
            elif isinstance(event, SessionError):
                message = event.message.strip() if event.message else ""
                buffer += f"{MODEL_ERROR_PREFIX} {message}" if message else MODEL_ERROR_DEFAULT
                return buffer
            elif isinstance(event, Idle):
                return buffer

        return buffer

    async def aclose(self) -> None:

        if self._session is not None:
            await self._session.close()
            self._session = None
