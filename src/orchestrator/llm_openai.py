"""
src/orchestrator/llm_openai.py

Model backend for the assistant.

- ModelBackend / ModelSession: what the orchestrator needs from a model backend
  (create a session, send a prompt, optionally stream events back, optionally
  fetch a response by id)
- SessionEvent variants: MessageDelta, MessageFinal, SessionError, Idle
- OpenAIBackend: Chat Completions implementation, streaming or synchronous
"""


import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Literal, Optional, Set, Union

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from tools.logs import ConnectionStatus


logger = logging.getLogger(__name__)


class ModelBackendError(Exception):
    """The backend was used before it was started, or could not create a session."""


# -------- Session events ----------------------------------------------------------
class MessageDelta(BaseModel):

    type: Literal["message_delta"] = "message_delta"
    text: str = ""


class MessageFinal(BaseModel):

    type: Literal["message_final"] = "message_final"
    text: str = ""
    has_tool_requests: bool = False


class SessionError(BaseModel):

    type: Literal["error"] = "error"
    message: Optional[str] = None


class Idle(BaseModel):

    type: Literal["idle"] = "idle"


SessionEvent = Union[MessageDelta, MessageFinal, SessionError, Idle]

# Text prefix for model failures reported as a reply instead of an exception
MODEL_ERROR_PREFIX = "Model error:"

_END_OF_STREAM = object()


class EventSubscription:
    """
    Queue-backed stream of events for one listener.

    Iterate with `async for`; `close()` detaches the listener from its session
    and ends the iteration, waking a reader that is already waiting.
    """

    def __init__(self, on_close: Optional[Callable[["EventSubscription"], None]] = None):

        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._on_close = on_close
        self.closed = False

    def publish(self, event: SessionEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_END_OF_STREAM)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self) -> "EventSubscription":
        return self

    async def __anext__(self) -> SessionEvent:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is _END_OF_STREAM:
            raise StopAsyncIteration
        return event


# -------- Interfaces --------------------------------------------------------------
class ModelSession(ABC):

    def subscribe(self) -> Optional[EventSubscription]:
        """Start listening for events. None when the session cannot stream."""

        return None

    @abstractmethod
    async def send(self, prompt: str) -> Optional[str]:
        """
        Submit a prompt. Returns the response text when the backend answers
        synchronously, a response id to fetch later, or None when the answer
        arrives as events.
        """

    async def fetch_response(self, response_id: str) -> Optional[str]:
        return None

    async def close(self) -> None:
        return None


class ModelBackend(ABC):

    async def start(self) -> None:
        return None

    @abstractmethod
    async def create_session(self) -> ModelSession:
        ...

    async def aclose(self) -> None:
        return None


# -------- OpenAI ------------------------------------------------------------------
class OpenAISession(ModelSession):
    """
    One Chat Completions conversation per prompt; nothing is carried between prompts.

    A subscription receives the events of the next `send()` only: `send()`
    takes the subscriptions opened since the previous send and streams its
    completion to them alone, so concurrent prompts never see each other's
    events.
    """

    def __init__(self, client: AsyncOpenAI, model: str, *, stream: bool = True, temperature: float = 0.2):

        self._client = client
        self._model = model
        self._stream = stream
        self._temperature = temperature
        self._subscriptions: List[EventSubscription] = []
        self._unbound: List[EventSubscription] = []
        self._pending: Set["asyncio.Task[None]"] = set()

    def subscribe(self) -> Optional[EventSubscription]:

        if not self._stream:
            return None

        subscription = EventSubscription(on_close=self._detach)
        self._subscriptions.append(subscription)
        self._unbound.append(subscription)

        return subscription

    def _detach(self, subscription: EventSubscription) -> None:

        self._subscriptions.remove(subscription)
        if subscription in self._unbound:
            self._unbound.remove(subscription)

    async def send(self, prompt: str) -> Optional[str]:

        messages = [{"role": "user", "content": prompt}]

        if not self._stream:
            try:
                resp = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=self._temperature,
                )
            except OpenAIError as e:
                logger.error("Model request failed: %s", e)
                return f"{MODEL_ERROR_PREFIX} {e}"
            return resp.choices[0].message.content

        listeners, self._unbound = self._unbound, []
        task = asyncio.create_task(self._pump(messages, listeners))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        return None

    @staticmethod
    def _publish(listeners: List[EventSubscription], event: SessionEvent) -> None:

        logger.debug("Model event %s %s", event.type, event.model_dump_json())
        for subscription in listeners:
            subscription.publish(event)

    async def _pump(self, messages: List[dict], listeners: List[EventSubscription]) -> None:
        """Stream one completion into `listeners` as events."""

        parts: List[str] = []
        has_tool_requests = False
        try:
            stream = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=self._temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is None:
                    continue
                if delta.tool_calls:
                    has_tool_requests = True
                if delta.content:
                    parts.append(delta.content)
                    self._publish(listeners, MessageDelta(text=delta.content))
        except OpenAIError as e:
            logger.error("Model request failed: %s", e)
            self._publish(listeners, SessionError(message=str(e)))
            return
        except Exception as e:
            logger.exception("Model stream failed")
            self._publish(listeners, SessionError(message=str(e)))
            return

        self._publish(listeners, MessageFinal(text="".join(parts), has_tool_requests=has_tool_requests))
        self._publish(listeners, Idle())

    async def close(self) -> None:

        for task in list(self._pending):
            task.cancel()
        for subscription in list(self._subscriptions):
            subscription.close()


class OpenAIBackend(ModelBackend):

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        *,
        stream: bool = True,
        status: Optional[ConnectionStatus] = None,
    ):

        self.model = model
        self.api_key = api_key
        self.stream = stream
        self.status = status
        self._client: Optional[AsyncOpenAI] = None

    async def start(self) -> None:
        """Build the API client. Failures are recorded in the status, not raised."""

        try:
            self._client = AsyncOpenAI(api_key=self.api_key)
        except OpenAIError as e:
            logger.error("Model backend failed to start: %s", e)
            if self.status is not None:
                self.status.mark_model_failed(str(e))
            return

        if self.status is not None:
            self.status.mark_model_connected()
        logger.info("Model backend started (model=%s, stream=%s)", self.model, self.stream)

    async def create_session(self) -> ModelSession:

        if self._client is None:
            raise ModelBackendError("Model backend is not started.")

        return OpenAISession(self._client, self.model, stream=self.stream)

    async def aclose(self) -> None:

        if self._client is not None:
            await self._client.close()
            self._client = None
