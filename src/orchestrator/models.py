"""
src/orchestrator/models.py

Pydantic models for plans, tool calls, remote tool definitions and log entries.
"""


import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolDefinition(BaseModel):

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None


class ToolCall(BaseModel):

    name: Optional[str] = None
    args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, value: Any) -> Any:
        return {} if value is None else value


class AnswerPayload(BaseModel):
    """Structured answer shape the model is asked to use for pricing and comparisons."""

    model_config = ConfigDict(extra="allow")

    message: Optional[str] = None
    table: Optional[List[List[Any]]] = None
    comparable_options: Optional[List[Dict[str, Any]]] = None
    note: Optional[str] = None


class AskClarifyingQuestion(BaseModel):

    action: Literal["ask_clarifying_question"] = "ask_clarifying_question"
    question: Optional[str] = None


class DirectAnswer(BaseModel):

    action: Literal["direct_answer"] = "direct_answer"
    answer: Any = None

    @property
    def structured(self) -> Optional[AnswerPayload]:
        """The answer as an AnswerPayload, when it is an object carrying a message."""

        if isinstance(self.answer, dict) and "message" in self.answer:
            try:
                return AnswerPayload.model_validate(self.answer)
            except ValueError:
                return None
        return None

    def content(self) -> Optional[str]:
        """
        Text handed back to the caller: free text as-is, anything structured as
        its JSON form so the front-end can render tables and options.
        """

        if self.answer is None:
            return None
        if isinstance(self.answer, str):
            return self.answer

        return json.dumps(self.answer, ensure_ascii=False)


class CallTools(BaseModel):

    action: Literal["call_tools"] = "call_tools"
    calls: Optional[List[ToolCall]] = None


class UnrecognizedPlan(BaseModel):

    action: Optional[str] = None


Plan = Union[AskClarifyingQuestion, DirectAnswer, CallTools, UnrecognizedPlan]


class ToolCallLogEntry(BaseModel):

    name: str
    arguments_json: str
    duration: timedelta
    timestamp: datetime
    succeeded: bool
    error_message: Optional[str] = None


class McpResultLogEntry(BaseModel):

    tool_name: str
    raw_result_json: str
    timestamp: datetime
