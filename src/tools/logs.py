"""
src/tools/logs.py - call/result history and connection status

Provides:
- ToolCallStore: the most recent remote tool calls (success or failure, with timings)
- McpResultStore: the most recent raw remote results
- ConnectionStatus: last-known connectivity of the remote tool service and the model backend

All three are written from request handlers and read by the status screens, so
every mutation goes through a lock. None of them influence control flow.
"""


import threading
from collections import deque
from typing import Any, Deque, Dict, Generic, List, Optional, Sequence, TypeVar

from orchestrator.models import McpResultLogEntry, ToolCallLogEntry, ToolDefinition
from config import MCP_RESULT_LOG_CAPACITY, TOOL_CALL_LOG_CAPACITY


T = TypeVar("T")


class _RingBuffer(Generic[T]):

    def __init__(self, capacity: int):

        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: Deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def add(self, entry: T) -> None:
        # deque(maxlen) drops the oldest entry on overflow
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> List[T]:
        """Snapshot, oldest first."""

        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ToolCallStore(_RingBuffer[ToolCallLogEntry]):

    def __init__(self, capacity: int = TOOL_CALL_LOG_CAPACITY):
        super().__init__(capacity)


class McpResultStore(_RingBuffer[McpResultLogEntry]):

    def __init__(self, capacity: int = MCP_RESULT_LOG_CAPACITY):
        super().__init__(capacity)


class ConnectionStatus:
    """
    Process-wide connectivity record.

    Writers: the startup probes (context.loader) and every McpClient call.
    Readers only ever get a snapshot; fields are updated one at a time, so a
    reader may see a mix of old and new values but never an invalid one.
    """

    def __init__(self):

        self._lock = threading.Lock()
        self._mcp_connected = False
        self._mcp_error: Optional[str] = None
        self._mcp_tools: List[ToolDefinition] = []
        self._model_connected = False
        self._model_error: Optional[str] = None

    # --- Remote tool service ----------------------------------------------------
    def mark_mcp_connected(self) -> None:
        with self._lock:
            self._mcp_connected = True
            self._mcp_error = None

    def mark_mcp_failed(self, error: str) -> None:
        with self._lock:
            self._mcp_connected = False
            self._mcp_error = error

    def set_mcp_tools(self, tools: Sequence[ToolDefinition]) -> None:
        with self._lock:
            self._mcp_tools = list(tools)

    # --- Model backend ----------------------------------------------------------
    def mark_model_connected(self) -> None:
        with self._lock:
            self._model_connected = True
            self._model_error = None

    def mark_model_failed(self, error: str) -> None:
        with self._lock:
            self._model_connected = False
            self._model_error = error

    # --- Read side --------------------------------------------------------------
    @property
    def mcp_connected(self) -> bool:
        return self._mcp_connected

    @property
    def mcp_error(self) -> Optional[str]:
        return self._mcp_error

    @property
    def mcp_tools(self) -> List[ToolDefinition]:
        with self._lock:
            return list(self._mcp_tools)

    @property
    def model_connected(self) -> bool:
        return self._model_connected

    @property
    def model_error(self) -> Optional[str]:
        return self._model_error

    def snapshot(self) -> Dict[str, Any]:
        """Shape served by the health endpoint."""

        with self._lock:
            return {
                "mcp": {
                    "connected": self._mcp_connected,
                    "error": self._mcp_error,
                    "tools": [tool.name for tool in self._mcp_tools],
                },
                "model": {
                    "connected": self._model_connected,
                    "error": self._model_error,
                },
            }


# Shared by the app process; tests build their own instances
connection_status = ConnectionStatus()
