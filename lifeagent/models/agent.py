"""
Models for the agent loop: chat turns, tool calls and tool results.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChatRole(str, Enum):
    """Conversation roles kept in history."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatTurn(BaseModel):
    """One entry of conversation history."""

    role: ChatRole
    content: str

    def to_message(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelResponse(BaseModel):
    """Language model reply: text plus any requested tool calls."""

    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)


class ToolResult(BaseModel):
    """Outcome of one tool invocation within a turn."""

    tool_call: ToolCall
    result: Any = None
    error: str | None = None
    success: bool
    timestamp: datetime = Field(default_factory=datetime.now)


class AgentState(str, Enum):
    """Agent loop states."""

    IDLE = "idle"
    BUILDING_CONTEXT = "building_context"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    RESPONDING = "responding"


class SystemStats(BaseModel):
    """Lightweight stats included in the system prompt."""

    active_projects: int = 0
    pending_tasks: int = 0
    total_blocks: int = 0
    recent_activity: int = 0


class AgentResponse(BaseModel):
    """Result of one agent turn."""

    message: str
    tool_results: list[ToolResult] = Field(default_factory=list)
    success: bool
