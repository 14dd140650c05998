"""
Abstract base class for LLM providers.
Handles structured completions and tool-calling chat.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from lifeagent.models.agent import ModelResponse, ToolCall


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """
    Decode tool-call arguments.

    Undecodable or non-object arguments are kept under "_raw" so that
    schema validation rejects them instead of the process crashing.
    """
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {"_raw": raw}
        if isinstance(parsed, dict):
            return parsed
    return {"_raw": raw}


class LLMProvider(ABC):
    """
    Abstract base for LLM providers.

    Responsibilities:
    - Text completion/generation
    - Structured output (Pydantic models)
    - Chat with tool calling

    Messages use the OpenAI chat shape ({"role", "content"}, plus
    "tool_calls" on assistant turns and "tool_call_id" on tool turns).
    Providers with another wire shape convert internally.
    """

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion from prompt.

        Args:
            prompt: The input prompt
            response_format: Optional Pydantic model for structured output
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative)
            **kwargs: Provider-specific parameters

        Returns:
            Pydantic model instance if response_format provided, else string

        Raises:
            LLMError: If the call fails or structured output cannot be parsed
        """
        pass

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> ModelResponse:
        """
        Run one chat round trip.

        Args:
            messages: Conversation so far
            tools: Function tool schemas the model may call
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            Model text and requested tool calls

        Raises:
            LLMError: If the call fails
        """
        pass

    def assistant_message(self, response: ModelResponse) -> dict[str, Any]:
        """Assistant turn carrying the tool calls of a response."""
        message: dict[str, Any] = {"role": "assistant", "content": response.text}
        if response.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in response.tool_calls
            ]
        return message

    def tool_message(self, call: ToolCall, content: str) -> dict[str, Any]:
        """Tool turn reporting the outcome of one call."""
        return {"role": "tool", "tool_call_id": call.id, "content": content}

    @abstractmethod
    async def close(self):
        """Close any open connections."""
