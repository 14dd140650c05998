"""
OpenAI LLM provider using official SDK.
"""

from typing import Any

from openai import AsyncOpenAI
from pydantic import BaseModel

from lifeagent.core.llm.base import LLMProvider, parse_tool_arguments
from lifeagent.models.agent import ModelResponse, ToolCall
from lifeagent.utils.exceptions import LLMError, ValidationError
from lifeagent.utils.id_generator import generate_tool_call_id
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """
    OpenAI LLM provider.

    Uses native structured outputs (Parse API) and function tools.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """
        Initialize OpenAI LLM provider.

        Args:
            api_key: OpenAI API key
            model: Model name (e.g., "gpt-4o", "gpt-4o-mini")
            organization: Optional organization ID
            base_url: Optional custom base URL
            timeout: Request timeout in seconds
        """
        self.model = model

        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using OpenAI.

        Raises:
            ValidationError: If prompt is empty
            LLMError: If OpenAI API call fails or returns nothing usable
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        params = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }

        try:
            if response_format:
                response = await self.client.beta.chat.completions.parse(
                    **params, response_format=response_format
                )

                parsed = response.choices[0].message.parsed
                if not parsed:
                    raise LLMError("OpenAI returned empty parsed response")

                return parsed

            response = await self.client.chat.completions.create(**params)
            content = response.choices[0].message.content

            if not content:
                raise LLMError("OpenAI returned empty content")

            return content
        except LLMError:
            raise
        except Exception as e:
            logger.error(
                f"OpenAI API error: {e}",
                extra={"model": self.model, "error": str(e), "error_type": type(e).__name__},
            )
            raise LLMError(f"OpenAI API error: {e}") from e

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> ModelResponse:
        """
        Chat completion with function tools.

        Raises:
            LLMError: If OpenAI API call fails
        """
        params = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**params)
        except Exception as e:
            logger.error(
                f"OpenAI chat error: {e}",
                extra={"model": self.model, "error": str(e), "error_type": type(e).__name__},
            )
            raise LLMError(f"OpenAI chat error: {e}") from e

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=call.id or generate_tool_call_id(),
                name=call.function.name,
                arguments=parse_tool_arguments(call.function.arguments),
            )
            for call in (message.tool_calls or [])
        ]

        return ModelResponse(text=message.content or "", tool_calls=tool_calls)

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
