"""
Ollama LLM provider using native ollama-python SDK.
"""

import json
from typing import Any

import ollama
from pydantic import BaseModel

from lifeagent.core.llm.base import LLMProvider, parse_tool_arguments
from lifeagent.models.agent import ModelResponse, ToolCall
from lifeagent.utils.exceptions import LLMError
from lifeagent.utils.id_generator import generate_tool_call_id
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider.

    Uses JSON mode for structured outputs and native tool calling for chat.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Model name (e.g., "llama3.1", "qwen2.5")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using Ollama.

        Structured output is requested with JSON mode plus an example object
        built from the model's JSON schema.

        Raises:
            LLMError: If the request fails or structured output parsing fails
        """
        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.get("options", {}),
        }

        format_type = None
        messages = [{"role": "user", "content": prompt}]

        if response_format:
            format_type = "json"
            example_str = json.dumps(self._example_from_schema(response_format), indent=2)

            enhanced_prompt = f"""{prompt}

You MUST respond with valid JSON matching this structure:
{example_str}

IMPORTANT:
- Replace placeholder values like "<field_name>" with actual content
- Use null for values you cannot determine
- Return ONLY valid JSON, no markdown formatting or extra text
- Do not return the schema itself, return actual data"""

            messages = [{"role": "user", "content": enhanced_prompt}]

        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                format=format_type,
                options=options,
                **{k: v for k, v in kwargs.items() if k != "options"},
            )
        except Exception as e:
            logger.error(
                f"Ollama completion error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise LLMError(f"Ollama completion error: {e}") from e

        content = response["message"]["content"]

        if response_format:
            try:
                return response_format.model_validate_json(self._extract_json(content))
            except Exception as e:
                raise LLMError(
                    f"Failed to parse structured output: {e}",
                    context={
                        "raw_response": content[:500],
                        "expected_format": response_format.__name__,
                    },
                ) from e

        return content

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> ModelResponse:
        """
        Chat with native Ollama tool calling.

        Raises:
            LLMError: If the request fails
        """
        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                tools=tools or None,
                options={"temperature": temperature, "num_predict": max_tokens},
                **kwargs,
            )
        except Exception as e:
            logger.error(
                f"Ollama chat error: {e}",
                extra={"model": self.model, "host": self.host, "error": str(e)},
            )
            raise LLMError(f"Ollama chat error: {e}") from e

        message = response["message"]
        tool_calls = [
            ToolCall(
                id=generate_tool_call_id(),
                name=call["function"]["name"],
                arguments=parse_tool_arguments(call["function"]["arguments"]),
            )
            for call in (message.get("tool_calls") or [])
        ]

        return ModelResponse(text=message.get("content") or "", tool_calls=tool_calls)

    def assistant_message(self, response: ModelResponse) -> dict[str, Any]:
        """Ollama expects tool-call arguments as objects and no call ids."""
        message: dict[str, Any] = {"role": "assistant", "content": response.text}
        if response.tool_calls:
            message["tool_calls"] = [
                {"function": {"name": call.name, "arguments": call.arguments}}
                for call in response.tool_calls
            ]
        return message

    def tool_message(self, call: ToolCall, content: str) -> dict[str, Any]:
        return {"role": "tool", "content": content, "tool_name": call.name}

    @staticmethod
    def _example_from_schema(response_format: type[BaseModel]) -> dict[str, Any]:
        example = {}
        properties = response_format.model_json_schema().get("properties", {})

        for field_name, field_info in properties.items():
            field_type = field_info.get("type", "string")

            if field_type == "string":
                example[field_name] = f"<{field_name}>"
            elif field_type in ("number", "integer"):
                example[field_name] = 0.5 if "confidence" in field_name else 1
            elif field_type == "boolean":
                example[field_name] = True
            elif field_type == "array":
                example[field_name] = []
            elif field_type == "object":
                example[field_name] = {}
            else:
                example[field_name] = None

        return example

    def _extract_json(self, content: str) -> str:
        """
        Extract JSON from content that might have markdown formatting.

        Args:
            content: Raw content that may contain JSON

        Returns:
            Cleaned JSON string
        """
        content = content.strip()

        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()

        return content

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
