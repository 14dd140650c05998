"""
Tool registry: named tools with pydantic parameter models.

The parameter model is the single schema: rendered with
model_json_schema() for the language model and used with
model_validate() at invocation.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from lifeagent.utils.exceptions import NotFoundError, ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class ToolParams(BaseModel):
    """Base for tool parameter models. Unknown arguments are rejected."""

    model_config = ConfigDict(extra="forbid")


class ToolContext(BaseModel):
    """Caller context passed to every handler; the model never supplies user ids."""

    user_id: str


ToolHandler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


class ToolDefinition(BaseModel):
    """A callable tool."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: type[BaseModel]
    handler: ToolHandler

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function-tool schema."""
        parameters = self.parameters.model_json_schema()
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


class ToolRegistry:
    """Name -> ToolDefinition map with validated execution."""

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.warning(f"Overwriting tool {tool.name}", extra={"tool": tool.name})
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_all(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        """
        Validate arguments and run a tool.

        Raises:
            NotFoundError: If no tool has this name
            ValidationError: If arguments do not match the tool's parameter model
        """
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError(f"Tool {name} not found", context={"tool": name})

        try:
            validated = tool.parameters.model_validate(params or {})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid arguments for {name}: {e.errors(include_url=False)}",
                context={"tool": name},
            ) from e

        logger.debug(f"Executing tool {name}", extra={"tool": name, "user_id": context.user_id})
        return await tool.handler(validated, context)
