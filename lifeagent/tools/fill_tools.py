"""
Fill tools: let the model route free text into blocks.
"""

from typing import Any

from pydantic import Field

from lifeagent.services.content_analyzer import ContentAnalyzer
from lifeagent.services.fill_engine import FillDecisionEngine
from lifeagent.tools.registry import ToolContext, ToolDefinition, ToolParams, ToolRegistry


class FillParams(ToolParams):
    content: str = Field(..., description="The user's raw statement")


def register_fill_tools(
    registry: ToolRegistry, fill_engine: FillDecisionEngine, analyzer: ContentAnalyzer
) -> None:
    """Register fill tools."""

    async def intelligent_fill(params: FillParams, context: ToolContext) -> dict[str, Any]:
        result = await fill_engine.analyze_and_fill(params.content, context.user_id)
        return {
            "action": result.action.value,
            "block": result.block.model_dump(mode="json"),
            "confidence": result.confidence,
            "reasoning": result.reasoning,
        }

    async def get_fill_suggestions(params: FillParams, context: ToolContext) -> dict[str, Any]:
        suggestion = await fill_engine.get_fill_suggestions(params.content, context.user_id)
        return suggestion.model_dump(mode="json")

    async def analyze_content(params: FillParams, context: ToolContext) -> dict[str, Any]:
        analysis = await analyzer.analyze(params.content)
        return analysis.model_dump(mode="json")

    tools = [
        (
            "intelligent_fill",
            "File a statement into the best block: create a new one or update/append an existing one",
            intelligent_fill,
        ),
        (
            "get_fill_suggestions",
            "Preview where a statement would be filed without writing anything",
            get_fill_suggestions,
        ),
        ("analyze_content", "Extract intent, category, priority, time and keywords from text", analyze_content),
    ]

    for name, description, handler in tools:
        registry.register(
            ToolDefinition(name=name, description=description, parameters=FillParams, handler=handler)
        )
