"""
Agent loop: one conversation turn of model calls and tool execution.

States: IDLE -> BUILDING_CONTEXT -> AWAITING_MODEL -> EXECUTING_TOOLS -> RESPONDING -> IDLE
"""

import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

from lifeagent.agent.history import ConversationHistory
from lifeagent.agent.prompts import build_system_prompt
from lifeagent.agent.stats import StatsProvider
from lifeagent.config import AgentConfig
from lifeagent.core.llm.base import LLMProvider
from lifeagent.models.agent import (
    AgentResponse,
    AgentState,
    ChatRole,
    ModelResponse,
    SystemStats,
    ToolCall,
    ToolResult,
)
from lifeagent.tools.registry import ToolContext, ToolRegistry
from lifeagent.utils.exceptions import LifeAgentError, PartialToolFailure, ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

APOLOGY = "I'm sorry, I ran into a problem processing your request. Please try again."


def compose_reply(text: str, tool_results: list[ToolResult]) -> str:
    """Final model text followed by completed and failed tool lines."""
    reply = text or ""

    completed = [r.tool_call.name for r in tool_results if r.success]
    if completed:
        reply += "\n\nCompleted: " + ", ".join(completed)

    failure = PartialToolFailure.from_results(tool_results)
    if failure is not None:
        reply += "\n\nFailed: " + failure.describe()

    return reply if text else reply.lstrip()


class AgentLoop:
    """
    Drives a conversation with a tool-calling model.

    Features:
    - Up to max_round_trips model calls per message
    - Sequential tool execution; every call yields a ToolResult
    - Bounded history, updated only on success
    """

    def __init__(
        self,
        llm: LLMProvider,
        registry: ToolRegistry,
        stats_provider: StatsProvider,
        user_id: str,
        config: AgentConfig | None = None,
        history: ConversationHistory | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ):
        """
        Initialize agent loop.

        Args:
            llm: Tool-calling language model
            registry: Tools the model may call
            stats_provider: Source of the stats shown in the system prompt
            user_id: User the conversation belongs to
            config: Round trips, history sizes and sampling settings
            history: Existing history (default: empty)
            now_fn: Clock for the system prompt
        """
        self.llm = llm
        self.registry = registry
        self.stats_provider = stats_provider
        self.user_id = user_id
        self.config = config or AgentConfig()
        self.history = history if history is not None else ConversationHistory(
            capacity=self.config.history_capacity, retain=self.config.history_retain
        )
        self.now_fn = now_fn or datetime.now
        self.state = AgentState.IDLE

    async def process_message(self, message: str) -> AgentResponse:
        """
        Handle one user message.

        Returns:
            AgentResponse; model failures produce an apology with success False

        Raises:
            ValidationError: If message is empty
        """
        if not message or not message.strip():
            raise ValidationError("Message cannot be empty")

        context = ToolContext(user_id=self.user_id)
        tool_results: list[ToolResult] = []

        try:
            self.state = AgentState.BUILDING_CONTEXT
            stats = await self._gather_stats()
            messages = self._build_messages(message, stats)
            tools = self.registry.schemas()

            response = ModelResponse()
            for _ in range(self.config.max_round_trips):
                self.state = AgentState.AWAITING_MODEL
                response = await self.llm.chat(
                    messages,
                    tools=tools,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                )
                if not response.tool_calls:
                    break

                self.state = AgentState.EXECUTING_TOOLS
                messages.append(self.llm.assistant_message(response))
                for call in response.tool_calls:
                    result = await self._run_tool(call, context)
                    tool_results.append(result)
                    messages.append(self.llm.tool_message(call, self._tool_content(result)))
        except Exception as e:
            logger.error(
                f"Agent turn failed: {e}",
                extra={"user_id": self.user_id, "state": self.state.value, "error": str(e)},
            )
            self.state = AgentState.IDLE
            return AgentResponse(message=APOLOGY, tool_results=[], success=False)

        self.state = AgentState.RESPONDING
        reply = compose_reply(response.text, tool_results)

        self.history.append(ChatRole.USER, message)
        self.history.append(ChatRole.ASSISTANT, reply)

        self.state = AgentState.IDLE

        success = not tool_results or any(r.success for r in tool_results)
        logger.info(
            f"Agent turn complete with {len(tool_results)} tool calls",
            extra={
                "user_id": self.user_id,
                "tool_calls": len(tool_results),
                "failed": sum(1 for r in tool_results if not r.success),
            },
        )
        return AgentResponse(message=reply, tool_results=tool_results, success=success)

    async def _gather_stats(self) -> SystemStats:
        try:
            return await self.stats_provider.get_system_stats(self.user_id)
        except Exception as e:
            logger.warning(
                f"Failed to gather system stats: {e}",
                extra={"user_id": self.user_id, "error": str(e)},
            )
            return SystemStats()

    def _build_messages(self, message: str, stats: SystemStats) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": build_system_prompt(stats, self.now_fn())},
            *self.history.messages(),
            {"role": "user", "content": message},
        ]

    async def _run_tool(self, call: ToolCall, context: ToolContext) -> ToolResult:
        try:
            result = await self.registry.execute(call.name, call.arguments, context)
        except Exception as e:
            error = e.message if isinstance(e, LifeAgentError) else str(e) or type(e).__name__
            logger.warning(
                f"Tool {call.name} failed: {error}",
                extra={"tool": call.name, "tool_call_id": call.id, "error": error},
            )
            return ToolResult(tool_call=call, error=error, success=False)
        return ToolResult(tool_call=call, result=result, success=True)

    def _tool_content(self, result: ToolResult) -> str:
        if result.success:
            payload = {"success": True, "result": result.result}
        else:
            payload = {"success": False, "error": result.error}
        return json.dumps(payload, default=str)
