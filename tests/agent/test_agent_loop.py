"""
Tests for AgentLoop.

Tests cover:
1. Plain replies and history updates
2. Tool round trips and the messages fed back to the model
3. Failed tools reported inline
4. Model failures, round-trip limits and stats failures
"""

import json
from unittest.mock import AsyncMock

import pytest
from pydantic import Field

from lifeagent.agent.agent_loop import APOLOGY, AgentLoop, compose_reply
from lifeagent.agent.history import ConversationHistory
from lifeagent.config import AgentConfig
from lifeagent.models.agent import AgentState, ModelResponse, SystemStats, ToolCall, ToolResult
from lifeagent.tools.registry import ToolContext, ToolDefinition, ToolParams, ToolRegistry
from lifeagent.utils.exceptions import LLMError, ValidationError


class NoteParams(ToolParams):
    text: str = Field(..., description="Note text")


@pytest.fixture
def notes():
    """Tool side effects, keyed by user."""
    return []


@pytest.fixture
def agent_registry(notes):
    async def save_note(params: NoteParams, context: ToolContext):
        notes.append((context.user_id, params.text))
        return {"saved": params.text}

    registry = ToolRegistry()
    registry.register(
        ToolDefinition(name="save_note", description="Save a note", parameters=NoteParams, handler=save_note)
    )
    return registry


@pytest.fixture
def stats_provider():
    provider = AsyncMock()
    provider.get_system_stats.return_value = SystemStats(
        active_projects=2, pending_tasks=3, total_blocks=10, recent_activity=4
    )
    return provider


@pytest.fixture
def build_loop(agent_registry, stats_provider, clock):
    def build(llm, config=None):
        return AgentLoop(
            llm=llm,
            registry=agent_registry,
            stats_provider=stats_provider,
            user_id="u1",
            config=config,
            now_fn=clock,
        )

    return build


def failed(name, error):
    return ToolResult(tool_call=ToolCall(id="c", name=name), error=error, success=False)


def succeeded(name):
    return ToolResult(tool_call=ToolCall(id="c", name=name), result={}, success=True)


@pytest.mark.unit
class TestComposeReply:
    """Reply text with tool summaries."""

    def test_text_only(self):
        assert compose_reply("Hi", []) == "Hi"

    def test_completed_and_failed(self):
        reply = compose_reply("Done.", [succeeded("a"), failed("b", "boom"), succeeded("c")])

        assert reply == "Done.\n\nCompleted: a, c\n\nFailed: b (boom)"

    def test_empty_text(self):
        assert compose_reply("", [succeeded("a")]) == "Completed: a"


@pytest.mark.unit
@pytest.mark.asyncio
class TestAgentLoop:
    """One conversation turn."""

    async def test_plain_reply(self, build_loop, make_llm):
        llm = make_llm(responses=[ModelResponse(text="Hello!")])
        loop = build_loop(llm)

        response = await loop.process_message("hi")

        assert response.message == "Hello!"
        assert response.success is True
        assert response.tool_results == []
        assert loop.state == AgentState.IDLE
        assert loop.history.messages() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "Hello!"},
        ]

    async def test_empty_history_is_kept(self, agent_registry, stats_provider, clock, make_llm):
        history = ConversationHistory(capacity=4, retain=3)
        loop = AgentLoop(
            llm=make_llm(responses=[ModelResponse(text="Hello!")]),
            registry=agent_registry,
            stats_provider=stats_provider,
            user_id="u1",
            history=history,
            now_fn=clock,
        )

        await loop.process_message("hi")

        assert loop.history is history
        assert len(history) == 2

    async def test_system_prompt_and_tools(self, build_loop, make_llm):
        llm = make_llm()
        await build_loop(llm).process_message("hi")

        call = llm.chat_calls[0]
        system = call["messages"][0]
        assert system["role"] == "system"
        assert "Active projects: 2" in system["content"]
        assert "Pending tasks: 3" in system["content"]
        assert "2025-01-15 10:00 (Wednesday)" in system["content"]
        assert call["messages"][-1] == {"role": "user", "content": "hi"}
        assert call["tools"][0]["function"]["name"] == "save_note"

    async def test_tool_round_trip(self, build_loop, make_llm, make_tool_call, notes):
        llm = make_llm(
            responses=[
                ModelResponse(tool_calls=[make_tool_call("save_note", text="buy milk")]),
                ModelResponse(text="Saved your note."),
            ]
        )

        response = await build_loop(llm).process_message("note: buy milk")

        assert notes == [("u1", "buy milk")]
        assert response.success is True
        assert response.message == "Saved your note.\n\nCompleted: save_note"
        assert response.tool_results[0].result == {"saved": "buy milk"}

        followup = llm.chat_calls[1]["messages"]
        assert followup[-2]["role"] == "assistant"
        assert followup[-2]["tool_calls"][0]["function"]["name"] == "save_note"
        assert followup[-1]["role"] == "tool"
        assert followup[-1]["tool_call_id"] == "call_1"
        assert json.loads(followup[-1]["content"]) == {"success": True, "result": {"saved": "buy milk"}}

    async def test_failed_tool_reported(self, build_loop, make_llm, make_tool_call):
        llm = make_llm(
            responses=[
                ModelResponse(tool_calls=[make_tool_call("launch_rocket")]),
                ModelResponse(text="I couldn't do that."),
            ]
        )

        response = await build_loop(llm).process_message("launch")

        assert response.success is False
        assert response.message == "I couldn't do that.\n\nFailed: launch_rocket (Tool launch_rocket not found)"
        fed_back = json.loads(llm.chat_calls[1]["messages"][-1]["content"])
        assert fed_back["success"] is False

    async def test_partial_failure_is_success(self, build_loop, make_llm, make_tool_call):
        llm = make_llm(
            responses=[
                ModelResponse(
                    tool_calls=[
                        make_tool_call("save_note", "call_1", text="a"),
                        make_tool_call("save_note", "call_2", wrong="b"),
                    ]
                ),
                ModelResponse(text="Partly done."),
            ]
        )

        response = await build_loop(llm).process_message("two notes")

        assert response.success is True
        assert [r.success for r in response.tool_results] == [True, False]
        assert "Completed: save_note" in response.message
        assert "Failed: save_note (Invalid arguments for save_note" in response.message

    async def test_model_failure_apologizes(self, build_loop, make_llm):
        llm = make_llm(responses=[LLMError("service down")])
        loop = build_loop(llm)

        response = await loop.process_message("hi")

        assert response.message == APOLOGY
        assert response.success is False
        assert loop.state == AgentState.IDLE
        assert len(loop.history) == 0

    async def test_round_trip_limit(self, build_loop, make_llm, make_tool_call, notes):
        llm = make_llm(
            responses=[
                ModelResponse(tool_calls=[make_tool_call("save_note", text=f"n{i}")]) for i in range(5)
            ]
        )

        response = await build_loop(llm, AgentConfig(max_round_trips=2)).process_message("loop")

        assert len(llm.chat_calls) == 2
        assert len(notes) == 2
        assert response.message == "Completed: save_note, save_note"

    async def test_stats_failure_uses_zeros(self, build_loop, make_llm, stats_provider):
        stats_provider.get_system_stats.side_effect = RuntimeError("db locked")
        llm = make_llm()

        response = await build_loop(llm).process_message("hi")

        assert response.success is True
        assert "Total blocks: 0" in llm.chat_calls[0]["messages"][0]["content"]

    async def test_history_carries_over(self, build_loop, make_llm):
        llm = make_llm(responses=[ModelResponse(text="First"), ModelResponse(text="Second")])
        loop = build_loop(llm)

        await loop.process_message("one")
        await loop.process_message("two")

        messages = llm.chat_calls[1]["messages"]
        assert messages[1:] == [
            {"role": "user", "content": "one"},
            {"role": "assistant", "content": "First"},
            {"role": "user", "content": "two"},
        ]

    async def test_empty_message(self, build_loop, make_llm):
        with pytest.raises(ValidationError):
            await build_loop(make_llm()).process_message("  ")
