"""
Time tools: parse time phrases and manage task schedules.
"""

from typing import Any, Literal

from pydantic import Field

from lifeagent.services.time_service import TimeService
from lifeagent.tools.block_tools import block_brief
from lifeagent.tools.registry import ToolContext, ToolDefinition, ToolParams, ToolRegistry


class ParseTimeParams(ToolParams):
    expression: str = Field(..., description='Time phrase, e.g. "tomorrow at 5pm", "in 2 hours", "friday"')


class ScheduleTaskParams(ToolParams):
    block_id: str = Field(..., description="Block to schedule")
    when: str = Field(..., description="ISO datetime or time phrase")
    duration: int | None = Field(default=None, ge=1, description="Duration in minutes")
    recurrence: Literal["daily", "weekly", "monthly"] | None = None


class RescheduleTaskParams(ToolParams):
    block_id: str = Field(..., description="Block to reschedule")
    when: str = Field(..., description="New ISO datetime or time phrase")
    reason: str | None = Field(default=None, description="Why it moved")


class MarkTaskCompleteParams(ToolParams):
    block_id: str = Field(..., description="Todo block ID")


class TodaysScheduleParams(ToolParams):
    pass


class UpcomingTasksParams(ToolParams):
    days: int = Field(default=7, ge=1, le=90, description="How many days ahead")


def register_time_tools(registry: ToolRegistry, time_service: TimeService) -> None:
    """Register scheduling tools."""

    parser = time_service.parser

    async def parse_time(params: ParseTimeParams, context: ToolContext) -> dict[str, Any]:
        parsed = parser.parse_or_raise(params.expression)
        return {
            "scheduled_at": parsed.scheduled_at.isoformat(),
            "matched": parsed.matched,
            "is_all_day": parsed.is_all_day,
        }

    async def schedule_task(params: ScheduleTaskParams, context: ToolContext) -> dict[str, Any]:
        when = parser.parse_or_raise(params.when).scheduled_at
        block = await time_service.schedule_task(
            params.block_id, when, duration=params.duration, recurrence=params.recurrence
        )
        return {
            "block_id": block.id,
            "scheduled_at": when.isoformat(),
            "duration": params.duration,
            "recurrence": params.recurrence,
        }

    async def reschedule_task(params: RescheduleTaskParams, context: ToolContext) -> dict[str, Any]:
        when = parser.parse_or_raise(params.when).scheduled_at
        block = await time_service.reschedule_task(params.block_id, when, reason=params.reason)
        return {"block_id": block.id, "scheduled_at": when.isoformat(), "reason": params.reason}

    async def mark_task_complete(params: MarkTaskCompleteParams, context: ToolContext) -> dict[str, Any]:
        block = await time_service.mark_task_complete(params.block_id)
        return {
            "block_id": block.id,
            "completed_at": block.metadata.completed_at.isoformat(),
            "message": "Task completed",
        }

    async def get_todays_schedule(params: TodaysScheduleParams, context: ToolContext) -> dict[str, Any]:
        blocks = await time_service.get_todays_schedule(context.user_id)
        return {"schedule": [block_brief(b) for b in blocks], "count": len(blocks)}

    async def get_upcoming_tasks(params: UpcomingTasksParams, context: ToolContext) -> dict[str, Any]:
        blocks = await time_service.get_upcoming_tasks(context.user_id, days=params.days)
        return {"tasks": [block_brief(b) for b in blocks], "count": len(blocks), "days": params.days}

    tools = [
        ("parse_time", "Resolve a natural-language time phrase to a datetime", ParseTimeParams, parse_time),
        ("schedule_task", "Schedule a block at a time", ScheduleTaskParams, schedule_task),
        ("reschedule_task", "Move a scheduled block to a new time", RescheduleTaskParams, reschedule_task),
        ("mark_task_complete", "Check off a todo and record completion time", MarkTaskCompleteParams, mark_task_complete),
        ("get_todays_schedule", "List todos scheduled for today in time order", TodaysScheduleParams, get_todays_schedule),
        ("get_upcoming_tasks", "List open todos scheduled or due in the next days", UpcomingTasksParams, get_upcoming_tasks),
    ]

    for name, description, parameters, handler in tools:
        registry.register(
            ToolDefinition(name=name, description=description, parameters=parameters, handler=handler)
        )
