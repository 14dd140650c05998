"""
Tests for TimeParser and TimeService.

The clock is fixed at Wednesday 2025-01-15 10:00.
"""

from datetime import datetime

import pytest

from lifeagent.services.time_service import add_months, apply_clock_time
from lifeagent.utils.exceptions import NotFoundError, ValidationError


@pytest.mark.unit
class TestHelpers:
    """Clock and calendar arithmetic."""

    def test_apply_clock_time(self):
        base = datetime(2025, 1, 15, 10, 0)

        assert apply_clock_time(base, "5pm") == datetime(2025, 1, 15, 17, 0)
        assert apply_clock_time(base, "12am") == datetime(2025, 1, 15, 0, 0)
        assert apply_clock_time(base, "12pm") == datetime(2025, 1, 15, 12, 0)
        assert apply_clock_time(base, "17:30") == datetime(2025, 1, 15, 17, 30)

    def test_apply_clock_time_invalid(self):
        base = datetime(2025, 1, 15, 10, 0)

        assert apply_clock_time(base, "13pm") is None
        assert apply_clock_time(base, "25:00") is None
        assert apply_clock_time(base, "noonish") is None

    def test_add_months_clamps_day(self):
        assert add_months(datetime(2025, 1, 31), 1) == datetime(2025, 2, 28)
        assert add_months(datetime(2025, 12, 10), 1) == datetime(2026, 1, 10)


@pytest.mark.unit
class TestTimeParser:
    """Relative phrases resolve against the injected clock."""

    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("tomorrow at 5pm", datetime(2025, 1, 16, 17, 0)),
            ("tomorrow morning", datetime(2025, 1, 16, 9, 0)),
            ("tomorrow", datetime(2025, 1, 16, 10, 0)),
            ("today at 3:30pm", datetime(2025, 1, 15, 15, 30)),
            ("this evening", datetime(2025, 1, 15, 19, 0)),
            ("tonight", datetime(2025, 1, 15, 20, 0)),
            ("next week", datetime(2025, 1, 22, 10, 0)),
            ("next month", datetime(2025, 2, 15, 10, 0)),
            ("in 30 minutes", datetime(2025, 1, 15, 10, 30)),
            ("in 2 hours", datetime(2025, 1, 15, 12, 0)),
            ("in 3 days", datetime(2025, 1, 18, 10, 0)),
            ("friday", datetime(2025, 1, 17, 10, 0)),
            ("wednesday", datetime(2025, 1, 22, 10, 0)),
            ("on monday at 9am", datetime(2025, 1, 20, 9, 0)),
            ("5pm", datetime(2025, 1, 15, 17, 0)),
            ("at 7 o'clock", datetime(2025, 1, 15, 7, 0)),
            ("2025-03-01T08:00", datetime(2025, 3, 1, 8, 0)),
        ],
    )
    def test_parse(self, time_parser, expression, expected):
        assert time_parser.parse(expression).scheduled_at == expected

    def test_matched_span(self, time_parser):
        parsed = time_parser.parse("Call mom Tomorrow at 5pm please")

        assert parsed.matched == "Tomorrow at 5pm"
        assert parsed.start == 9

    def test_unparseable(self, time_parser):
        assert time_parser.parse("sometime soon") is None
        assert time_parser.parse("") is None

    def test_parse_or_raise(self, time_parser):
        with pytest.raises(ValidationError):
            time_parser.parse_or_raise("whenever")

    def test_duration(self, time_parser):
        assert time_parser.parse_duration("gym for 45 minutes") == 45
        assert time_parser.parse_duration("study for 2 hours") == 120
        assert time_parser.parse_duration("gym") is None

    def test_recurring(self, time_parser):
        assert time_parser.is_recurring("water plants every monday")
        assert time_parser.is_recurring("daily standup")
        assert not time_parser.is_recurring("dentist on friday")

    def test_extract_without_date(self, time_parser):
        info, parsed = time_parser.extract("run for 30 minutes every day")

        assert parsed is None
        assert info.scheduled_at is None
        assert info.duration == 30
        assert info.is_recurring is True

    def test_extract_nothing(self, time_parser):
        assert time_parser.extract("buy milk") == (None, None)


@pytest.mark.unit
@pytest.mark.asyncio
class TestTimeService:
    """Scheduling stored in block metadata."""

    async def test_schedule_task(self, block_store, time_service):
        block = await block_store.create_block("todo", {"text": "Dentist"}, "u1")
        when = datetime(2025, 1, 17, 14, 0)

        scheduled = await time_service.schedule_task(block.id, when, duration=60, recurrence="monthly")

        assert scheduled.metadata.scheduled_at == when
        extra = scheduled.metadata.model_dump()
        assert extra["duration"] == 60
        assert extra["recurrence"] == "monthly"

    async def test_schedule_missing_block(self, time_service):
        with pytest.raises(NotFoundError):
            await time_service.schedule_task("blk_missing", datetime(2025, 1, 17))

    async def test_reschedule_records_reason(self, block_store, time_service):
        block = await block_store.create_block("todo", {"text": "Dentist"}, "u1")
        new_time = datetime(2025, 1, 20, 9, 0)

        moved = await time_service.reschedule_task(block.id, new_time, reason="conflict")

        assert moved.metadata.scheduled_at == new_time
        assert moved.metadata.model_dump()["reschedule_reason"] == "conflict"

    async def test_mark_complete(self, block_store, time_service, fixed_now):
        block = await block_store.create_block("todo", {"text": "Dentist"}, "u1")

        done = await time_service.mark_task_complete(block.id)

        assert done.content.checked is True
        assert done.metadata.completed_at == fixed_now

    async def test_mark_complete_requires_todo(self, block_store, time_service):
        note = await block_store.create_block("text", {"text": "not a task"}, "u1")

        with pytest.raises(ValidationError):
            await time_service.mark_task_complete(note.id)

    async def test_todays_schedule(self, block_store, time_service):
        later = await block_store.create_block(
            "todo", {"text": "later"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 15, 16, 0)}
        )
        earlier = await block_store.create_block(
            "todo", {"text": "earlier"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 15, 8, 0)}
        )
        await block_store.create_block(
            "todo", {"text": "tomorrow"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 16, 8, 0)}
        )

        schedule = await time_service.get_todays_schedule("u1")

        assert [b.id for b in schedule] == [earlier.id, later.id]

    async def test_todays_tasks_include_due_today(self, block_store, time_service):
        due = await block_store.create_block(
            "todo", {"text": "report"}, "u1", metadata={"due_date": datetime(2025, 1, 15, 17, 0)}
        )
        scheduled = await block_store.create_block(
            "todo", {"text": "call"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 15, 11, 0)}
        )

        tasks = await time_service.get_todays_tasks("u1")

        assert [b.id for b in tasks] == [scheduled.id, due.id]

    async def test_upcoming_tasks(self, block_store, time_service):
        soon = await block_store.create_block(
            "todo", {"text": "soon"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 17, 9, 0)}
        )
        due = await block_store.create_block(
            "todo", {"text": "due"}, "u1", metadata={"due_date": datetime(2025, 1, 16, 12, 0)}
        )
        await block_store.create_block(
            "todo",
            {"text": "done", "checked": True},
            "u1",
            metadata={"scheduled_at": datetime(2025, 1, 16, 9, 0)},
        )
        await block_store.create_block(
            "todo", {"text": "past"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 15, 9, 0)}
        )
        await block_store.create_block(
            "todo", {"text": "far"}, "u1", metadata={"scheduled_at": datetime(2025, 1, 30, 9, 0)}
        )

        upcoming = await time_service.get_upcoming_tasks("u1", days=7)

        assert [b.id for b in upcoming] == [due.id, soon.id]

    async def test_upcoming_days_must_be_positive(self, time_service):
        with pytest.raises(ValidationError):
            await time_service.get_upcoming_tasks("u1", days=0)
