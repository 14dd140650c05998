"""
Time Service - natural-language time parsing and task scheduling.

TimeParser resolves phrases like "tomorrow at 5pm", "in 2 hours" or
"friday" against an injected clock. TimeService stores schedules in
block metadata through the BlockStore.
"""

import calendar
import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel

from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.models.analysis import TimeInfo
from lifeagent.models.block import Block, BlockType, BlockUpdate
from lifeagent.utils.exceptions import ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_TIME = r"\d{1,2}(?::\d{2})?(?:\s*[ap]m)?"
_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_PARTS_OF_DAY = {"morning": 9, "afternoon": 14, "evening": 19}


class ParsedTime(BaseModel):
    """A resolved time phrase and where it was found in the input."""

    scheduled_at: datetime
    matched: str
    start: int
    end: int
    is_all_day: bool = False


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def apply_clock_time(base: datetime, time_str: str) -> datetime | None:
    """
    Set the hour and minute of base from a string like "5pm", "17:30" or "9".

    Returns:
        The adjusted datetime, or None if the string is not a valid time
    """
    match = re.fullmatch(r"(\d{1,2})(?::(\d{2}))?\s*([ap]m)?", time_str.strip(), re.IGNORECASE)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()

    if meridiem:
        if hour < 1 or hour > 12:
            return None
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        return None
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


class TimeParser:
    """
    Rule-based time expression parser.

    Patterns are tried in order, most specific first; the first one that
    resolves wins. Unmatched input falls back to ISO 8601 parsing.
    """

    def __init__(self, now_fn: Callable[[], datetime] | None = None):
        """
        Initialize parser.

        Args:
            now_fn: Clock used to anchor relative phrases (default: datetime.now)
        """
        self.now_fn = now_fn or datetime.now
        self._patterns: list[tuple[re.Pattern, Callable[[re.Match, datetime], datetime | None]]] = [
            (re.compile(r"\btomorrow\s+(morning|afternoon|evening)\b"), self._tomorrow_part),
            (re.compile(rf"\btomorrow(?:\s+(?:at\s+)?({_TIME}))?\b"), self._tomorrow),
            (re.compile(rf"\btoday(?:\s+(?:at\s+)?({_TIME}))?\b"), self._today),
            (re.compile(r"\bthis\s+(morning|afternoon|evening)\b"), self._this_part),
            (re.compile(r"\btonight\b"), self._tonight),
            (re.compile(r"\bnext\s+week\b"), lambda m, now: now + timedelta(days=7)),
            (re.compile(r"\bnext\s+month\b"), lambda m, now: add_months(now, 1)),
            (
                re.compile(r"\bin\s+(\d+)\s+minutes?\b"),
                lambda m, now: now + timedelta(minutes=int(m.group(1))),
            ),
            (
                re.compile(r"\bin\s+(\d+)\s+hours?\b"),
                lambda m, now: now + timedelta(hours=int(m.group(1))),
            ),
            (
                re.compile(r"\bin\s+(\d+)\s+days?\b"),
                lambda m, now: now + timedelta(days=int(m.group(1))),
            ),
            (
                re.compile(rf"\b(?:on\s+)?({'|'.join(_WEEKDAYS)})(?:\s+(?:at\s+)?({_TIME}))?\b"),
                self._weekday,
            ),
            (re.compile(r"\b(?:at\s+)?(\d{1,2}(?::\d{2})?\s*[ap]m)\b"), self._clock),
            (re.compile(r"\bat\s+(\d{1,2})\s*o['’]?clock\b"), self._clock),
        ]

    def now(self) -> datetime:
        return self.now_fn()

    def parse(self, expression: str) -> ParsedTime | None:
        """
        Find and resolve the first time phrase in an expression.

        Args:
            expression: Free text, e.g. "call mom tomorrow at 5pm"

        Returns:
            ParsedTime with the resolved datetime and matched span, or None
        """
        if not expression or not expression.strip():
            return None

        text = expression.lower()
        now = self.now()

        for pattern, handler in self._patterns:
            match = pattern.search(text)
            if not match:
                continue
            resolved = handler(match, now)
            if resolved is None:
                continue
            return ParsedTime(
                scheduled_at=resolved,
                matched=expression[match.start() : match.end()],
                start=match.start(),
                end=match.end(),
                is_all_day=resolved.hour == 0 and resolved.minute == 0,
            )

        try:
            resolved = datetime.fromisoformat(expression.strip())
        except ValueError:
            return None
        return ParsedTime(
            scheduled_at=resolved,
            matched=expression.strip(),
            start=0,
            end=len(expression),
            is_all_day=resolved.hour == 0 and resolved.minute == 0,
        )

    def parse_or_raise(self, expression: str) -> ParsedTime:
        """
        Like parse, but unparseable input is an error.

        Raises:
            ValidationError: If no time phrase could be resolved
        """
        parsed = self.parse(expression)
        if parsed is None:
            raise ValidationError(
                f'Unable to parse time expression: "{expression}"',
                context={"expression": expression},
            )
        return parsed

    def parse_duration(self, expression: str) -> int | None:
        """Duration in minutes from phrases like "for 30 minutes" or "for 2 hours"."""
        match = re.search(r"\bfor\s+(\d+)\s+(minutes?|mins?|hours?|hrs?)\b", expression.lower())
        if not match:
            return None
        amount = int(match.group(1))
        return amount * 60 if match.group(2).startswith("h") else amount

    def is_recurring(self, expression: str) -> bool:
        """Whether the expression describes a repeating schedule."""
        return bool(
            re.search(
                r"\b(every\s+\w+|daily|weekly|monthly|each\s+(day|week|month))\b",
                expression.lower(),
            )
        )

    def extract(self, expression: str) -> tuple[TimeInfo | None, ParsedTime | None]:
        """
        Build TimeInfo from free text.

        Returns:
            (time_info, parsed) where time_info is None if nothing time-related was found
        """
        parsed = self.parse(expression)
        duration = self.parse_duration(expression)
        recurring = self.is_recurring(expression)

        if parsed is None and duration is None and not recurring:
            return None, None

        info = TimeInfo(
            scheduled_at=parsed.scheduled_at if parsed else None,
            duration=duration,
            is_recurring=recurring,
        )
        return info, parsed

    # ═══════════════════════════════════════════════════════════
    # PATTERN HANDLERS
    # ═══════════════════════════════════════════════════════════

    def _tomorrow_part(self, match: re.Match, now: datetime) -> datetime:
        day = now + timedelta(days=1)
        return day.replace(hour=_PARTS_OF_DAY[match.group(1)], minute=0, second=0, microsecond=0)

    def _tomorrow(self, match: re.Match, now: datetime) -> datetime | None:
        day = now + timedelta(days=1)
        if match.group(1):
            return apply_clock_time(day, match.group(1))
        return day

    def _today(self, match: re.Match, now: datetime) -> datetime | None:
        if match.group(1):
            return apply_clock_time(now, match.group(1))
        return now

    def _this_part(self, match: re.Match, now: datetime) -> datetime:
        return now.replace(hour=_PARTS_OF_DAY[match.group(1)], minute=0, second=0, microsecond=0)

    def _tonight(self, match: re.Match, now: datetime) -> datetime:
        return now.replace(hour=20, minute=0, second=0, microsecond=0)

    def _weekday(self, match: re.Match, now: datetime) -> datetime | None:
        target = _WEEKDAYS.index(match.group(1))
        days_ahead = (target - now.weekday()) % 7 or 7
        day = now + timedelta(days=days_ahead)
        if match.group(2):
            return apply_clock_time(day, match.group(2))
        return day

    def _clock(self, match: re.Match, now: datetime) -> datetime | None:
        return apply_clock_time(now, match.group(1))


class TimeService:
    """
    Scheduling on top of the BlockStore.

    Schedules live in block metadata (scheduled_at, duration, recurrence,
    reschedule_reason, completed_at), so they survive without a separate table.
    """

    def __init__(self, block_store: BlockStore, parser: TimeParser | None = None):
        """
        Initialize time service.

        Args:
            block_store: Block store used for all reads and writes
            parser: Time parser; its clock also anchors "today" and "upcoming"
        """
        self.block_store = block_store
        self.parser = parser or TimeParser()

    def _start_of_day(self, moment: datetime) -> datetime:
        return moment.replace(hour=0, minute=0, second=0, microsecond=0)

    async def schedule_task(
        self,
        block_id: str,
        scheduled_at: datetime,
        duration: int | None = None,
        recurrence: str | None = None,
    ) -> Block:
        """
        Attach a schedule to a block.

        Args:
            block_id: Block to schedule
            scheduled_at: When it happens
            duration: Optional duration in minutes
            recurrence: Optional recurrence (daily, weekly, monthly)

        Raises:
            NotFoundError: If the block does not exist
        """
        patch: dict[str, Any] = {"scheduled_at": scheduled_at}
        if duration is not None:
            patch["duration"] = duration
        if recurrence is not None:
            patch["recurrence"] = recurrence

        block = await self.block_store.update_metadata(block_id, patch)
        logger.info(
            f"Scheduled block {block_id} at {scheduled_at.isoformat()}",
            extra={"block_id": block_id, "scheduled_at": scheduled_at.isoformat()},
        )
        return block

    async def reschedule_task(
        self, block_id: str, new_scheduled_at: datetime, reason: str | None = None
    ) -> Block:
        """Move a block's schedule, optionally recording why."""
        patch: dict[str, Any] = {"scheduled_at": new_scheduled_at}
        if reason:
            patch["reschedule_reason"] = reason

        block = await self.block_store.update_metadata(block_id, patch)
        logger.info(
            f"Rescheduled block {block_id} to {new_scheduled_at.isoformat()}",
            extra={"block_id": block_id, "reason": reason},
        )
        return block

    async def mark_task_complete(self, block_id: str, completed_at: datetime | None = None) -> Block:
        """
        Check off a todo and record when it was completed.

        Raises:
            NotFoundError: If the block does not exist
            ValidationError: If the block is not a todo
        """
        block = await self.block_store.get_block(block_id)
        if block.type != BlockType.TODO:
            raise ValidationError(
                f"Block {block_id} is not a todo", context={"block_id": block_id}
            )

        completed_at = completed_at or self.parser.now()
        content = block.content.model_copy(update={"checked": True})
        return await self.block_store.update_block(
            block_id,
            BlockUpdate(
                content=content.model_dump(mode="json"),
                metadata={"completed_at": completed_at},
            ),
        )

    async def get_todays_schedule(self, user_id: str) -> list[Block]:
        """Todos scheduled today, earliest first."""
        start = self._start_of_day(self.parser.now())
        return await self.block_store.list_scheduled(user_id, start, start + timedelta(days=1))

    async def get_todays_tasks(self, user_id: str) -> list[Block]:
        """Todos scheduled or due today, earliest first."""
        start = self._start_of_day(self.parser.now())
        return await self._dated_todos(user_id, start, start + timedelta(days=1), True)

    async def _dated_todos(
        self, user_id: str, start: datetime, end: datetime, include_completed: bool
    ) -> list[Block]:
        found: dict[str, Block] = {}
        for field in ("scheduled_at", "due_date"):
            blocks = await self.block_store.list_scheduled(
                user_id, start, end, include_completed=include_completed, field=field
            )
            for block in blocks:
                found.setdefault(block.id, block)

        def first_date(block: Block) -> datetime:
            return min(
                d
                for d in (block.metadata.scheduled_at, block.metadata.due_date)
                if d is not None and start <= d < end
            )

        return sorted(found.values(), key=lambda b: (first_date(b), b.id))

    async def get_upcoming_tasks(self, user_id: str, days: int = 7) -> list[Block]:
        """
        Open todos scheduled or due within the next `days` days.

        Returns:
            Todos ordered by their earliest upcoming date
        """
        if days < 1:
            raise ValidationError("days must be positive")

        now = self.parser.now()
        return await self._dated_todos(user_id, now, now + timedelta(days=days), False)
