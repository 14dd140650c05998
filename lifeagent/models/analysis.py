"""
Models for content analysis and fill decisions.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from lifeagent.models.block import Block, Priority


class TimeInfo(BaseModel):
    """Time information extracted from user input."""

    scheduled_at: datetime | None = None
    due_date: datetime | None = None
    duration: int | None = Field(default=None, description="Duration in minutes")
    is_recurring: bool = False


class ContentAnalysis(BaseModel):
    """Structured reading of a piece of free text."""

    intent: str = Field(..., description="What the user wants, e.g. reminder, note, heading, table")
    category: str = Field(default="general", description="work, personal, health, finance, ...")
    priority: Priority | None = None
    time_info: TimeInfo | None = None
    extracted_content: str = Field(..., description="The core content without filler words")
    keywords: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)


class FillAction(str, Enum):
    """What to do with new content."""

    CREATE = "create"
    UPDATE = "update"
    APPEND = "append"


class FillDecision(BaseModel):
    """Decision on where new content goes."""

    action: FillAction
    target_block_id: str | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = ""


class FillCandidate(BaseModel):
    """Compact view of an existing block offered to the classifier."""

    block_id: str
    type: str
    text: str
    score: float


class FillResult(BaseModel):
    """Outcome of executing a fill decision."""

    action: FillAction
    block: Block
    confidence: float
    reasoning: str = ""


class FillSuggestion(BaseModel):
    """Dry-run view of what a fill would do."""

    analysis: ContentAnalysis
    decision: FillDecision
    candidates: list[FillCandidate] = Field(default_factory=list)
