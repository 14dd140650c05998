"""
Block model: the atomic typed content unit.

Content is a closed set of models, one per block type. A block whose
content does not match its type is rejected at construction.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from lifeagent.utils.exceptions import ValidationError


class BlockType(str, Enum):
    """Types of blocks."""

    TEXT = "text"
    HEADING = "heading"
    TODO = "todo"
    TABLE = "table"
    CALLOUT = "callout"
    PAGE = "page"


class Priority(str, Enum):
    """Task priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CalloutStyle(str, Enum):
    """Visual style of a callout block."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class PageLayout(str, Enum):
    """Page layout."""

    DEFAULT = "default"
    DASHBOARD = "dashboard"
    KANBAN = "kanban"
    CALENDAR = "calendar"


class PageVisibility(str, Enum):
    """Page visibility."""

    PRIVATE = "private"
    SHARED = "shared"


class _Content(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TextContent(_Content):
    """Content of a text block."""

    text: str
    formatting: dict[str, Any] | None = None


class HeadingContent(_Content):
    """Content of a heading block."""

    level: int = Field(default=2, ge=1, le=6)
    text: str
    anchor: str | None = None


class TodoContent(_Content):
    """Content of a todo block."""

    text: str
    checked: bool = False
    priority: Priority | None = None


class TableContent(_Content):
    """Content of a table block."""

    headers: list[str]
    rows: list[list[str]] = Field(default_factory=list)


class CalloutContent(_Content):
    """Content of a callout block."""

    type: CalloutStyle = CalloutStyle.INFO
    text: str
    icon: str | None = None


class PageContent(_Content):
    """Content of a page block. child_blocks holds ordered child block ids."""

    title: str
    description: str | None = None
    child_blocks: list[str] = Field(default_factory=list)
    layout: PageLayout = PageLayout.DEFAULT
    visibility: PageVisibility = PageVisibility.PRIVATE
    icon: str | None = None
    cover_image: str | None = None


BlockContent = (
    TextContent | HeadingContent | TodoContent | TableContent | CalloutContent | PageContent
)

CONTENT_MODELS: dict[BlockType, type[_Content]] = {
    BlockType.TEXT: TextContent,
    BlockType.HEADING: HeadingContent,
    BlockType.TODO: TodoContent,
    BlockType.TABLE: TableContent,
    BlockType.CALLOUT: CalloutContent,
    BlockType.PAGE: PageContent,
}


def parse_block_type(value: BlockType | str) -> BlockType:
    """
    Coerce a string into a BlockType.

    Raises:
        ValidationError: If the value is not a known block type
    """
    try:
        return BlockType(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown block type: {value}",
            context={"allowed": [t.value for t in BlockType]},
        ) from e


def parse_content(block_type: BlockType | str, content: Any) -> BlockContent:
    """
    Validate content against the shape required by a block type.

    Args:
        block_type: Block type the content belongs to
        content: Raw dict or content model instance

    Returns:
        Content model instance for the type

    Raises:
        ValidationError: If content does not match the type's shape
    """
    block_type = parse_block_type(block_type)
    model = CONTENT_MODELS[block_type]

    if isinstance(content, BaseModel):
        if not isinstance(content, model):
            raise ValidationError(
                f"Content of type {type(content).__name__} does not match block type {block_type.value}",
                context={"block_type": block_type.value},
            )
        return content

    if not isinstance(content, dict):
        raise ValidationError(
            f"Content for {block_type.value} block must be an object",
            context={"block_type": block_type.value},
        )

    try:
        return model.model_validate(content)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid content for {block_type.value} block: {e.errors(include_url=False)}",
            context={"block_type": block_type.value},
        ) from e


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class BlockMetadata(BaseModel):
    """
    Block metadata.

    tags, linked_blocks and mentions behave as sets (order-preserving, no
    duplicates). Unknown keys (duration, recurrence, reschedule_reason, ...)
    are kept as extra fields.
    """

    model_config = ConfigDict(extra="allow")

    tags: list[str] = Field(default_factory=list)
    category: str = "general"
    priority: Priority | None = None
    scheduled_at: datetime | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    linked_blocks: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    ai_generated: bool = False
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("tags", "linked_blocks", "mentions")
    @classmethod
    def _unique(cls, values: list[str]) -> list[str]:
        return _dedupe(values)

    def merged(self, patch: dict[str, Any]) -> "BlockMetadata":
        """
        Return a copy with patch keys applied and every other key preserved.

        Raises:
            ValidationError: If the merged metadata is invalid
        """
        data = self.model_dump()
        data.update(patch)
        return parse_metadata(data)


def parse_metadata(metadata: BlockMetadata | dict[str, Any] | None) -> BlockMetadata:
    """
    Validate raw metadata.

    Raises:
        ValidationError: If metadata is malformed
    """
    if metadata is None:
        return BlockMetadata()
    if isinstance(metadata, BlockMetadata):
        return metadata
    try:
        return BlockMetadata.model_validate(metadata)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid block metadata: {e.errors(include_url=False)}") from e


class Block(BaseModel):
    """
    Atomic typed content unit.

    Storage Architecture:
    - Block store (SQLite): source of truth for the row
    - Vector index: derived embedding + text snapshot, kept in sync on content change
    """

    id: str = Field(..., description="Unique block ID (blk_xxx)")
    type: BlockType
    content: BlockContent
    metadata: BlockMetadata = Field(default_factory=BlockMetadata)
    parent_id: str | None = None
    template_id: str | None = None
    user_id: str = Field(..., description="Owner user ID")
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="before")
    @classmethod
    def _content_matches_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "type" in data and "content" in data:
            data = dict(data)
            data["content"] = parse_content(data["type"], data["content"])
        return data

    @model_validator(mode="after")
    def _check_content_model(self) -> "Block":
        if not isinstance(self.content, CONTENT_MODELS[self.type]):
            raise ValidationError(
                f"Content does not match block type {self.type.value}",
                context={"block_id": self.id},
            )
        return self


class BlockUpdate(BaseModel):
    """
    Partial update for a block.

    metadata is a patch: given keys replace existing ones, other keys are kept.
    When type changes, content must be supplied for the new type.
    """

    type: BlockType | None = None
    content: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    parent_id: str | None = None


class BlockStats(BaseModel):
    """Aggregate counts for a user's blocks."""

    total_blocks: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    total_todos: int = 0
    completed_todos: int = 0
    pending_todos: int = 0
    pages: int = 0
    recent_activity: int = 0


def extract_text(block_type: BlockType, content: BlockContent) -> str:
    """
    Flatten block content into searchable text.

    Args:
        block_type: Block type
        content: Validated content for that type

    Returns:
        Plain text snapshot
    """
    if block_type in (BlockType.TEXT, BlockType.HEADING, BlockType.TODO, BlockType.CALLOUT):
        return content.text
    if block_type == BlockType.TABLE:
        cells = list(content.headers)
        for row in content.rows:
            cells.extend(row)
        return " ".join(cell for cell in cells if cell)
    if block_type == BlockType.PAGE:
        return " ".join(part for part in (content.title, content.description) if part)
    raise ValidationError(f"Unhandled block type: {block_type}")
