"""
Block tools: create, find, update and delete blocks.
"""

from typing import Any

from pydantic import Field

from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.models.block import (
    Block,
    BlockType,
    CalloutStyle,
    PageLayout,
    Priority,
    extract_text,
)
from lifeagent.services.retrieval_engine import RetrievalEngine
from lifeagent.services.time_service import TimeService
from lifeagent.tools.registry import ToolContext, ToolDefinition, ToolParams, ToolRegistry
from lifeagent.utils.exceptions import ValidationError


def block_to_dict(block: Block) -> dict[str, Any]:
    return block.model_dump(mode="json")


def block_brief(block: Block) -> dict[str, Any]:
    """Compact view used in lists."""
    brief = {
        "id": block.id,
        "type": block.type.value,
        "text": extract_text(block.type, block.content),
        "category": block.metadata.category,
    }
    if block.type == BlockType.TODO:
        brief["checked"] = block.content.checked
    if block.metadata.scheduled_at:
        brief["scheduled_at"] = block.metadata.scheduled_at.isoformat()
    if block.metadata.due_date:
        brief["due_date"] = block.metadata.due_date.isoformat()
    return brief


class _BlockMetadataParams(ToolParams):
    category: str | None = Field(default=None, description="Category, e.g. work, personal, health")
    tags: list[str] = Field(default_factory=list, description="Tags")
    parent_id: str | None = Field(default=None, description="Page to add the block to")

    def metadata(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"tags": self.tags}
        if self.category:
            metadata["category"] = self.category
        return metadata


class CreateTextBlockParams(_BlockMetadataParams):
    text: str = Field(..., description="Text content")


class CreateHeadingBlockParams(_BlockMetadataParams):
    text: str = Field(..., description="Heading text")
    level: int = Field(default=2, ge=1, le=6, description="Heading level 1-6")


class CreateTodoBlockParams(_BlockMetadataParams):
    text: str = Field(..., description="Task description")
    priority: Priority | None = Field(default=None, description="high, medium or low")
    scheduled_at: str | None = Field(
        default=None, description='When to do it: ISO datetime or phrase like "tomorrow at 5pm"'
    )
    due_date: str | None = Field(default=None, description="Deadline: ISO datetime or phrase")


class CreateTableBlockParams(_BlockMetadataParams):
    headers: list[str] = Field(..., min_length=1, description="Column headers")
    rows: list[list[str]] = Field(default_factory=list, description="Table rows")


class CreateCalloutBlockParams(_BlockMetadataParams):
    text: str = Field(..., description="Callout text")
    style: CalloutStyle = Field(default=CalloutStyle.INFO, description="info, warning, error or success")
    icon: str | None = None


class CreatePageBlockParams(ToolParams):
    title: str = Field(..., description="Page title")
    description: str | None = None
    layout: PageLayout = PageLayout.DEFAULT
    icon: str | None = None
    category: str | None = None


class UpdateTodoStatusParams(ToolParams):
    block_id: str = Field(..., description="Todo block ID")
    checked: bool = Field(..., description="True to mark done, False to reopen")


class AddBlockToPageParams(ToolParams):
    page_id: str = Field(..., description="Page block ID")
    block_id: str = Field(..., description="Block to add")


class SearchBlocksParams(ToolParams):
    query: str = Field(..., description="What to look for")
    type: BlockType | None = Field(default=None, description="Only blocks of this type")
    category: str | None = Field(default=None, description="Only blocks in this category")
    limit: int = Field(default=10, ge=1, le=50)


class FindSimilarBlocksParams(ToolParams):
    block_id: str = Field(..., description="Reference block ID")
    limit: int = Field(default=5, ge=1, le=20)


class BlockIdParams(ToolParams):
    block_id: str = Field(..., description="Block ID")


class NoParams(ToolParams):
    pass


def register_block_tools(
    registry: ToolRegistry,
    block_store: BlockStore,
    retrieval: RetrievalEngine,
    time_service: TimeService,
) -> None:
    """Register block tools backed by the given collaborators."""

    parser = time_service.parser

    async def _create(
        block_type: BlockType,
        content: dict[str, Any],
        params: _BlockMetadataParams,
        context: ToolContext,
        extra_metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        metadata = {**params.metadata(), **(extra_metadata or {})}
        block = await block_store.create_block(
            block_type, content, context.user_id, metadata=metadata, parent_id=params.parent_id
        )
        return {"block": block_to_dict(block), "message": f"Created {block_type.value} block {block.id}"}

    async def create_text_block(params: CreateTextBlockParams, context: ToolContext) -> dict[str, Any]:
        return await _create(BlockType.TEXT, {"text": params.text}, params, context)

    async def create_heading_block(params: CreateHeadingBlockParams, context: ToolContext) -> dict[str, Any]:
        return await _create(
            BlockType.HEADING, {"level": params.level, "text": params.text}, params, context
        )

    async def create_todo_block(params: CreateTodoBlockParams, context: ToolContext) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        if params.priority:
            extra["priority"] = params.priority
        if params.scheduled_at:
            extra["scheduled_at"] = parser.parse_or_raise(params.scheduled_at).scheduled_at
        if params.due_date:
            extra["due_date"] = parser.parse_or_raise(params.due_date).scheduled_at

        content = {
            "text": params.text,
            "checked": False,
            "priority": params.priority.value if params.priority else None,
        }
        return await _create(BlockType.TODO, content, params, context, extra)

    async def create_table_block(params: CreateTableBlockParams, context: ToolContext) -> dict[str, Any]:
        width = len(params.headers)
        if any(len(row) != width for row in params.rows):
            raise ValidationError(f"Every row must have {width} cells")
        return await _create(
            BlockType.TABLE, {"headers": params.headers, "rows": params.rows}, params, context
        )

    async def create_callout_block(params: CreateCalloutBlockParams, context: ToolContext) -> dict[str, Any]:
        content = {"type": params.style.value, "text": params.text, "icon": params.icon}
        return await _create(BlockType.CALLOUT, content, params, context)

    async def create_page_block(params: CreatePageBlockParams, context: ToolContext) -> dict[str, Any]:
        content = {
            "title": params.title,
            "description": params.description,
            "layout": params.layout.value,
            "icon": params.icon,
        }
        metadata = {"category": params.category} if params.category else None
        block = await block_store.create_block(BlockType.PAGE, content, context.user_id, metadata=metadata)
        return {"block": block_to_dict(block), "message": f"Created page {block.id}"}

    async def update_todo_status(params: UpdateTodoStatusParams, context: ToolContext) -> dict[str, Any]:
        block = await block_store.get_block(params.block_id)
        if block.type != BlockType.TODO:
            raise ValidationError(f"Block {params.block_id} is not a todo")

        content = block.content.model_copy(update={"checked": params.checked})
        updated = await block_store.update_block(
            params.block_id,
            {
                "content": content.model_dump(mode="json"),
                "metadata": {"completed_at": parser.now() if params.checked else None},
            },
        )
        state = "completed" if params.checked else "reopened"
        return {"block": block_to_dict(updated), "message": f"Task {state}"}

    async def add_block_to_page(params: AddBlockToPageParams, context: ToolContext) -> dict[str, Any]:
        page = await block_store.add_block_to_page(params.page_id, params.block_id)
        return {
            "page_id": page.id,
            "child_blocks": list(page.content.child_blocks),
            "message": f"Added {params.block_id} to page {page.id}",
        }

    async def search_blocks(params: SearchBlocksParams, context: ToolContext) -> dict[str, Any]:
        hits = await retrieval.search_scored(
            params.query,
            context.user_id,
            block_type=params.type,
            category=params.category,
            limit=params.limit,
        )
        return {
            "results": [{**block_brief(h.block), "score": round(h.score, 4)} for h in hits],
            "count": len(hits),
        }

    async def find_similar_blocks(params: FindSimilarBlocksParams, context: ToolContext) -> dict[str, Any]:
        hits = await retrieval.search_similar(params.block_id, context.user_id, limit=params.limit)
        return {
            "results": [{**block_brief(h.block), "score": round(h.score, 4)} for h in hits],
            "count": len(hits),
        }

    async def get_block(params: BlockIdParams, context: ToolContext) -> dict[str, Any]:
        block = await block_store.get_block(params.block_id)
        return {"block": block_to_dict(block)}

    async def delete_block(params: BlockIdParams, context: ToolContext) -> dict[str, Any]:
        deleted = await block_store.delete_block(params.block_id)
        return {"deleted": deleted, "message": f"Deleted {len(deleted)} block(s)"}

    async def get_todays_tasks(params: NoParams, context: ToolContext) -> dict[str, Any]:
        tasks = await time_service.get_todays_tasks(context.user_id)
        return {"tasks": [block_brief(b) for b in tasks], "count": len(tasks)}

    async def get_block_stats(params: NoParams, context: ToolContext) -> dict[str, Any]:
        stats = await block_store.get_block_stats(context.user_id)
        return stats.model_dump()

    tools = [
        ("create_text_block", "Create a text block for notes or free-form content", CreateTextBlockParams, create_text_block),
        ("create_heading_block", "Create a heading block to title a section", CreateHeadingBlockParams, create_heading_block),
        ("create_todo_block", "Create a todo/task block, optionally scheduled", CreateTodoBlockParams, create_todo_block),
        ("create_table_block", "Create a table block with headers and rows", CreateTableBlockParams, create_table_block),
        ("create_callout_block", "Create a callout block for warnings or important notes", CreateCalloutBlockParams, create_callout_block),
        ("create_page_block", "Create a page (project) that can contain other blocks", CreatePageBlockParams, create_page_block),
        ("update_todo_status", "Mark a todo as done or not done", UpdateTodoStatusParams, update_todo_status),
        ("add_block_to_page", "Add an existing block to a page", AddBlockToPageParams, add_block_to_page),
        ("search_blocks", "Search the user's blocks by meaning and keywords", SearchBlocksParams, search_blocks),
        ("find_similar_blocks", "Find blocks similar to an existing block", FindSimilarBlocksParams, find_similar_blocks),
        ("get_block", "Get a block by ID", BlockIdParams, get_block),
        ("delete_block", "Delete a block (pages delete their children too)", BlockIdParams, delete_block),
        ("get_todays_tasks", "List todos scheduled or due today", NoParams, get_todays_tasks),
        ("get_block_stats", "Get counts of the user's blocks and tasks", NoParams, get_block_stats),
    ]

    for name, description, parameters, handler in tools:
        registry.register(
            ToolDefinition(name=name, description=description, parameters=parameters, handler=handler)
        )
