"""
Block Store - single entry point for block mutations.

Every content-changing mutation refreshes the block's vector record:
- create: persist row, then upsert vector record
- update: persist row, then re-embed and upsert if content changed
- delete: delete vector record, then row

Row and vector writes are not atomic; a crash between the two phases
leaves a stale record that IndexReconciler repairs.
"""

from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from lifeagent.core.block_store.repository import SQLiteBlockRepository
from lifeagent.core.embeddings.provider import EmbeddingProvider
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.models.block import (
    Block,
    BlockMetadata,
    BlockStats,
    BlockType,
    BlockUpdate,
    extract_text,
    parse_block_type,
    parse_content,
    parse_metadata,
)
from lifeagent.models.vector import VectorRecord, compute_content_hash
from lifeagent.utils.exceptions import (
    BlockStoreError,
    NotFoundError,
    ValidationError,
    VectorStoreError,
)
from lifeagent.utils.id_generator import generate_block_id
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class BlockStore:
    """
    Block CRUD with a synchronized vector index.

    Services should use this instead of calling the repository or index directly.
    """

    def __init__(
        self,
        repository: SQLiteBlockRepository,
        vector_index: VectorIndex,
        embeddings: EmbeddingProvider,
    ):
        """
        Initialize BlockStore.

        Args:
            repository: Row storage for blocks
            vector_index: Index holding one vector record per block
            embeddings: Provider used to embed flattened block text
        """
        self.repository = repository
        self.vector_index = vector_index
        self.embeddings = embeddings

    async def initialize(self) -> None:
        await self.repository.initialize()
        await self.vector_index.initialize()

    async def close(self) -> None:
        await self.repository.close()
        await self.vector_index.close()

    # ═══════════════════════════════════════════════════════════
    # VECTOR SYNC
    # ═══════════════════════════════════════════════════════════

    def metadata_snapshot(self, block: Block) -> dict[str, Any]:
        """Filterable fields copied into the vector record."""
        return {
            "type": block.type.value,
            "category": block.metadata.category,
            "tags": list(block.metadata.tags),
            "priority": block.metadata.priority.value if block.metadata.priority else None,
        }

    async def build_vector_record(self, block: Block) -> VectorRecord:
        """Embed a block's flattened text into a fresh vector record."""
        text = extract_text(block.type, block.content)
        embedding = await self.embeddings.embed(text)

        return VectorRecord(
            block_id=block.id,
            user_id=block.user_id,
            embedding=embedding,
            text_snapshot=text,
            metadata_snapshot=self.metadata_snapshot(block),
            content_hash=compute_content_hash(text),
            updated_at=block.updated_at,
        )

    async def sync_vector(self, block: Block) -> VectorRecord:
        """Re-embed a block and upsert its vector record."""
        record = await self.build_vector_record(block)
        await self.vector_index.upsert(record)
        return record

    # ═══════════════════════════════════════════════════════════
    # CRUD
    # ═══════════════════════════════════════════════════════════

    async def create_block(
        self,
        block_type: BlockType | str,
        content: dict[str, Any] | Any,
        user_id: str,
        metadata: BlockMetadata | dict[str, Any] | None = None,
        parent_id: str | None = None,
        template_id: str | None = None,
    ) -> Block:
        """
        Create a block and index it.

        Args:
            block_type: Block type
            content: Content matching the type's shape
            user_id: Owner
            metadata: Optional metadata
            parent_id: Optional page id; the block is appended to the page's children
            template_id: Template the block was instantiated from

        Returns:
            The created block

        Raises:
            ValidationError: If content does not match the type
            NotFoundError: If parent_id is unknown
        """
        if not user_id:
            raise ValidationError("user_id is required")

        block_type = parse_block_type(block_type)
        parsed_content = parse_content(block_type, content)
        parsed_metadata = parse_metadata(metadata)

        parent = None
        if parent_id is not None:
            parent = await self._require_page(parent_id)

        now = datetime.now()
        block = Block(
            id=generate_block_id(),
            type=block_type,
            content=parsed_content,
            metadata=parsed_metadata,
            parent_id=parent_id,
            template_id=template_id,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.repository.save(block)
            await self.sync_vector(block)
        except (ValidationError, BlockStoreError, VectorStoreError):
            raise
        except Exception as e:
            logger.error(
                f"Failed to create block: {e}",
                extra={"block_type": block_type.value, "user_id": user_id, "error": str(e)},
            )
            raise BlockStoreError(f"Failed to create block: {e}") from e

        if parent is not None:
            await self._link_child(parent, block.id)

        logger.info(
            f"Created {block_type.value} block {block.id}",
            extra={"block_id": block.id, "user_id": user_id, "block_type": block_type.value},
        )
        return block

    async def get_block(self, block_id: str) -> Block:
        """
        Get a block by id.

        Raises:
            ValidationError: If block_id is empty
            NotFoundError: If the block does not exist
        """
        if not block_id or not block_id.strip():
            raise ValidationError("Block ID cannot be empty")

        block = await self.repository.get(block_id)
        if block is None:
            raise NotFoundError(f"Block {block_id} not found", context={"block_id": block_id})
        return block

    async def get_blocks(self, block_ids: list[str]) -> dict[str, Block]:
        """Fetch several blocks by id; unknown ids are skipped."""
        return await self.repository.get_many(block_ids)

    async def update_block(self, block_id: str, update: BlockUpdate | dict[str, Any]) -> Block:
        """
        Apply a partial update.

        Content or type changes re-embed the block before returning.

        Args:
            block_id: Block to update
            update: Fields to change; metadata is merged key by key

        Returns:
            The updated block

        Raises:
            NotFoundError: If the block does not exist
            ValidationError: If the result is invalid
        """
        if isinstance(update, dict):
            try:
                update = BlockUpdate.model_validate(update)
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Invalid block update: {e.errors(include_url=False)}",
                    context={"block_id": block_id},
                ) from e

        existing = await self.get_block(block_id)

        new_type = existing.type if update.type is None else parse_block_type(update.type)
        if update.content is not None:
            new_content = parse_content(new_type, update.content)
        elif new_type != existing.type:
            raise ValidationError(
                "Changing a block's type requires new content",
                context={"block_id": block_id, "from": existing.type.value, "to": new_type.value},
            )
        else:
            new_content = existing.content

        new_metadata = existing.metadata
        if update.metadata:
            new_metadata = existing.metadata.merged(update.metadata)

        new_parent = None
        if update.parent_id is not None and update.parent_id != existing.parent_id:
            if update.parent_id == block_id:
                raise ValidationError("A page cannot contain itself")
            new_parent = await self._require_page(update.parent_id)

        updated = Block(
            id=existing.id,
            type=new_type,
            content=new_content,
            metadata=new_metadata,
            parent_id=update.parent_id if update.parent_id is not None else existing.parent_id,
            template_id=existing.template_id,
            user_id=existing.user_id,
            created_at=existing.created_at,
            updated_at=datetime.now(),
        )

        content_changed = new_type != existing.type or new_content != existing.content

        await self.repository.save(updated)
        if content_changed:
            await self.sync_vector(updated)

        if new_parent is not None:
            if existing.parent_id:
                previous = await self.repository.get(existing.parent_id)
                if previous is not None and previous.type == BlockType.PAGE:
                    await self._unlink_child(previous, block_id)
            await self._link_child(new_parent, block_id)

        logger.info(
            f"Updated block {block_id}",
            extra={"block_id": block_id, "content_changed": content_changed},
        )
        return updated

    async def update_metadata(self, block_id: str, patch: dict[str, Any]) -> Block:
        """Merge keys into a block's metadata, keeping the others."""
        return await self.update_block(block_id, BlockUpdate(metadata=patch))

    async def delete_block(self, block_id: str) -> list[str]:
        """
        Delete a block.

        The vector record goes first, then the row. Pages delete their
        children recursively; a child is unlinked from its parent page.

        Returns:
            Ids of every deleted block, children first

        Raises:
            NotFoundError: If the block does not exist
        """
        block = await self.get_block(block_id)

        deleted: list[str] = []
        await self._delete_tree(block, deleted)

        if block.parent_id:
            parent = await self.repository.get(block.parent_id)
            if parent is not None and parent.type == BlockType.PAGE:
                await self._unlink_child(parent, block.id)

        logger.info(
            f"Deleted block {block_id}",
            extra={"block_id": block_id, "deleted_count": len(deleted)},
        )
        return deleted

    async def _delete_tree(self, block: Block, deleted: list[str]) -> None:
        if block.type == BlockType.PAGE:
            child_ids = list(dict.fromkeys(block.content.child_blocks))
            children = await self.repository.get_many(child_ids)
            for child in await self.repository.list_children(block.id):
                children.setdefault(child.id, child)
            for child in children.values():
                if child.id not in deleted:
                    await self._delete_tree(child, deleted)

        await self.vector_index.delete(block.id)
        await self.repository.delete(block.id)
        deleted.append(block.id)

    async def list_by_user(
        self,
        user_id: str,
        block_type: BlockType | str | None = None,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Block]:
        """List a user's blocks, most recently updated first."""
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")

        return await self.repository.list_by_user(
            user_id,
            block_type=parse_block_type(block_type) if block_type else None,
            category=category,
            limit=limit,
            offset=offset,
        )

    async def list_scheduled(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        include_completed: bool = True,
        field: str = "scheduled_at",
    ) -> list[Block]:
        """Todos whose scheduled_at (or due_date, via field) is in [start, end)."""
        return await self.repository.list_scheduled(
            user_id, start, end, include_completed=include_completed, field=field
        )

    # ═══════════════════════════════════════════════════════════
    # PAGES
    # ═══════════════════════════════════════════════════════════

    async def add_block_to_page(self, page_id: str, block_id: str) -> Block:
        """
        Attach a block to a page.

        Returns:
            The updated page

        Raises:
            NotFoundError: If either block does not exist
            ValidationError: If page_id is not a page or the block is the page itself
        """
        if page_id == block_id:
            raise ValidationError("A page cannot contain itself")

        page = await self._require_page(page_id)
        block = await self.get_block(block_id)

        if block.parent_id and block.parent_id != page_id:
            previous = await self.repository.get(block.parent_id)
            if previous is not None and previous.type == BlockType.PAGE:
                await self._unlink_child(previous, block_id)

        if block.parent_id != page_id:
            await self.repository.save(
                block.model_copy(update={"parent_id": page_id, "updated_at": datetime.now()})
            )

        return await self._link_child(page, block_id)

    async def _require_page(self, page_id: str) -> Block:
        page = await self.get_block(page_id)
        if page.type != BlockType.PAGE:
            raise ValidationError(
                f"Block {page_id} is not a page", context={"block_id": page_id}
            )
        return page

    async def _link_child(self, page: Block, child_id: str) -> Block:
        if child_id in page.content.child_blocks:
            return page
        content = page.content.model_copy(
            update={"child_blocks": [*page.content.child_blocks, child_id]}
        )
        updated = page.model_copy(update={"content": content, "updated_at": datetime.now()})
        # Child ids are not part of the page's text, so the vector record stays valid
        await self.repository.save(updated)
        return updated

    async def _unlink_child(self, page: Block, child_id: str) -> Block:
        content = page.content.model_copy(
            update={"child_blocks": [c for c in page.content.child_blocks if c != child_id]}
        )
        updated = page.model_copy(update={"content": content, "updated_at": datetime.now()})
        await self.repository.save(updated)
        return updated

    # ═══════════════════════════════════════════════════════════
    # STATISTICS
    # ═══════════════════════════════════════════════════════════

    async def get_block_stats(self, user_id: str) -> BlockStats:
        """Counts by type, todo completion and blocks touched in the last 24h."""
        return await self.repository.stats(user_id, since=datetime.now() - timedelta(hours=24))
