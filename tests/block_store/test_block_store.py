"""
Tests for BlockStore.

Tests cover:
1. Create/get/update/delete with vector record sync
2. Page membership and cascading deletes
3. Listing, scheduling queries and statistics
"""

from datetime import datetime, timedelta

import pytest

from lifeagent.models.block import BlockType, BlockUpdate
from lifeagent.models.vector import compute_content_hash
from lifeagent.utils.exceptions import NotFoundError, ValidationError


@pytest.mark.unit
@pytest.mark.asyncio
class TestBlockCrud:
    """Mutations keep the vector index in step with the rows."""

    async def test_create_indexes_block(self, block_store):
        block = await block_store.create_block(
            "todo", {"text": "Buy milk"}, "u1", metadata={"category": "shopping"}
        )

        assert block.id.startswith("blk_")
        record = await block_store.vector_index.get(block.id)
        assert record is not None
        assert record.text_snapshot == "Buy milk"
        assert record.content_hash == compute_content_hash("Buy milk")
        assert record.category == "shopping"
        assert record.block_type == "todo"

    async def test_create_requires_user(self, block_store):
        with pytest.raises(ValidationError):
            await block_store.create_block("text", {"text": "x"}, "")

    async def test_create_rejects_bad_content(self, block_store):
        with pytest.raises(ValidationError):
            await block_store.create_block("table", {"text": "not a table"}, "u1")

        assert await block_store.repository.list_ids() == []

    async def test_get_missing_block(self, block_store):
        with pytest.raises(NotFoundError):
            await block_store.get_block("blk_missing")

    async def test_get_empty_id(self, block_store):
        with pytest.raises(ValidationError):
            await block_store.get_block(" ")

    async def test_content_update_reembeds(self, block_store, hashing_embedder):
        block = await block_store.create_block("text", {"text": "first draft"}, "u1")

        updated = await block_store.update_block(block.id, {"content": {"text": "second draft"}})

        record = await block_store.vector_index.get(block.id)
        assert updated.content.text == "second draft"
        assert record.text_snapshot == "second draft"
        assert len(hashing_embedder.calls) == 2

    async def test_metadata_update_keeps_embedding(self, block_store, hashing_embedder):
        block = await block_store.create_block(
            "text", {"text": "notes"}, "u1", metadata={"tags": ["a"], "category": "work"}
        )

        updated = await block_store.update_metadata(block.id, {"priority": "high"})

        assert updated.metadata.priority.value == "high"
        assert updated.metadata.tags == ["a"]
        assert updated.metadata.category == "work"
        assert len(hashing_embedder.calls) == 1

    async def test_type_change_requires_content(self, block_store):
        block = await block_store.create_block("text", {"text": "call mom"}, "u1")

        with pytest.raises(ValidationError):
            await block_store.update_block(block.id, BlockUpdate(type=BlockType.TODO))

    async def test_type_change_with_content(self, block_store):
        block = await block_store.create_block("text", {"text": "call mom"}, "u1")

        updated = await block_store.update_block(
            block.id, {"type": "todo", "content": {"text": "call mom"}}
        )

        assert updated.type == BlockType.TODO
        assert (await block_store.vector_index.get(block.id)).block_type == "todo"

    async def test_invalid_update_fields(self, block_store):
        block = await block_store.create_block("text", {"text": "call mom"}, "u1")

        with pytest.raises(ValidationError) as exc_info:
            await block_store.update_block(block.id, {"type": "bogus", "content": "not a dict"})

        assert exc_info.value.context == {"block_id": block.id}
        assert (await block_store.get_block(block.id)).content.text == "call mom"

    async def test_content_update_changes_search_terms(self, block_store, retrieval):
        block = await block_store.create_block("text", {"text": "pick up groceries"}, "u1")
        await block_store.create_block("text", {"text": "dentist appointment friday"}, "u1")
        assert [b.id for b in await retrieval.search("groceries", "u1")] == [block.id]

        await block_store.update_block(block.id, {"content": {"text": "renew passport"}})

        assert [b.id for b in await retrieval.search("renew passport", "u1")][0] == block.id
        assert block.id not in [b.id for b in await retrieval.search("groceries", "u1")]

    async def test_update_missing_block(self, block_store):
        with pytest.raises(NotFoundError):
            await block_store.update_block("blk_missing", {"content": {"text": "x"}})

    async def test_delete_removes_row_and_record(self, block_store):
        block = await block_store.create_block("text", {"text": "temp"}, "u1")

        assert await block_store.delete_block(block.id) == [block.id]

        assert await block_store.vector_index.get(block.id) is None
        with pytest.raises(NotFoundError):
            await block_store.get_block(block.id)

    async def test_delete_missing_block(self, block_store):
        with pytest.raises(NotFoundError):
            await block_store.delete_block("blk_missing")


@pytest.mark.unit
@pytest.mark.asyncio
class TestPages:
    """Parent/child bookkeeping."""

    async def test_create_with_parent_links_child(self, block_store):
        page = await block_store.create_block("page", {"title": "Trip"}, "u1")
        child = await block_store.create_block("todo", {"text": "Pack"}, "u1", parent_id=page.id)

        refreshed = await block_store.get_block(page.id)
        assert refreshed.content.child_blocks == [child.id]
        assert child.parent_id == page.id

    async def test_parent_must_be_page(self, block_store):
        note = await block_store.create_block("text", {"text": "note"}, "u1")

        with pytest.raises(ValidationError):
            await block_store.create_block("todo", {"text": "x"}, "u1", parent_id=note.id)

    async def test_unknown_parent(self, block_store):
        with pytest.raises(NotFoundError):
            await block_store.create_block("todo", {"text": "x"}, "u1", parent_id="blk_missing")

    async def test_add_block_to_page_moves_between_pages(self, block_store):
        first = await block_store.create_block("page", {"title": "A"}, "u1")
        second = await block_store.create_block("page", {"title": "B"}, "u1")
        child = await block_store.create_block("text", {"text": "x"}, "u1", parent_id=first.id)

        page = await block_store.add_block_to_page(second.id, child.id)

        assert page.content.child_blocks == [child.id]
        assert (await block_store.get_block(first.id)).content.child_blocks == []
        assert (await block_store.get_block(child.id)).parent_id == second.id

    async def test_add_block_to_page_is_idempotent(self, block_store):
        page = await block_store.create_block("page", {"title": "A"}, "u1")
        child = await block_store.create_block("text", {"text": "x"}, "u1")

        await block_store.add_block_to_page(page.id, child.id)
        updated = await block_store.add_block_to_page(page.id, child.id)

        assert updated.content.child_blocks == [child.id]

    async def test_page_cannot_contain_itself(self, block_store):
        page = await block_store.create_block("page", {"title": "A"}, "u1")

        with pytest.raises(ValidationError):
            await block_store.add_block_to_page(page.id, page.id)

    async def test_deleting_page_cascades(self, block_store):
        page = await block_store.create_block("page", {"title": "Trip"}, "u1")
        sub = await block_store.create_block("page", {"title": "Day 1"}, "u1", parent_id=page.id)
        leaf = await block_store.create_block("todo", {"text": "Hike"}, "u1", parent_id=sub.id)

        deleted = await block_store.delete_block(page.id)

        assert deleted == [leaf.id, sub.id, page.id]
        assert await block_store.vector_index.list_block_ids() == []

    async def test_deleting_child_unlinks_it(self, block_store):
        page = await block_store.create_block("page", {"title": "Trip"}, "u1")
        child = await block_store.create_block("todo", {"text": "Pack"}, "u1", parent_id=page.id)

        await block_store.delete_block(child.id)

        assert (await block_store.get_block(page.id)).content.child_blocks == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestQueries:
    """Listing, scheduling and statistics."""

    async def test_list_by_user_filters(self, block_store):
        await block_store.create_block("todo", {"text": "a"}, "u1", metadata={"category": "work"})
        await block_store.create_block("text", {"text": "b"}, "u1", metadata={"category": "work"})
        await block_store.create_block("todo", {"text": "c"}, "u1", metadata={"category": "home"})
        await block_store.create_block("todo", {"text": "d"}, "u2", metadata={"category": "work"})

        todos = await block_store.list_by_user("u1", block_type="todo")
        work_todos = await block_store.list_by_user("u1", block_type="todo", category="work")

        assert len(todos) == 2
        assert [b.content.text for b in work_todos] == ["a"]

    async def test_list_by_user_pagination(self, block_store):
        for i in range(3):
            await block_store.create_block("text", {"text": f"note {i}"}, "u1")

        page = await block_store.list_by_user("u1", limit=2, offset=2)

        assert len(page) == 1

    async def test_list_by_user_invalid_limit(self, block_store):
        with pytest.raises(ValidationError):
            await block_store.list_by_user("u1", limit=0)

    async def test_list_scheduled_window(self, block_store):
        day = datetime(2025, 1, 15)
        inside = await block_store.create_block(
            "todo", {"text": "in"}, "u1", metadata={"scheduled_at": day + timedelta(hours=9)}
        )
        await block_store.create_block(
            "todo", {"text": "out"}, "u1", metadata={"scheduled_at": day + timedelta(days=1, hours=9)}
        )
        done = await block_store.create_block(
            "todo",
            {"text": "done", "checked": True},
            "u1",
            metadata={"scheduled_at": day + timedelta(hours=8)},
        )

        everything = await block_store.list_scheduled("u1", day, day + timedelta(days=1))
        pending = await block_store.list_scheduled(
            "u1", day, day + timedelta(days=1), include_completed=False
        )

        assert [b.id for b in everything] == [done.id, inside.id]
        assert [b.id for b in pending] == [inside.id]

    async def test_list_scheduled_unknown_field(self, block_store):
        with pytest.raises(ValidationError):
            await block_store.list_scheduled(
                "u1", datetime(2025, 1, 1), datetime(2025, 1, 2), field="created_at"
            )

    async def test_block_stats(self, block_store):
        await block_store.create_block("todo", {"text": "a", "checked": True}, "u1")
        await block_store.create_block("todo", {"text": "b"}, "u1")
        await block_store.create_block("page", {"title": "P"}, "u1")
        await block_store.create_block("text", {"text": "other user"}, "u2")

        stats = await block_store.get_block_stats("u1")

        assert stats.total_blocks == 3
        assert stats.total_todos == 2
        assert stats.completed_todos == 1
        assert stats.pending_todos == 1
        assert stats.pages == 1
        assert stats.by_type == {"todo": 2, "page": 1}
        assert stats.recent_activity == 3
