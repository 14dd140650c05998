"""
Tests for RetrievalEngine.

Tests cover:
1. Hybrid ranking with score breakdown
2. Filters and user isolation
3. Keyword-only fallback when the query cannot be embedded
4. Skipping orphaned and re-filed index records
5. Similar-block lookup
"""

import pytest

from lifeagent.services.retrieval_engine import (
    RetrievalEngine,
    keyword_score,
    query_terms,
    tokenize,
)
from lifeagent.utils.exceptions import NotFoundError, ValidationError


@pytest.mark.unit
class TestKeywordScoring:
    """Whole-word keyword overlap."""

    def test_tokenize(self):
        assert tokenize("Buy MILK, eggs!") == ["buy", "milk", "eggs"]

    def test_query_terms_unique(self):
        assert query_terms("milk Milk bread") == ["milk", "bread"]

    def test_fraction_of_terms(self):
        assert keyword_score(["milk", "bread"], "Buy milk today") == 0.5

    def test_whole_words_only(self):
        assert keyword_score(["milk"], "milkshake") == 0.0

    def test_no_terms(self):
        assert keyword_score([], "anything") == 0.0


@pytest.mark.unit
@pytest.mark.asyncio
class TestRetrievalEngine:
    """Search over stored blocks."""

    async def test_best_match_first(self, block_store, retrieval):
        target = await block_store.create_block("todo", {"text": "Buy milk at the store"}, "u1")
        await block_store.create_block("text", {"text": "Milk the cows"}, "u1")
        await block_store.create_block("text", {"text": "Plan vacation to Spain"}, "u1")

        hits = await retrieval.search_scored("buy milk", "u1")

        assert hits[0].block.id == target.id
        assert hits[0].keyword_score == 1.0
        assert hits[0].vector_score > 0.0
        assert hits[0].score == pytest.approx(0.7 * hits[0].vector_score + 0.3 * 1.0)

    async def test_matching_block_ranks_above_unrelated(self, block_store, retrieval):
        await block_store.create_block("text", {"text": "Weekend grocery list"}, "u1")
        notes = await block_store.create_block(
            "text", {"text": "Notes on deep learning and neural networks"}, "u1"
        )

        blocks = await retrieval.search("deep learning", "u1")

        assert blocks[0].id == notes.id

    async def test_both_signals_outrank_either_alone(self, block_store, retrieval):
        query_vector = await block_store.embeddings.embed("deep learning")
        both = await block_store.create_block("text", {"text": "deep learning"}, "u1")
        vector_only = await block_store.create_block("text", {"text": "gradient descent"}, "u1")
        keyword_only = await block_store.create_block("text", {"text": "deep learning course"}, "u1")

        record = await block_store.vector_index.get(vector_only.id)
        await block_store.vector_index.upsert(record.model_copy(update={"embedding": query_vector}))
        # One-hot in a bucket no query token hashes to
        record = await block_store.vector_index.get(keyword_only.id)
        await block_store.vector_index.upsert(
            record.model_copy(update={"embedding": [1.0] + [0.0] * (len(query_vector) - 1)})
        )

        hits = await retrieval.search_scored("deep learning", "u1")

        assert [h.block.id for h in hits] == [both.id, vector_only.id, keyword_only.id]
        assert hits[0].score > hits[1].score > hits[2].score
        assert (hits[1].keyword_score, hits[2].vector_score) == (0.0, 0.0)

    async def test_repeated_search_is_deterministic(self, block_store, retrieval):
        for text in ["garden plan", "garden tools", "garden plan", "plan the garden party"]:
            await block_store.create_block("text", {"text": text}, "u1")

        first = [b.id for b in await retrieval.search("garden plan", "u1")]
        second = [b.id for b in await retrieval.search("garden plan", "u1")]

        assert len(first) == 4
        assert first == second

    async def test_users_are_isolated(self, block_store, retrieval):
        mine = await block_store.create_block("text", {"text": "dentist appointment"}, "u1")
        await block_store.create_block("text", {"text": "dentist appointment"}, "u2")

        blocks = await retrieval.search("dentist", "u1")

        assert [b.id for b in blocks] == [mine.id]

    async def test_type_filter(self, block_store, retrieval):
        todo = await block_store.create_block("todo", {"text": "Call the plumber"}, "u1")
        await block_store.create_block("text", {"text": "Plumber phone number"}, "u1")

        blocks = await retrieval.search("plumber", "u1", block_type="todo")

        assert [b.id for b in blocks] == [todo.id]

    async def test_limit(self, block_store, retrieval):
        for i in range(4):
            await block_store.create_block("text", {"text": f"garden idea {i}"}, "u1")

        assert len(await retrieval.search("garden idea", "u1", limit=2)) == 2

    async def test_empty_query(self, retrieval):
        with pytest.raises(ValidationError):
            await retrieval.search("  ", "u1")

    async def test_invalid_limit(self, retrieval):
        with pytest.raises(ValidationError):
            await retrieval.search("milk", "u1", limit=0)

    async def test_keyword_only_when_embedding_fails(self, block_store, failing_embeddings):
        engine = RetrievalEngine(block_store, block_store.vector_index, failing_embeddings)
        dentist = await block_store.create_block("text", {"text": "Dentist appointment Friday"}, "u1")
        await block_store.create_block("text", {"text": "Groceries list"}, "u1")

        hits = await engine.search_scored("dentist", "u1")

        assert [h.block.id for h in hits] == [dentist.id]
        assert hits[0].vector_score == 0.0
        assert hits[0].score == 1.0

    async def test_orphaned_record_skipped(self, block_store, retrieval):
        block = await block_store.create_block("text", {"text": "orphan note"}, "u1")
        await block_store.repository.delete(block.id)

        assert await retrieval.search("orphan note", "u1") == []

    async def test_refiled_block_respects_live_category(self, block_store, retrieval):
        block = await block_store.create_block(
            "text", {"text": "quarterly report"}, "u1", metadata={"category": "work"}
        )
        await block_store.update_metadata(block.id, {"category": "archive"})

        assert await retrieval.search("quarterly report", "u1", category="work") == []

    async def test_search_similar_excludes_reference(self, block_store, retrieval):
        reference = await block_store.create_block("todo", {"text": "Buy milk and eggs"}, "u1")
        twin = await block_store.create_block("todo", {"text": "Buy milk and bread"}, "u1")
        await block_store.create_block("text", {"text": "Plan vacation to Spain"}, "u1")

        hits = await retrieval.search_similar(reference.id, "u1")

        assert [h.block.id for h in hits] == [twin.id]
        assert hits[0].score >= 0.6

    async def test_search_similar_unknown_block(self, retrieval):
        with pytest.raises(NotFoundError):
            await retrieval.search_similar("blk_missing", "u1")
