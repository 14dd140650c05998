"""
Retrieval Engine - hybrid vector + keyword search over blocks.

Ranking:
- combined = vector_weight * cosine + keyword_weight * keyword overlap
- keyword only when the query embedding failed (zero vector)
- ties broken by most recent updated_at, then block id
"""

import re

from lifeagent.config import RetrievalConfig
from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.embeddings.provider import EmbeddingProvider, is_zero_vector
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.models.block import Block, BlockType
from lifeagent.models.vector import ScoredBlock, VectorFilters, sort_key
from lifeagent.utils.exceptions import ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_WORD = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens."""
    return _WORD.findall((text or "").lower())


def query_terms(query: str) -> list[str]:
    """Unique query terms in first-seen order."""
    return list(dict.fromkeys(tokenize(query)))


def keyword_score(terms: list[str], text: str) -> float:
    """
    Fraction of query terms present in text as whole words (case-insensitive).

    Args:
        terms: Unique lowercased query terms
        text: Text snapshot of a candidate

    Returns:
        Score in [0, 1]; 0 when there are no terms
    """
    if not terms:
        return 0.0
    words = set(tokenize(text))
    return sum(1 for term in terms if term in words) / len(terms)


class RetrievalEngine:
    """
    Hybrid search over a user's blocks.

    Candidates come from the vector index; the final list is materialized
    from the block store so callers always see live block state.
    """

    def __init__(
        self,
        block_store: BlockStore,
        vector_index: VectorIndex,
        embeddings: EmbeddingProvider,
        config: RetrievalConfig | None = None,
    ):
        """
        Initialize retrieval engine.

        Args:
            block_store: Source of truth for blocks
            vector_index: Index of block embeddings and text snapshots
            embeddings: Provider used to embed queries
            config: Weights and thresholds
        """
        self.block_store = block_store
        self.vector_index = vector_index
        self.embeddings = embeddings
        self.config = config or RetrievalConfig()

    def _filters(
        self, user_id: str, block_type: BlockType | str | None, category: str | None
    ) -> VectorFilters:
        if not user_id:
            raise ValidationError("user_id is required")
        return VectorFilters(
            user_id=user_id,
            type=BlockType(block_type) if block_type else None,
            category=category,
        )

    async def search_scored(
        self,
        query: str,
        user_id: str,
        block_type: BlockType | str | None = None,
        category: str | None = None,
        limit: int = 10,
        min_vector_score: float | None = None,
    ) -> list[ScoredBlock]:
        """
        Hybrid search returning blocks with their score breakdown.

        Args:
            query: Free-text query
            user_id: Owner whose blocks are searched
            block_type: Optional type filter
            category: Optional category filter
            limit: Maximum results
            min_vector_score: Cosine floor for candidates (default:
                candidate_min_score). Ignored when the query embedding
                failed, since every record then scores 0.

        Returns:
            Ranked hits, best first

        Raises:
            ValidationError: If query is empty or limit is not positive
        """
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty")
        if limit < 1:
            raise ValidationError("limit must be positive")

        filters = self._filters(user_id, block_type, category)
        query_vector = await self.embeddings.embed(query)
        vector_available = not is_zero_vector(query_vector)

        pool = limit * self.config.candidate_multiplier
        min_score = self.config.candidate_min_score
        if vector_available:
            if min_vector_score is not None:
                min_score = min_vector_score
        else:
            pool = max(pool, self.config.keyword_scan_limit)

        candidates = await self.vector_index.query(
            query_vector,
            filters,
            top_k=pool,
            min_score=min_score,
        )

        terms = query_terms(query)
        ranked = []
        for hit in candidates:
            kw = keyword_score(terms, hit.record.text_snapshot)
            if vector_available:
                vec = max(hit.score, 0.0)
                combined = self.config.vector_weight * vec + self.config.keyword_weight * kw
            else:
                vec = 0.0
                combined = kw
            if combined <= 0.0:
                continue
            ranked.append((combined, vec, kw, hit.record))

        ranked.sort(key=lambda item: sort_key(item[0], item[3].updated_at, item[3].block_id))

        blocks = await self.block_store.get_blocks([item[3].block_id for item in ranked])

        results: list[ScoredBlock] = []
        for combined, vec, kw, record in ranked:
            block = blocks.get(record.block_id)
            # Orphaned record or block re-filed since it was indexed
            if block is None or not filters.matches(block):
                continue
            results.append(
                ScoredBlock(block=block, score=combined, vector_score=vec, keyword_score=kw)
            )
            if len(results) >= limit:
                break

        logger.debug(
            f"Search returned {len(results)} of {len(candidates)} candidates",
            extra={
                "user_id": user_id,
                "vector_available": vector_available,
                "candidates": len(candidates),
                "results": len(results),
            },
        )
        return results

    async def search(
        self,
        query: str,
        user_id: str,
        block_type: BlockType | str | None = None,
        category: str | None = None,
        limit: int = 10,
    ) -> list[Block]:
        """Hybrid search returning ranked blocks."""
        hits = await self.search_scored(query, user_id, block_type, category, limit)
        return [hit.block for hit in hits]

    async def search_similar(
        self,
        reference_block_id: str,
        user_id: str,
        block_type: BlockType | str | None = None,
        category: str | None = None,
        limit: int = 5,
    ) -> list[ScoredBlock]:
        """
        Pure-vector neighbors of an existing block, excluding the block itself.

        Raises:
            NotFoundError: If the reference block is not indexed
        """
        filters = self._filters(user_id, block_type, category)

        neighbors = await self.vector_index.query_neighbors(
            reference_block_id,
            filters,
            top_k=limit,
            min_score=self.config.neighbor_min_score,
        )

        blocks = await self.block_store.get_blocks([hit.block_id for hit in neighbors])

        results = []
        for hit in neighbors:
            block = blocks.get(hit.block_id)
            if block is None or not filters.matches(block):
                continue
            results.append(ScoredBlock(block=block, score=hit.score, vector_score=hit.score))
        return results
