"""
Base interface for the vector index.

One record per block, scored by cosine similarity. Results are sorted by
score descending, ties broken by most recent updated_at, then block id.
"""

from abc import ABC, abstractmethod

from lifeagent.models.vector import ScoredRecord, VectorFilters, VectorRecord


class VectorIndex(ABC):
    """Abstract base class for vector index implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Create tables/collections.

        Raises:
            VectorStoreError: If initialization fails
        """
        pass

    @abstractmethod
    async def upsert(self, record: VectorRecord) -> None:
        """
        Store or replace the record for record.block_id.

        Raises:
            ValidationError: If the record is invalid
            VectorStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, block_id: str) -> None:
        """Delete the record of a block. Missing records are ignored."""
        pass

    @abstractmethod
    async def get(self, block_id: str) -> VectorRecord | None:
        """Fetch one record, or None."""
        pass

    @abstractmethod
    async def query(
        self,
        query_vector: list[float],
        filters: VectorFilters,
        top_k: int = 10,
        min_score: float = 0.5,
    ) -> list[ScoredRecord]:
        """
        Rank records by cosine similarity to a query vector.

        Args:
            query_vector: Query embedding
            filters: user_id plus optional type/category
            top_k: Maximum results
            min_score: Results scoring below this are dropped

        Returns:
            Ranked hits
        """
        pass

    @abstractmethod
    async def query_neighbors(
        self,
        reference_block_id: str,
        filters: VectorFilters,
        top_k: int = 10,
        min_score: float = 0.6,
    ) -> list[ScoredRecord]:
        """
        Rank records by similarity to an indexed block, excluding that block.

        Raises:
            NotFoundError: If the reference block has no record
        """
        pass

    @abstractmethod
    async def scan(self, filters: VectorFilters, limit: int = 100) -> list[VectorRecord]:
        """Records matching filters, most recently updated first."""
        pass

    @abstractmethod
    async def list_block_ids(self, user_id: str | None = None) -> list[str]:
        """
        INTERNAL: ids of all indexed blocks, optionally for one user.

        Used by the reconciler to find orphaned records.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
