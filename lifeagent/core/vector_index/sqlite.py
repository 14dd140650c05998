"""
SQLite vector index.

Embeddings are stored as JSON next to their snapshots and scored in process
with numpy/scikit-learn. Suited to per-user collections of a few thousand blocks.
"""

import json
from datetime import datetime
from pathlib import Path

import aiosqlite

from lifeagent.core.embeddings.provider import batch_cosine_similarity
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.models.vector import ScoredRecord, VectorFilters, VectorRecord, sort_key
from lifeagent.utils.exceptions import NotFoundError, ValidationError, VectorStoreError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "block_id, user_id, block_type, category, embedding, text_snapshot, "
    "metadata_snapshot, content_hash, updated_at"
)


class SQLiteVectorIndex(VectorIndex):
    """Vector index backed by a SQLite table."""

    def __init__(self, db_path: str = "data/lifeagent.db"):
        """
        Initialize SQLite vector index.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Create the vector_records table."""
        try:
            await self.connect()

            await self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS vector_records (
                    block_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    block_type TEXT,
                    category TEXT,
                    embedding TEXT NOT NULL,
                    text_snapshot TEXT DEFAULT '',
                    metadata_snapshot TEXT DEFAULT '{}',
                    content_hash TEXT DEFAULT '',
                    updated_at TEXT NOT NULL
                )
            """
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_vectors_user ON vector_records(user_id)"
            )
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_vectors_user_type ON vector_records(user_id, block_type)"
            )
            await self.connection.commit()
        except Exception as e:
            logger.error(
                f"Failed to initialize vector index: {e}",
                extra={"db_path": self.db_path, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to initialize vector index: {e}") from e

    async def upsert(self, record: VectorRecord) -> None:
        """Store or replace a record."""
        if not record.block_id:
            raise ValidationError("Vector record must have a block_id")
        if not record.embedding:
            raise ValidationError("Vector record must have an embedding")

        try:
            await self.connect()
            await self.connection.execute(
                f"INSERT OR REPLACE INTO vector_records ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.block_id,
                    record.user_id,
                    record.block_type,
                    record.category,
                    json.dumps(record.embedding),
                    record.text_snapshot,
                    json.dumps(record.metadata_snapshot, default=str),
                    record.content_hash,
                    record.updated_at.isoformat(),
                ),
            )
            await self.connection.commit()
        except Exception as e:
            logger.error(
                f"Failed to upsert vector record {record.block_id}: {e}",
                extra={"block_id": record.block_id, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to upsert vector record: {e}") from e

    async def delete(self, block_id: str) -> None:
        """Delete a record."""
        try:
            await self.connect()
            await self.connection.execute(
                "DELETE FROM vector_records WHERE block_id = ?", (block_id,)
            )
            await self.connection.commit()
        except Exception as e:
            logger.error(
                f"Failed to delete vector record {block_id}: {e}",
                extra={"block_id": block_id, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to delete vector record: {e}") from e

    async def get(self, block_id: str) -> VectorRecord | None:
        await self.connect()
        cursor = await self.connection.execute(
            f"SELECT {_COLUMNS} FROM vector_records WHERE block_id = ?", (block_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def _fetch(
        self,
        filters: VectorFilters,
        limit: int | None = None,
        exclude_id: str | None = None,
    ) -> list[VectorRecord]:
        query = f"SELECT {_COLUMNS} FROM vector_records WHERE user_id = ?"
        params: list = [filters.user_id]

        if filters.type is not None:
            query += " AND block_type = ?"
            params.append(filters.type.value)

        if filters.category is not None:
            query += " AND category = ?"
            params.append(filters.category)

        if exclude_id is not None:
            query += " AND block_id != ?"
            params.append(exclude_id)

        query += " ORDER BY updated_at DESC, block_id ASC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            await self.connect()
            cursor = await self.connection.execute(query, params)
            rows = await cursor.fetchall()
        except Exception as e:
            logger.error(
                f"Vector index read failed: {e}",
                extra={"user_id": filters.user_id, "error": str(e)},
            )
            raise VectorStoreError(f"Vector index read failed: {e}") from e

        return [self._row_to_record(row) for row in rows]

    def _rank(
        self, query_vector: list[float], records: list[VectorRecord], top_k: int, min_score: float
    ) -> list[ScoredRecord]:
        scores = batch_cosine_similarity(query_vector, [r.embedding for r in records])

        hits = [
            ScoredRecord(record=record, score=score)
            for record, score in zip(records, scores, strict=True)
            if score >= min_score
        ]
        hits.sort(key=lambda h: sort_key(h.score, h.record.updated_at, h.block_id))
        return hits[:top_k]

    async def query(
        self,
        query_vector: list[float],
        filters: VectorFilters,
        top_k: int = 10,
        min_score: float = 0.5,
    ) -> list[ScoredRecord]:
        records = await self._fetch(filters)
        return self._rank(query_vector, records, top_k, min_score)

    async def query_neighbors(
        self,
        reference_block_id: str,
        filters: VectorFilters,
        top_k: int = 10,
        min_score: float = 0.6,
    ) -> list[ScoredRecord]:
        reference = await self.get(reference_block_id)
        if reference is None:
            raise NotFoundError(
                f"Block {reference_block_id} is not indexed",
                context={"block_id": reference_block_id},
            )

        records = await self._fetch(filters, exclude_id=reference_block_id)
        return self._rank(reference.embedding, records, top_k, min_score)

    async def scan(self, filters: VectorFilters, limit: int = 100) -> list[VectorRecord]:
        return await self._fetch(filters, limit=limit)

    async def list_block_ids(self, user_id: str | None = None) -> list[str]:
        await self.connect()
        if user_id is None:
            cursor = await self.connection.execute("SELECT block_id FROM vector_records")
        else:
            cursor = await self.connection.execute(
                "SELECT block_id FROM vector_records WHERE user_id = ?", (user_id,)
            )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    def _row_to_record(self, row: tuple) -> VectorRecord:
        """Convert database row to VectorRecord."""
        return VectorRecord(
            block_id=row[0],
            user_id=row[1],
            embedding=json.loads(row[4]),
            text_snapshot=row[5] or "",
            metadata_snapshot=json.loads(row[6]) if row[6] else {},
            content_hash=row[7] or "",
            updated_at=datetime.fromisoformat(row[8]),
        )
