"""
Qdrant vector index implementation.

Each block is one point (id derived from the block id). Filters map to
payload conditions; results are re-sorted locally for the updated_at tie-break.
"""

from datetime import datetime
from typing import Any
from uuid import NAMESPACE_DNS, UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    HasIdCondition,
    HnswConfigDiff,
    MatchValue,
    PointStruct,
    VectorParams,
)

from lifeagent.core.embeddings.provider import is_zero_vector
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.models.vector import ScoredRecord, VectorFilters, VectorRecord, sort_key
from lifeagent.utils.exceptions import NotFoundError, ValidationError, VectorStoreError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class QdrantVectorIndex(VectorIndex):
    """
    Qdrant-backed vector index.

    Features:
    - HNSW indexing for fast search
    - Payload indices on user_id, type and category for filtering
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "blocks",
        vector_size: int = 768,
        use_grpc: bool = False,
        hnsw_m: int = 16,
        hnsw_ef_construct: int = 100,
        on_disk: bool = False,
        timeout: int = 30,
    ):
        """
        Initialize Qdrant index.

        Args:
            host: Qdrant host
            port: Qdrant port (6333 for HTTP, 6334 for gRPC)
            collection_name: Collection name
            vector_size: Embedding dimension
            use_grpc: Use gRPC connection
            hnsw_m: HNSW M parameter (connections per node)
            hnsw_ef_construct: HNSW ef_construct parameter
            on_disk: Store vectors on disk
            timeout: Request timeout in seconds
        """
        self.host = host
        self.port = port
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.use_grpc = use_grpc
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construct = hnsw_ef_construct
        self.on_disk = on_disk
        self.timeout = timeout
        self.client: AsyncQdrantClient | None = None

    def _to_uuid(self, id_str: str) -> str:
        """Convert a block id to a stable UUID string."""
        try:
            UUID(id_str)
            return id_str
        except ValueError:
            return str(uuid5(NAMESPACE_DNS, id_str))

    async def connect(self) -> None:
        """
        Establish connection to Qdrant.

        Raises:
            VectorStoreError: If connection fails
        """
        if self.client is None:
            try:
                self.client = AsyncQdrantClient(
                    host=self.host,
                    port=self.port,
                    prefer_grpc=self.use_grpc,
                    timeout=self.timeout,
                )
            except Exception as e:
                logger.error(
                    f"Failed to connect to Qdrant: {e}",
                    extra={"host": self.host, "port": self.port, "error": str(e)},
                )
                raise VectorStoreError(f"Failed to connect to Qdrant: {e}") from e

    async def initialize(self) -> None:
        """Create the collection and payload indices if missing."""
        try:
            await self.connect()

            collections = await self.client.get_collections()
            collection_names = [col.name for col in collections.collections]

            if self.collection_name not in collection_names:
                await self.client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(
                        size=self.vector_size,
                        distance=Distance.COSINE,
                        hnsw_config=HnswConfigDiff(
                            m=self.hnsw_m,
                            ef_construct=self.hnsw_ef_construct,
                        ),
                        on_disk=self.on_disk,
                    ),
                )

                for field_name in ("user_id", "type", "category"):
                    await self.client.create_payload_index(
                        collection_name=self.collection_name,
                        field_name=field_name,
                        field_schema="keyword",
                    )
        except Exception as e:
            logger.error(
                f"Failed to initialize Qdrant collection: {e}",
                extra={"collection": self.collection_name, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to initialize Qdrant collection: {e}") from e

    def _record_to_payload(self, record: VectorRecord) -> dict[str, Any]:
        return {
            "block_id": record.block_id,
            "user_id": record.user_id,
            "type": record.block_type,
            "category": record.category,
            "text_snapshot": record.text_snapshot,
            "metadata_snapshot": record.metadata_snapshot,
            "content_hash": record.content_hash,
            "updated_at": record.updated_at.isoformat(),
        }

    def _payload_to_record(self, payload: dict[str, Any], vector: Any) -> VectorRecord:
        return VectorRecord(
            block_id=payload["block_id"],
            user_id=payload["user_id"],
            embedding=list(vector) if vector else [0.0] * self.vector_size,
            text_snapshot=payload.get("text_snapshot", ""),
            metadata_snapshot=payload.get("metadata_snapshot", {}),
            content_hash=payload.get("content_hash", ""),
            updated_at=datetime.fromisoformat(payload["updated_at"]),
        )

    def _build_filter(self, filters: VectorFilters, exclude_id: str | None = None) -> Filter:
        conditions = [FieldCondition(key="user_id", match=MatchValue(value=filters.user_id))]

        if filters.type is not None:
            conditions.append(FieldCondition(key="type", match=MatchValue(value=filters.type.value)))

        if filters.category is not None:
            conditions.append(
                FieldCondition(key="category", match=MatchValue(value=filters.category))
            )

        must_not = None
        if exclude_id is not None:
            must_not = [HasIdCondition(has_id=[self._to_uuid(exclude_id)])]

        return Filter(must=conditions, must_not=must_not)

    async def upsert(self, record: VectorRecord) -> None:
        if not record.block_id:
            raise ValidationError("Vector record must have a block_id")
        if not record.embedding:
            raise ValidationError("Vector record must have an embedding")

        try:
            await self.connect()
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[
                    PointStruct(
                        id=self._to_uuid(record.block_id),
                        vector=record.embedding,
                        payload=self._record_to_payload(record),
                    )
                ],
                wait=True,
            )
        except ValidationError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to upsert vector record {record.block_id}: {e}",
                extra={"block_id": record.block_id, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to upsert vector record: {e}") from e

    async def delete(self, block_id: str) -> None:
        try:
            await self.connect()
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=[self._to_uuid(block_id)],
                wait=True,
            )
        except Exception as e:
            logger.error(
                f"Failed to delete vector record {block_id}: {e}",
                extra={"block_id": block_id, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to delete vector record: {e}") from e

    async def get(self, block_id: str) -> VectorRecord | None:
        try:
            await self.connect()
            results = await self.client.retrieve(
                collection_name=self.collection_name,
                ids=[self._to_uuid(block_id)],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            logger.error(
                f"Failed to retrieve vector record {block_id}: {e}",
                extra={"block_id": block_id, "error": str(e)},
            )
            raise VectorStoreError(f"Failed to retrieve vector record: {e}") from e

        if not results:
            return None
        point = results[0]
        return self._payload_to_record(point.payload, point.vector)

    async def _search(
        self,
        vector: list[float],
        query_filter: Filter,
        top_k: int,
        min_score: float,
    ) -> list[ScoredRecord]:
        await self.connect()

        if is_zero_vector(vector):
            # Cosine against a zero vector is 0 for every record
            if min_score > 0.0:
                return []
            points, _ = await self.client.scroll(
                collection_name=self.collection_name,
                scroll_filter=query_filter,
                limit=top_k,
                with_payload=True,
                with_vectors=True,
            )
            hits = [
                ScoredRecord(record=self._payload_to_record(p.payload, p.vector), score=0.0)
                for p in points
            ]
        else:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=top_k,
                score_threshold=min_score,
                query_filter=query_filter,
                with_payload=True,
                with_vectors=True,
            )
            hits = [
                ScoredRecord(record=self._payload_to_record(p.payload, p.vector), score=p.score)
                for p in response.points
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
        try:
            return await self._search(query_vector, self._build_filter(filters), top_k, min_score)
        except Exception as e:
            logger.error(
                f"Vector query failed: {e}",
                extra={"user_id": filters.user_id, "error": str(e)},
            )
            raise VectorStoreError(f"Vector query failed: {e}") from e

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

        try:
            return await self._search(
                reference.embedding,
                self._build_filter(filters, exclude_id=reference_block_id),
                top_k,
                min_score,
            )
        except Exception as e:
            logger.error(
                f"Neighbor query failed: {e}",
                extra={"block_id": reference_block_id, "error": str(e)},
            )
            raise VectorStoreError(f"Neighbor query failed: {e}") from e

    async def scan(self, filters: VectorFilters, limit: int = 100) -> list[VectorRecord]:
        await self.connect()
        points, _ = await self.client.scroll(
            collection_name=self.collection_name,
            scroll_filter=self._build_filter(filters),
            limit=limit,
            with_payload=True,
            with_vectors=True,
        )
        records = [self._payload_to_record(p.payload, p.vector) for p in points]
        records.sort(key=lambda r: sort_key(0.0, r.updated_at, r.block_id))
        return records

    async def list_block_ids(self, user_id: str | None = None) -> list[str]:
        await self.connect()

        scroll_filter = None
        if user_id is not None:
            scroll_filter = Filter(
                must=[FieldCondition(key="user_id", match=MatchValue(value=user_id))]
            )

        block_ids: list[str] = []
        offset = None
        while True:
            points, offset = await self.client.scroll(
                collection_name=self.collection_name,
                scroll_filter=scroll_filter,
                limit=256,
                offset=offset,
                with_payload=["block_id"],
                with_vectors=False,
            )
            block_ids.extend(p.payload["block_id"] for p in points)
            if offset is None:
                break
        return block_ids

    async def close(self) -> None:
        """Close the connection to Qdrant."""
        if self.client is not None:
            await self.client.close()
            self.client = None
