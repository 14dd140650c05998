"""
Vector index models.

A VectorRecord is derived 1:1 from a Block: its embedding and text snapshot
were computed from the block content as of updated_at.
"""

import hashlib
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from lifeagent.models.block import Block, BlockType


class VectorRecord(BaseModel):
    """Embedding plus text/metadata snapshot for one block."""

    block_id: str
    user_id: str
    embedding: list[float]
    text_snapshot: str = ""
    metadata_snapshot: dict[str, Any] = Field(default_factory=dict)
    content_hash: str = ""
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def block_type(self) -> str | None:
        return self.metadata_snapshot.get("type")

    @property
    def category(self) -> str | None:
        return self.metadata_snapshot.get("category")


class VectorFilters(BaseModel):
    """Filters applied to every index query. user_id is always required."""

    user_id: str
    type: BlockType | None = None
    category: str | None = None

    def matches(self, block: Block) -> bool:
        """Check a live block against the filters."""
        if block.user_id != self.user_id:
            return False
        if self.type is not None and block.type != self.type:
            return False
        if self.category is not None and block.metadata.category != self.category:
            return False
        return True


class ScoredRecord(BaseModel):
    """Vector index query hit."""

    record: VectorRecord
    score: float

    @property
    def block_id(self) -> str:
        return self.record.block_id


class ScoredBlock(BaseModel):
    """Materialized search hit with its score breakdown."""

    block: Block
    score: float
    vector_score: float = 0.0
    keyword_score: float = 0.0


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of a text snapshot.

    Args:
        content: Text content to hash

    Returns:
        Hash string in format "sha256:hexdigest"
    """
    normalized = content.strip()
    hash_bytes = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"


def sort_key(score: float, updated_at: datetime, block_id: str) -> tuple:
    """Ranking key: score desc, most recent updated_at first, then block id."""
    return (-score, -updated_at.timestamp(), block_id)
