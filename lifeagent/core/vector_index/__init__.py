"""
Vector index layer.

Backends:
- SQLite (default, in-process cosine scoring)
- Qdrant
"""
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.core.vector_index.qdrant import QdrantVectorIndex
from lifeagent.core.vector_index.sqlite import SQLiteVectorIndex

__all__ = [
    "VectorIndex",
    "QdrantVectorIndex",
    "SQLiteVectorIndex",
]
