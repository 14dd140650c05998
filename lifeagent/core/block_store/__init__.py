"""
Block storage.

- SQLiteBlockRepository: block rows
- SQLiteTemplateRepository: template rows
- BlockStore: CRUD facade that keeps the vector index in sync
"""
from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.block_store.repository import SQLiteBlockRepository
from lifeagent.core.block_store.template_repository import SQLiteTemplateRepository

__all__ = [
    "BlockStore",
    "SQLiteBlockRepository",
    "SQLiteTemplateRepository",
]
