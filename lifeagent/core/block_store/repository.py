"""
SQLite persistence for blocks.

Rows hold content and metadata as JSON columns; category and schedule
filters use json_extract.
"""

import json
from datetime import datetime
from pathlib import Path

import aiosqlite

from lifeagent.models.block import Block, BlockStats, BlockType
from lifeagent.utils.exceptions import BlockStoreError, ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = "id, type, content, metadata, parent_id, template_id, user_id, created_at, updated_at"
_DATE_FIELDS = ("scheduled_at", "due_date")


class SQLiteBlockRepository:
    """
    Row-level block storage.

    Features:
    - Fast local storage
    - JSON columns for content and metadata
    - Parent/child lookups for pages
    """

    def __init__(self, db_path: str = "data/lifeagent.db"):
        """
        Initialize SQLite block repository.

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
            await self.connection.execute("PRAGMA foreign_keys = ON")
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS blocks (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                content TEXT NOT NULL,
                metadata TEXT DEFAULT '{}',
                parent_id TEXT,
                template_id TEXT,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """
        )

        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_blocks_user ON blocks(user_id, updated_at)"
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_blocks_user_type ON blocks(user_id, type)"
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_blocks_parent ON blocks(parent_id)"
        )

        await self.connection.commit()

    async def save(self, block: Block) -> None:
        """Insert or replace a block row."""
        await self.connect()

        try:
            await self.connection.execute(
                f"INSERT OR REPLACE INTO blocks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    block.id,
                    block.type.value,
                    block.content.model_dump_json(),
                    block.metadata.model_dump_json(),
                    block.parent_id,
                    block.template_id,
                    block.user_id,
                    block.created_at.isoformat(),
                    block.updated_at.isoformat(),
                ),
            )
            await self.connection.commit()
        except Exception as e:
            logger.error(
                f"Failed to save block {block.id}: {e}",
                extra={"block_id": block.id, "error": str(e)},
            )
            raise BlockStoreError(f"Failed to save block: {e}") from e

    async def get(self, block_id: str) -> Block | None:
        """Retrieve a block by ID."""
        await self.connect()

        cursor = await self.connection.execute(
            f"SELECT {_COLUMNS} FROM blocks WHERE id = ?", (block_id,)
        )
        row = await cursor.fetchone()

        return self._row_to_block(row) if row else None

    async def get_many(self, block_ids: list[str]) -> dict[str, Block]:
        """Retrieve several blocks; missing ids are absent from the result."""
        if not block_ids:
            return {}

        await self.connect()

        placeholders = ", ".join("?" for _ in block_ids)
        cursor = await self.connection.execute(
            f"SELECT {_COLUMNS} FROM blocks WHERE id IN ({placeholders})", list(block_ids)
        )
        rows = await cursor.fetchall()

        blocks = (self._row_to_block(row) for row in rows)
        return {block.id: block for block in blocks}

    async def delete(self, block_id: str) -> None:
        """Delete a block row."""
        await self.connect()

        try:
            await self.connection.execute("DELETE FROM blocks WHERE id = ?", (block_id,))
            await self.connection.commit()
        except Exception as e:
            logger.error(
                f"Failed to delete block {block_id}: {e}",
                extra={"block_id": block_id, "error": str(e)},
            )
            raise BlockStoreError(f"Failed to delete block: {e}") from e

    async def list_by_user(
        self,
        user_id: str,
        block_type: BlockType | None = None,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Block]:
        """List a user's blocks, most recently updated first."""
        await self.connect()

        query = f"SELECT {_COLUMNS} FROM blocks WHERE user_id = ?"
        params: list = [user_id]

        if block_type is not None:
            query += " AND type = ?"
            params.append(block_type.value)

        if category is not None:
            query += " AND json_extract(metadata, '$.category') = ?"
            params.append(category)

        query += " ORDER BY updated_at DESC, id ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await self.connection.execute(query, params)
        rows = await cursor.fetchall()

        return [self._row_to_block(row) for row in rows]

    async def list_children(self, parent_id: str) -> list[Block]:
        """Blocks whose parent_id is the given page."""
        await self.connect()

        cursor = await self.connection.execute(
            f"SELECT {_COLUMNS} FROM blocks WHERE parent_id = ? ORDER BY created_at ASC",
            (parent_id,),
        )
        rows = await cursor.fetchall()

        return [self._row_to_block(row) for row in rows]

    async def list_scheduled(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        include_completed: bool = True,
        field: str = "scheduled_at",
    ) -> list[Block]:
        """Todos whose scheduled_at (or due_date) falls in [start, end), earliest first."""
        if field not in _DATE_FIELDS:
            raise ValidationError(f"Unsupported date field: {field}")

        await self.connect()

        path = f"'$.{field}'"
        query = (
            f"SELECT {_COLUMNS} FROM blocks WHERE user_id = ? AND type = ? "
            f"AND json_extract(metadata, {path}) >= ? "
            f"AND json_extract(metadata, {path}) < ?"
        )
        params: list = [user_id, BlockType.TODO.value, start.isoformat(), end.isoformat()]

        if not include_completed:
            query += " AND json_extract(content, '$.checked') = 0"

        query += f" ORDER BY json_extract(metadata, {path}) ASC"

        cursor = await self.connection.execute(query, params)
        rows = await cursor.fetchall()

        return [self._row_to_block(row) for row in rows]

    async def list_ids(self, user_id: str | None = None) -> list[str]:
        """
        INTERNAL: ids of all blocks, optionally for one user.

        Used by index reconciliation.
        """
        await self.connect()

        if user_id is None:
            cursor = await self.connection.execute("SELECT id FROM blocks ORDER BY id")
        else:
            cursor = await self.connection.execute(
                "SELECT id FROM blocks WHERE user_id = ? ORDER BY id", (user_id,)
            )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def stats(self, user_id: str, since: datetime) -> BlockStats:
        """Aggregate counts for a user's blocks."""
        await self.connect()

        cursor = await self.connection.execute(
            "SELECT type, COUNT(*) FROM blocks WHERE user_id = ? GROUP BY type", (user_id,)
        )
        by_type = {row[0]: row[1] for row in await cursor.fetchall()}

        cursor = await self.connection.execute(
            "SELECT COUNT(*) FROM blocks WHERE user_id = ? AND type = ? "
            "AND json_extract(content, '$.checked') = 1",
            (user_id, BlockType.TODO.value),
        )
        completed = (await cursor.fetchone())[0]

        cursor = await self.connection.execute(
            "SELECT COUNT(*) FROM blocks WHERE user_id = ? AND updated_at >= ?",
            (user_id, since.isoformat()),
        )
        recent = (await cursor.fetchone())[0]

        total_todos = by_type.get(BlockType.TODO.value, 0)

        return BlockStats(
            total_blocks=sum(by_type.values()),
            by_type=by_type,
            total_todos=total_todos,
            completed_todos=completed,
            pending_todos=total_todos - completed,
            pages=by_type.get(BlockType.PAGE.value, 0),
            recent_activity=recent,
        )

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    def _row_to_block(self, row: tuple) -> Block:
        """Convert database row to Block object."""
        return Block(
            id=row[0],
            type=row[1],
            content=json.loads(row[2]),
            metadata=json.loads(row[3]) if row[3] else {},
            parent_id=row[4],
            template_id=row[5],
            user_id=row[6],
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]),
        )
