"""
SQLite persistence for templates.
"""

import json
from datetime import datetime
from pathlib import Path

import aiosqlite

from lifeagent.models.template import Template, TemplateCategory
from lifeagent.utils.exceptions import BlockStoreError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id, name, description, category, blocks, variables, is_public, user_id, "
    "usage_count, last_used, created_at, updated_at"
)


class SQLiteTemplateRepository:
    """Row-level template storage."""

    def __init__(self, db_path: str = "data/lifeagent.db"):
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        if self.connection is None:
            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA journal_mode = WAL")
            await self.connection.commit()

    async def initialize(self) -> None:
        await self.connect()

        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                category TEXT NOT NULL,
                blocks TEXT DEFAULT '[]',
                variables TEXT DEFAULT '[]',
                is_public INTEGER DEFAULT 0,
                user_id TEXT NOT NULL,
                usage_count INTEGER DEFAULT 0,
                last_used TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """
        )
        await self.connection.execute(
            "CREATE INDEX IF NOT EXISTS idx_templates_user ON templates(user_id)"
        )
        await self.connection.commit()

    async def save(self, template: Template) -> None:
        await self.connect()

        try:
            await self.connection.execute(
                f"INSERT OR REPLACE INTO templates ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    template.id,
                    template.name,
                    template.description,
                    template.category.value,
                    json.dumps([b.model_dump(mode="json") for b in template.blocks]),
                    json.dumps([v.model_dump(mode="json") for v in template.variables]),
                    int(template.is_public),
                    template.user_id,
                    template.usage_count,
                    template.last_used.isoformat() if template.last_used else None,
                    template.created_at.isoformat(),
                    template.updated_at.isoformat(),
                ),
            )
            await self.connection.commit()
        except Exception as e:
            logger.error(
                f"Failed to save template {template.id}: {e}",
                extra={"template_id": template.id, "error": str(e)},
            )
            raise BlockStoreError(f"Failed to save template: {e}") from e

    async def get(self, template_id: str) -> Template | None:
        await self.connect()

        cursor = await self.connection.execute(
            f"SELECT {_COLUMNS} FROM templates WHERE id = ?", (template_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_template(row) if row else None

    async def delete(self, template_id: str) -> None:
        await self.connect()
        await self.connection.execute("DELETE FROM templates WHERE id = ?", (template_id,))
        await self.connection.commit()

    async def list_visible(
        self,
        user_id: str,
        category: TemplateCategory | None = None,
        include_public: bool = True,
    ) -> list[Template]:
        """A user's templates plus public ones, most used first."""
        await self.connect()

        if include_public:
            query = f"SELECT {_COLUMNS} FROM templates WHERE (user_id = ? OR is_public = 1)"
        else:
            query = f"SELECT {_COLUMNS} FROM templates WHERE user_id = ?"
        params: list = [user_id]

        if category is not None:
            query += " AND category = ?"
            params.append(category.value)

        query += " ORDER BY usage_count DESC, updated_at DESC"

        cursor = await self.connection.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_template(row) for row in rows]

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    def _row_to_template(self, row: tuple) -> Template:
        return Template(
            id=row[0],
            name=row[1],
            description=row[2],
            category=row[3],
            blocks=json.loads(row[4]) if row[4] else [],
            variables=json.loads(row[5]) if row[5] else [],
            is_public=bool(row[6]),
            user_id=row[7],
            usage_count=row[8],
            last_used=datetime.fromisoformat(row[9]) if row[9] else None,
            created_at=datetime.fromisoformat(row[10]),
            updated_at=datetime.fromisoformat(row[11]),
        )
