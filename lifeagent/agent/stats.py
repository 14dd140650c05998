"""
Stats sources for the agent's system prompt.
"""

from typing import Protocol

from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.models.agent import SystemStats


class StatsProvider(Protocol):
    """Anything that can summarize a user's workspace."""

    async def get_system_stats(self, user_id: str) -> SystemStats: ...


class BlockStoreStatsProvider:
    """SystemStats from block counts: pages are projects, open todos are pending tasks."""

    def __init__(self, block_store: BlockStore):
        self.block_store = block_store

    async def get_system_stats(self, user_id: str) -> SystemStats:
        stats = await self.block_store.get_block_stats(user_id)
        return SystemStats(
            active_projects=stats.pages,
            pending_tasks=stats.pending_todos,
            total_blocks=stats.total_blocks,
            recent_activity=stats.recent_activity,
        )
