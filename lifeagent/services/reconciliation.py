"""
Index reconciliation: repairs drift between block rows and vector records.

Drift comes from non-atomic two-phase writes and from embedding failures
that stored zero vectors. Two modes:
1. On demand: reconcile()
2. Proactive (background): periodic worker
"""

import asyncio

from pydantic import BaseModel

from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.block_store.repository import SQLiteBlockRepository
from lifeagent.core.embeddings.provider import is_zero_vector
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.models.block import Block, extract_text
from lifeagent.models.vector import VectorRecord, compute_content_hash
from lifeagent.utils.exceptions import ExternalServiceError, StoreError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class ReconcileReport(BaseModel):
    """Counts from one reconciliation pass."""

    checked: int = 0
    reembedded: int = 0
    refreshed: int = 0
    removed: int = 0
    failed: int = 0


class IndexReconciler:
    """
    Brings the vector index back in line with the block store.

    - Missing record: re-embed
    - Zero-vector record (earlier embedding failure): re-embed
    - Record older than the block with different text: re-embed
    - Stale type/category/tags/priority snapshot: rewrite snapshot, keep embedding
    - Record without a block: delete
    """

    def __init__(
        self,
        block_store: BlockStore,
        repository: SQLiteBlockRepository,
        vector_index: VectorIndex,
        batch_size: int = 100,
    ):
        self.block_store = block_store
        self.repository = repository
        self.vector_index = vector_index
        self.batch_size = batch_size
        self._worker_task: asyncio.Task | None = None

    def needs_reembed(self, block: Block, record: VectorRecord | None) -> bool:
        if record is None or is_zero_vector(record.embedding):
            return True
        if record.updated_at < block.updated_at:
            text = extract_text(block.type, block.content)
            return compute_content_hash(text) != record.content_hash
        return False

    async def reconcile(self, user_id: str | None = None) -> ReconcileReport:
        """
        Run one reconciliation pass.

        Args:
            user_id: Limit the pass to one user's blocks (default: all users)

        Returns:
            ReconcileReport with per-outcome counts
        """
        report = ReconcileReport()

        block_ids = await self.repository.list_ids(user_id)
        known = set(block_ids)

        for i in range(0, len(block_ids), self.batch_size):
            batch = await self.repository.get_many(block_ids[i : i + self.batch_size])
            for block in batch.values():
                report.checked += 1
                try:
                    await self._reconcile_block(block, report)
                except (StoreError, ExternalServiceError) as e:
                    report.failed += 1
                    logger.error(
                        f"Failed to reconcile block {block.id}: {e}",
                        extra={"block_id": block.id, "error": str(e)},
                    )

        for block_id in await self.vector_index.list_block_ids(user_id):
            if block_id in known:
                continue
            # Rows created after list_ids was read are not orphans
            if await self.repository.get(block_id) is not None:
                continue
            await self.vector_index.delete(block_id)
            report.removed += 1

        logger.info(
            f"Reconciled {report.checked} blocks",
            extra={"user_id": user_id, **report.model_dump()},
        )
        return report

    async def _reconcile_block(self, block: Block, report: ReconcileReport) -> None:
        record = await self.vector_index.get(block.id)

        if self.needs_reembed(block, record):
            await self.block_store.sync_vector(block)
            report.reembedded += 1
            return

        snapshot = self.block_store.metadata_snapshot(block)
        if record.metadata_snapshot != snapshot:
            await self.vector_index.upsert(record.model_copy(update={"metadata_snapshot": snapshot}))
            report.refreshed += 1

    def start_background_worker(self, interval_seconds: int = 3600):
        """
        Start background reconciliation worker.

        Args:
            interval_seconds: Seconds between runs
        """
        if self._worker_task is None or self._worker_task.done():
            self._worker_task = asyncio.create_task(self._reconcile_worker(interval_seconds))

    def stop_background_worker(self):
        """Stop background reconciliation worker."""
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()

    async def _reconcile_worker(self, interval_seconds: int):
        while True:
            try:
                logger.info("Starting periodic index reconciliation")
                await self.reconcile()
            except asyncio.CancelledError:
                logger.info("Background reconciliation worker stopped")
                break
            except Exception as e:
                logger.error(f"Error in reconciliation worker: {e}")

            try:
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                logger.info("Background reconciliation worker stopped")
                break
