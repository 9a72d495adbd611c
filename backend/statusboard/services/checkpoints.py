"""Durable per-task scan progress for the log indexers."""

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from statusboard.models import IndexerState

logger = logging.getLogger(__name__)


class InvariantViolation(Exception):
    """A checkpoint was asked to move backward. Indicates a logic bug."""

    pass


class CheckpointStore:
    """
    Reads and advances indexer checkpoints.

    The advance is a conditional UPDATE, so two writers racing on the same
    task can never move its checkpoint backward.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_state(self, task_id: str) -> IndexerState | None:
        result = await self.db.execute(
            select(IndexerState).where(IndexerState.task_id == task_id)
        )
        return result.scalar_one_or_none()

    async def get_checkpoint(self, task_id: str) -> int:
        """Last fully scanned block for a task, 0 if the task has never run."""
        result = await self.db.execute(
            select(IndexerState.last_scanned_block).where(IndexerState.task_id == task_id)
        )
        value = result.scalar_one_or_none()
        return value if value is not None else 0

    async def advance_checkpoint(self, task_id: str, new_block: int) -> None:
        """
        Persist `new_block` as the task's checkpoint.

        Raises:
            InvariantViolation: if `new_block` is below the stored checkpoint.
        """
        if new_block < 0:
            raise ValueError(f"Block height must be non-negative, got {new_block}")

        now = datetime.now(UTC)
        result = await self.db.execute(
            update(IndexerState)
            .where(
                IndexerState.task_id == task_id,
                IndexerState.last_scanned_block <= new_block,
            )
            .values(last_scanned_block=new_block, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = (
                await self.db.execute(
                    select(IndexerState.last_scanned_block).where(IndexerState.task_id == task_id)
                )
            ).scalar_one_or_none()
            if current is not None:
                await self.db.rollback()
                raise InvariantViolation(
                    f"Checkpoint for {task_id} would move backward: {current} -> {new_block}"
                )
            logger.info(f"Creating checkpoint row for task {task_id}")
            self.db.add(
                IndexerState(task_id=task_id, last_scanned_block=new_block, updated_at=now)
            )

        await self.db.commit()
        logger.debug(f"Checkpoint {task_id} -> {new_block}")
