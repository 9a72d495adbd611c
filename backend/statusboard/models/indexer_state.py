"""IndexerState model to track block scanning progress per indexer task."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from statusboard.database import Base

WITHDRAWAL_REQUESTS_TASK = "withdrawal_requests"


class IndexerState(Base):
    """
    Checkpoint of an indexer task.

    One row per task, seeded at block 0 by the initial migration.
    `last_scanned_block` only ever moves forward.
    """

    __tablename__ = "indexer_state"

    task_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_scanned_block: Mapped[int] = mapped_column(
        BigInteger, server_default="0", nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<IndexerState {self.task_id}: {self.last_scanned_block}>"
