"""Withdrawal request indexer: scans rollup event logs into the local ledger."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from statusboard.config import get_settings
from statusboard.models import WITHDRAWAL_REQUESTS_TASK, WithdrawalRequest
from statusboard.services.checkpoints import CheckpointStore
from statusboard.services.log_source import (
    ChainLogSource,
    DecodedWithdrawal,
    decode_withdrawal_log,
    event_topic,
)

logger = logging.getLogger(__name__)
settings = get_settings()


class IndexerPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    APPLYING = "applying"


@dataclass
class TickSummary:
    """Outcome of one indexer tick over [from_block, to_block]."""

    task_id: str
    from_block: int
    to_block: int
    logs_seen: int
    inserted: int
    duplicates: int


class WithdrawalIndexer:
    """
    Incrementally indexes withdrawal intent events.

    Each tick scans the next block range after the checkpoint, inserts the
    decoded withdrawals (a duplicate (txid, destination) is a no-op) and
    only then advances the checkpoint. A crash between the two steps means
    the range is scanned again, which the unique constraint makes harmless.
    """

    task_id = WITHDRAWAL_REQUESTS_TASK

    def __init__(
        self,
        db: AsyncSession,
        log_source: ChainLogSource | None = None,
        checkpoints: CheckpointStore | None = None,
        batch_size: int = settings.eth_logs_batch_size,
        contract_address: str = settings.bridgeout_address,
        event_signature: str = settings.withdrawal_event_signature,
        timeout: float = settings.upstream_timeout_seconds,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.db = db
        self.log_source = log_source or ChainLogSource(settings.rpc_url)
        self.checkpoints = checkpoints or CheckpointStore(db)
        self.batch_size = batch_size
        self.contract_address = contract_address
        self.topic = event_topic(event_signature)
        self.timeout = timeout
        self.phase = IndexerPhase.IDLE

    def next_range(self, checkpoint: int, head: int) -> tuple[int, int] | None:
        """Block range to scan after `checkpoint`, capped at the chain head."""
        if head <= checkpoint:
            return None
        return checkpoint + 1, min(checkpoint + self.batch_size, head)

    async def tick(self) -> TickSummary | None:
        """
        Scan one batch of blocks.

        Returns None when there are no new blocks. Any upstream or decoding
        error propagates with the checkpoint left untouched.
        """
        self.phase = IndexerPhase.FETCHING
        try:
            checkpoint = await self.checkpoints.get_checkpoint(self.task_id)
            head = await self.log_source.fetch(self.timeout)

            block_range = self.next_range(checkpoint, head)
            if block_range is None:
                logger.info(f"No new blocks for {self.task_id} (checkpoint={checkpoint}, head={head})")
                return None

            from_block, to_block = block_range
            logs = await self.log_source.get_logs(
                from_block, to_block, self.contract_address, self.topic, self.timeout
            )

            # Decode everything before writing anything
            withdrawals = []
            for entry in logs:
                decoded = decode_withdrawal_log(entry, self.topic)
                if decoded is not None:
                    withdrawals.append(decoded)

            self.phase = IndexerPhase.APPLYING
            inserted = await self.apply(withdrawals)
            await self.checkpoints.advance_checkpoint(self.task_id, to_block)

            summary = TickSummary(
                task_id=self.task_id,
                from_block=from_block,
                to_block=to_block,
                logs_seen=len(logs),
                inserted=inserted,
                duplicates=len(withdrawals) - inserted,
            )
            logger.info(
                f"Indexed {self.task_id} blocks {from_block}-{to_block}: "
                f"{summary.inserted} inserted, {summary.duplicates} duplicates ignored"
            )
            return summary
        finally:
            self.phase = IndexerPhase.IDLE

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        return sqlite.insert if dialect == "sqlite" else postgresql.insert

    async def apply(self, withdrawals: list[DecodedWithdrawal]) -> int:
        """
        Insert withdrawals in one transaction, ignoring already-known ones.

        Returns:
            Number of rows actually inserted
        """
        if not withdrawals:
            return 0

        insert = self._insert()
        now = datetime.now(UTC)
        inserted = 0

        try:
            for withdrawal in withdrawals:
                stmt = (
                    insert(WithdrawalRequest)
                    .values(
                        txid=withdrawal.txid,
                        amount=withdrawal.amount,
                        destination=withdrawal.destination,
                        block_number=withdrawal.block_number,
                        timestamp=now,
                    )
                    .on_conflict_do_nothing(index_elements=["txid", "destination"])
                )
                result = await self.db.execute(stmt)
                if result.rowcount > 0:
                    inserted += 1
                else:
                    logger.debug(f"Withdrawal {withdrawal.txid} already indexed")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return inserted
