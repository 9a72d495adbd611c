"""Database models."""

from statusboard.models.indexer_state import WITHDRAWAL_REQUESTS_TASK, IndexerState
from statusboard.models.withdrawal_request import WithdrawalRequest

__all__ = [
    "IndexerState",
    "WITHDRAWAL_REQUESTS_TASK",
    "WithdrawalRequest",
]
