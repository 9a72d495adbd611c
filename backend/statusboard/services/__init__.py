"""Services for log indexing, upstream access and status aggregation."""

from statusboard.services.aggregator import StatusAggregator, get_aggregator
from statusboard.services.checkpoints import CheckpointStore, InvariantViolation
from statusboard.services.indexer import WithdrawalIndexer
from statusboard.services.log_source import ChainLogSource

__all__ = [
    "ChainLogSource",
    "CheckpointStore",
    "InvariantViolation",
    "StatusAggregator",
    "WithdrawalIndexer",
    "get_aggregator",
]
