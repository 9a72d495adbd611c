"""Pydantic schemas for API responses."""

from statusboard.schemas.activity import ActivityStatsResponse
from statusboard.schemas.balances import BalancesResponse
from statusboard.schemas.bridge import BridgeStatusResponse
from statusboard.schemas.network import NetworkStatusResponse
from statusboard.schemas.sections import SectionStatus
from statusboard.schemas.snapshot import SnapshotResponse
from statusboard.schemas.wallets import WalletBalancesResponse
from statusboard.schemas.withdrawal_request import (
    WithdrawalRequestOut,
    WithdrawalRequestsResponse,
)

__all__ = [
    "ActivityStatsResponse",
    "BalancesResponse",
    "BridgeStatusResponse",
    "NetworkStatusResponse",
    "SectionStatus",
    "SnapshotResponse",
    "WalletBalancesResponse",
    "WithdrawalRequestOut",
    "WithdrawalRequestsResponse",
]
