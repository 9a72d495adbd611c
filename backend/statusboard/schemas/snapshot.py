"""Pydantic schema for the combined dashboard snapshot."""

from datetime import datetime

from pydantic import BaseModel

from statusboard.schemas.activity import ActivityStatsResponse
from statusboard.schemas.balances import BalancesResponse
from statusboard.schemas.bridge import BridgeStatusResponse
from statusboard.schemas.network import NetworkStatusResponse
from statusboard.schemas.wallets import WalletBalancesResponse


class SnapshotResponse(BaseModel):
    timestamp: datetime
    network: NetworkStatusResponse
    bridge: BridgeStatusResponse
    balances: BalancesResponse
    wallets: WalletBalancesResponse
    activity: ActivityStatsResponse
