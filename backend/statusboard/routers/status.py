"""API routes for the aggregated network, bridge, balance and activity views."""

from typing import Annotated

from fastapi import APIRouter, Depends

from statusboard.schemas import (
    ActivityStatsResponse,
    BalancesResponse,
    BridgeStatusResponse,
    NetworkStatusResponse,
    SnapshotResponse,
    WalletBalancesResponse,
)
from statusboard.services.aggregator import StatusAggregator, get_aggregator

router = APIRouter(tags=["status"])

Aggregator = Annotated[StatusAggregator, Depends(get_aggregator)]


@router.get("/network_status", response_model=NetworkStatusResponse)
async def network_status(aggregator: Aggregator) -> NetworkStatusResponse:
    """Sequencer, RPC endpoint and bundler liveness ("active", "down" or "unknown")."""
    return await aggregator.network_status()


@router.get("/bridge_status", response_model=BridgeStatusResponse)
async def bridge_status(aggregator: Aggregator) -> BridgeStatusResponse:
    """
    Bridge operators, deposits, withdrawals and reimbursements.

    Upstream failures are reported in `status`/`error`, never as an HTTP error.
    """
    return await aggregator.bridge_status()


@router.get("/balances", response_model=BalancesResponse)
async def balances(aggregator: Aggregator) -> BalancesResponse:
    """Faucet and bridge operator wallet balances in sats."""
    return await aggregator.balances()


@router.get("/wallet_balances", response_model=WalletBalancesResponse)
async def wallet_balances(aggregator: Aggregator) -> WalletBalancesResponse:
    """Paymaster deposit and validating wallet balances (wei, as decimal strings)."""
    return await aggregator.wallet_balances()


@router.get("/activity_stats", response_model=ActivityStatsResponse)
async def activity_stats(aggregator: Aggregator) -> ActivityStatsResponse:
    """User operation, gas and active account counts per time window, from the last refresh."""
    return aggregator.activity_stats()


@router.get("/snapshot", response_model=SnapshotResponse)
async def snapshot(aggregator: Aggregator) -> SnapshotResponse:
    """All dashboard views in one response."""
    return await aggregator.snapshot()
