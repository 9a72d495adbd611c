"""Status aggregation across the upstream services, tolerant to partial failure."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Generic, Literal, TypeVar

import httpx

from statusboard.config import Settings, get_settings
from statusboard.schemas.activity import ActivityStatsData, ActivityStatsResponse
from statusboard.schemas.balances import (
    BalanceHealth,
    BalancesResponse,
    BridgeOperatorBalancesOut,
    FaucetBalancesOut,
    OperatorBalanceRow,
    OperatorWalletBalanceOut,
)
from statusboard.schemas.bridge import BridgeStatusData, BridgeStatusResponse
from statusboard.schemas.network import NetworkStatusResponse
from statusboard.schemas.sections import SectionStatus
from statusboard.schemas.snapshot import SnapshotResponse
from statusboard.schemas.wallets import (
    PaymasterWalletsOut,
    WalletBalanceOut,
    WalletBalancesResponse,
)
from statusboard.services.activity import ActivityStatsClient
from statusboard.services.balance_sources import (
    EsploraBalanceSource,
    FaucetL1BalanceSource,
    FaucetL2BalanceSource,
    RollupBalanceSource,
)
from statusboard.services.bridge_client import BridgeStatusClient
from statusboard.services.health_probes import UNKNOWN, BundlerHealthProbe, SyncStatusProbe
from statusboard.services.upstream import UpstreamClient, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_OPERATOR = "Unknown"


@dataclass
class SectionResult(Generic[T]):
    """Outcome of one upstream call: a value, or the error that replaced it."""

    status: SectionStatus
    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is SectionStatus.OK


@dataclass
class OperatorWallet:
    """A watched bridge operator wallet and the source of its balance."""

    wallet_type: Literal["General", "StakeChain"]
    operator_pk: str
    operator_id: str | None
    source: UpstreamClient[int]


async def settle(clients: Sequence[UpstreamClient[Any]], timeout: float) -> list[SectionResult]:
    """
    Fetch from every client concurrently and wait for all of them.

    Upstream errors become failed results; anything else is a bug and
    propagates.
    """
    outcomes = await asyncio.gather(
        *(client.fetch(timeout) for client in clients),
        return_exceptions=True,
    )

    results: list[SectionResult] = []
    for client, outcome in zip(clients, outcomes):
        if isinstance(outcome, UpstreamError):
            logger.warning(f"Upstream {client.name} failed: {outcome}")
            results.append(SectionResult(SectionStatus.FAILED, error=str(outcome)))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append(SectionResult(SectionStatus.OK, data=outcome))
    return results


def merge_operator_wallets(
    general_wallets: Sequence[OperatorWalletBalanceOut],
    stake_chain_wallets: Sequence[OperatorWalletBalanceOut],
) -> list[OperatorBalanceRow]:
    """
    Merge general and stake-chain wallet balances into one row per operator key.

    Rows keep first-seen order, general wallets first. A side with no wallet
    stays None; wallets without a public key are skipped. The operator id
    comes from whichever wallet of the pair carries one.
    """
    rows: dict[str, OperatorBalanceRow] = {}

    for wallet in general_wallets:
        if not wallet.operator_pk:
            continue
        rows[wallet.operator_pk] = OperatorBalanceRow(
            operator_id=wallet.operator_id or UNKNOWN_OPERATOR,
            operator_pk=wallet.operator_pk,
            general_balance_sats=wallet.balance_sats,
        )

    for wallet in stake_chain_wallets:
        if not wallet.operator_pk:
            continue
        row = rows.get(wallet.operator_pk)
        if row is not None:
            row.stake_chain_balance_sats = wallet.balance_sats
            if row.operator_id == UNKNOWN_OPERATOR and wallet.operator_id:
                row.operator_id = wallet.operator_id
        else:
            rows[wallet.operator_pk] = OperatorBalanceRow(
                operator_id=wallet.operator_id or UNKNOWN_OPERATOR,
                operator_pk=wallet.operator_pk,
                stake_chain_balance_sats=wallet.balance_sats,
            )

    return list(rows.values())


def balance_health(balance_sats: int | None, threshold_sats: int) -> BalanceHealth:
    """Classify a balance against a threshold expressed in the same unit."""
    if balance_sats is None:
        return "Unknown"
    return "Healthy" if balance_sats >= threshold_sats else "Low"


def section_status(results: Sequence[SectionResult]) -> SectionStatus:
    """OK when every result is ok, FAILED when none is, DEGRADED otherwise."""
    failed = sum(1 for result in results if not result.ok)
    if failed == 0:
        return SectionStatus.OK
    if failed == len(results):
        return SectionStatus.FAILED
    return SectionStatus.DEGRADED


@dataclass
class PaymasterWallet:
    """A paymaster wallet on the rollup and the source of its balance."""

    address: str
    source: UpstreamClient[int]


class StatusAggregator:
    """
    Builds the dashboard views from the upstream clients.

    Every live view fans out concurrently and waits for all calls to settle,
    so its latency is bounded by the slowest client's timeout. A failed call
    only affects its own section. Activity stats page through a whole
    indexer listing, so they are fetched by `refresh_activity` on their own
    timer and `activity_stats` serves the last result.
    """

    def __init__(
        self,
        sequencer: UpstreamClient[str],
        rpc_endpoint: UpstreamClient[str],
        bundler: UpstreamClient[str],
        bridge: UpstreamClient[BridgeStatusData],
        faucet_l1: UpstreamClient[int],
        faucet_l2: UpstreamClient[int],
        paymaster_deposit: PaymasterWallet,
        paymaster_validating: PaymasterWallet,
        activity: UpstreamClient[ActivityStatsData],
        operator_wallets: Sequence[OperatorWallet] = (),
        timeout: float = 5.0,
        activity_timeout: float = 30.0,
        faucet_l1_threshold_sats: int = 0,
        faucet_l2_threshold_sats: int = 0,
    ):
        self.sequencer = sequencer
        self.rpc_endpoint = rpc_endpoint
        self.bundler = bundler
        self.bridge = bridge
        self.faucet_l1 = faucet_l1
        self.faucet_l2 = faucet_l2
        self.paymaster_deposit = paymaster_deposit
        self.paymaster_validating = paymaster_validating
        self.activity = activity
        self.operator_wallets = list(operator_wallets)
        self.timeout = timeout
        self.activity_timeout = activity_timeout
        self.faucet_l1_threshold_sats = faucet_l1_threshold_sats
        self.faucet_l2_threshold_sats = faucet_l2_threshold_sats

        self._last_bridge: BridgeStatusData | None = None
        self._last_activity: ActivityStatsData | None = None
        self._activity_error: str | None = "Activity stats have not been fetched yet"

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "StatusAggregator":
        wallets = [
            OperatorWallet(
                wallet_type=wallet_type,
                operator_pk=wallet.operator_pk,
                operator_id=wallet.operator_id,
                source=EsploraBalanceSource(
                    settings.esplora_url, wallet.address, transport=transport
                ),
            )
            for wallet_type, configured in (
                ("General", settings.bridge_general_wallets),
                ("StakeChain", settings.bridge_stake_chain_wallets),
            )
            for wallet in configured
        ]

        paymaster = {
            name: PaymasterWallet(
                address=address,
                source=RollupBalanceSource(
                    settings.rpc_url, address, name=f"paymaster_{name}", transport=transport
                ),
            )
            for name, address in (
                ("deposit", settings.paymaster_deposit_wallet),
                ("validating", settings.paymaster_validating_wallet),
            )
        }

        return cls(
            sequencer=SyncStatusProbe(settings.sequencer_url, name="sequencer", transport=transport),
            rpc_endpoint=SyncStatusProbe(settings.rpc_url, name="rpc_endpoint", transport=transport),
            bundler=BundlerHealthProbe(settings.bundler_url, transport=transport),
            bridge=BridgeStatusClient(settings.rpc_url, settings.bridge_rpc_url, transport=transport),
            faucet_l1=FaucetL1BalanceSource(settings.faucet_l1_balance_url, transport=transport),
            faucet_l2=FaucetL2BalanceSource(settings.faucet_l2_balance_url, transport=transport),
            paymaster_deposit=paymaster["deposit"],
            paymaster_validating=paymaster["validating"],
            activity=ActivityStatsClient(
                settings.activity_user_ops_url,
                settings.activity_accounts_url,
                page_size=settings.activity_page_size,
                max_pages=settings.activity_max_pages,
                transport=transport,
            ),
            operator_wallets=wallets,
            timeout=settings.upstream_timeout_seconds,
            activity_timeout=settings.activity_timeout_seconds,
            faucet_l1_threshold_sats=settings.faucet_l1_threshold_sats,
            faucet_l2_threshold_sats=settings.faucet_l2_threshold_sats,
        )

    async def network_status(self) -> NetworkStatusResponse:
        sequencer, rpc_endpoint, bundler = await settle(
            [self.sequencer, self.rpc_endpoint, self.bundler], self.timeout
        )
        return NetworkStatusResponse(
            sequencer=sequencer.data if sequencer.ok else UNKNOWN,
            rpc_endpoint=rpc_endpoint.data if rpc_endpoint.ok else UNKNOWN,
            bundler_endpoint=bundler.data if bundler.ok else UNKNOWN,
        )

    async def bridge_status(self) -> BridgeStatusResponse:
        (result,) = await settle([self.bridge], self.timeout)

        if result.ok:
            self._last_bridge = result.data
            return BridgeStatusResponse(status=SectionStatus.OK, **result.data.model_dump())

        if self._last_bridge is not None:
            return BridgeStatusResponse(
                status=SectionStatus.DEGRADED,
                error=result.error,
                **self._last_bridge.model_dump(),
            )
        return BridgeStatusResponse(status=SectionStatus.FAILED, error=result.error)

    async def balances(self) -> BalancesResponse:
        clients: list[UpstreamClient[Any]] = [self.faucet_l1, self.faucet_l2]
        clients.extend(wallet.source for wallet in self.operator_wallets)
        l1, l2, *wallet_results = await settle(clients, self.timeout)

        faucet = FaucetBalancesOut(
            l1_balance_sats=l1.data,
            l2_balance_sats=l2.data,
            l1_health=balance_health(l1.data, self.faucet_l1_threshold_sats),
            l2_health=balance_health(l2.data, self.faucet_l2_threshold_sats),
        )

        general_wallets: list[OperatorWalletBalanceOut] = []
        stake_chain_wallets: list[OperatorWalletBalanceOut] = []
        for wallet, result in zip(self.operator_wallets, wallet_results):
            balance = OperatorWalletBalanceOut(
                wallet_type=wallet.wallet_type,
                operator_id=wallet.operator_id,
                operator_pk=wallet.operator_pk,
                balance_sats=result.data,
            )
            if wallet.wallet_type == "General":
                general_wallets.append(balance)
            else:
                stake_chain_wallets.append(balance)

        return BalancesResponse(
            status=section_status([l1, l2, *wallet_results]),
            faucet=faucet,
            bridge_operators=BridgeOperatorBalancesOut(
                general_wallets=general_wallets,
                stake_chain_wallets=stake_chain_wallets,
                operators=merge_operator_wallets(general_wallets, stake_chain_wallets),
            ),
        )

    async def wallet_balances(self) -> WalletBalancesResponse:
        """Paymaster deposit and validating wallet balances in wei."""
        deposit, validating = await settle(
            [self.paymaster_deposit.source, self.paymaster_validating.source], self.timeout
        )

        def balance_out(wallet: PaymasterWallet, result: SectionResult) -> WalletBalanceOut:
            balance = str(result.data) if result.ok else None
            return WalletBalanceOut(address=wallet.address, balance=balance)

        return WalletBalancesResponse(
            status=section_status([deposit, validating]),
            wallets=PaymasterWalletsOut(
                deposit=balance_out(self.paymaster_deposit, deposit),
                validating=balance_out(self.paymaster_validating, validating),
            ),
        )

    async def refresh_activity(self) -> ActivityStatsResponse:
        """Fetch fresh activity stats; on failure the previous stats are kept."""
        (result,) = await settle([self.activity], self.activity_timeout)
        if result.ok:
            self._last_activity = result.data
            self._activity_error = None
        else:
            self._activity_error = result.error
        return self.activity_stats()

    def activity_stats(self) -> ActivityStatsResponse:
        """The activity view from the last refresh, without calling upstream."""
        if self._last_activity is None:
            empty = ActivityStatsData.empty()
            return ActivityStatsResponse(
                status=SectionStatus.FAILED,
                error=self._activity_error,
                stats=empty.stats,
                selected_accounts=empty.selected_accounts,
            )

        return ActivityStatsResponse(
            status=SectionStatus.OK if self._activity_error is None else SectionStatus.DEGRADED,
            error=self._activity_error,
            stats=self._last_activity.stats,
            selected_accounts=self._last_activity.selected_accounts,
        )

    async def snapshot(self) -> SnapshotResponse:
        """All views at once; used by the refresh timer and the snapshot endpoint."""
        network, bridge, balances, wallets = await asyncio.gather(
            self.network_status(),
            self.bridge_status(),
            self.balances(),
            self.wallet_balances(),
        )
        return SnapshotResponse(
            timestamp=datetime.now(UTC),
            network=network,
            bridge=bridge,
            balances=balances,
            wallets=wallets,
            activity=self.activity_stats(),
        )


@lru_cache
def get_aggregator() -> StatusAggregator:
    """Get the process-wide aggregator (keeps the last known bridge and activity data)."""
    return StatusAggregator.from_settings(get_settings())
