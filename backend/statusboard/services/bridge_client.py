"""Bridge status client: operators, deposits, withdrawals and reimbursements."""

import logging
from typing import Any

import httpx

from statusboard.schemas.bridge import (
    BridgeStatusData,
    DepositInfoOut,
    DepositStatus,
    OperatorStatusOut,
    ReimbursementInfoOut,
    ReimbursementStatus,
    WithdrawalInfoOut,
    WithdrawalStatus,
)
from statusboard.services.upstream import (
    JsonRpcMixin,
    MalformedResponse,
    UpstreamClient,
    gather_all,
)

logger = logging.getLogger(__name__)

_DEPOSIT_STATUSES = {
    "inprogress": DepositStatus.IN_PROGRESS,
    "failed": DepositStatus.FAILED,
    "complete": DepositStatus.COMPLETE,
}
_WITHDRAWAL_STATUSES = {
    "inprogress": WithdrawalStatus.IN_PROGRESS,
    "complete": WithdrawalStatus.COMPLETE,
}
_REIMBURSEMENT_STATUSES = {
    "inprogress": ReimbursementStatus.IN_PROGRESS,
    "challenged": ReimbursementStatus.CHALLENGED,
    "cancelled": ReimbursementStatus.CANCELLED,
    "complete": ReimbursementStatus.COMPLETE,
}


def _variant(value: Any) -> tuple[str, dict[str, Any]]:
    """
    Split a serialized enum into (tag, fields).

    Accepts a bare string ("Cancelled"), an internally tagged object
    ({"status": "in_progress", ...}) or an externally tagged one
    ({"InProgress": {...}}).
    """
    if isinstance(value, str):
        return value, {}
    if isinstance(value, dict):
        if isinstance(value.get("status"), str):
            return value["status"], value
        if len(value) == 1:
            tag, fields = next(iter(value.items()))
            return tag, fields if isinstance(fields, dict) else {}
    raise MalformedResponse(f"unrecognized status value: {value!r}")


def _normalize(tag: str) -> str:
    return tag.replace("_", "").replace(" ", "").lower()


def _lookup(table: dict, value: Any):
    tag, fields = _variant(value)
    try:
        return table[_normalize(tag)], fields
    except KeyError as e:
        raise MalformedResponse(f"unknown status {tag!r}") from e


def parse_operator_table(result: Any) -> list[tuple[int, str]]:
    """Decode `stratabridge_bridgeOperators` into (index, public key) pairs."""
    if isinstance(result, dict):
        pairs = [(int(idx), str(pk)) for idx, pk in result.items()]
    elif isinstance(result, list):
        pairs = []
        for position, entry in enumerate(result):
            if isinstance(entry, (list, tuple)) and len(entry) == 2:
                pairs.append((int(entry[0]), str(entry[1])))
            else:
                pairs.append((position, str(entry)))
    else:
        raise MalformedResponse(f"unexpected operator table: {result!r}")
    return sorted(pairs)


def parse_deposit_info(result: dict[str, Any]) -> DepositInfoOut:
    status, fields = _lookup(_DEPOSIT_STATUSES, result["status"])
    return DepositInfoOut(
        deposit_request_txid=fields["deposit_request_txid"],
        deposit_txid=fields.get("deposit_txid") if status is DepositStatus.COMPLETE else None,
        status=status,
    )


def parse_withdrawal_info(result: dict[str, Any], withdrawal_request_txid: str) -> WithdrawalInfoOut:
    status, fields = _lookup(_WITHDRAWAL_STATUSES, result["status"])
    return WithdrawalInfoOut(
        withdrawal_request_txid=withdrawal_request_txid,
        fulfillment_txid=(
            fields.get("fulfillment_txid") if status is WithdrawalStatus.COMPLETE else None
        ),
        status=status,
    )


def parse_claim_info(result: dict[str, Any]) -> ReimbursementInfoOut:
    status, fields = _lookup(_REIMBURSEMENT_STATUSES, result["status"])

    challenge_step = "N/A"
    if status in (ReimbursementStatus.IN_PROGRESS, ReimbursementStatus.CHALLENGED):
        step = fields.get("challenge_step")
        if step is not None:
            challenge_step = _variant(step)[0]

    return ReimbursementInfoOut(
        claim_txid=result["claim_txid"],
        challenge_step=challenge_step,
        payout_txid=fields.get("payout_txid") if status is ReimbursementStatus.COMPLETE else None,
        status=status,
    )


class BridgeStatusClient(JsonRpcMixin, UpstreamClient[BridgeStatusData]):
    """
    Collects the bridge status from the rollup RPC and the bridge RPC.

    The rollup RPC knows which deposits are current (and whether a withdrawal
    was requested against them); the bridge RPC reports operator liveness and
    the progress of deposits, withdrawals and reimbursement claims. Any
    failure fails the whole fetch and cancels the calls still in flight: the
    lists are only meaningful together.
    """

    name = "bridge"

    def __init__(self, rollup_rpc_url: str, bridge_rpc_url: str, **kwargs):
        super().__init__(**kwargs)
        self.rollup_rpc_url = rollup_rpc_url
        self.bridge_rpc_url = bridge_rpc_url

    async def _bridge(self, client: httpx.AsyncClient, method: str, *params: Any) -> Any:
        return await self.rpc_call(client, self.bridge_rpc_url, method, list(params))

    async def _rollup(self, client: httpx.AsyncClient, method: str, *params: Any) -> Any:
        return await self.rpc_call(client, self.rollup_rpc_url, method, list(params))

    async def get_operators(self, client: httpx.AsyncClient) -> list[OperatorStatusOut]:
        table = parse_operator_table(await self._bridge(client, "stratabridge_bridgeOperators"))
        statuses = await gather_all(
            *(self._bridge(client, "stratabridge_operatorStatus", idx) for idx, _ in table)
        )
        return [
            OperatorStatusOut(
                operator_id=f"Alpen Labs #{idx}",
                operator_address=public_key,
                status=_variant(status)[0],
            )
            for (idx, public_key), status in zip(table, statuses)
        ]

    async def _get_deposit_entry(
        self, client: httpx.AsyncClient, deposit_id: int
    ) -> tuple[str, str | None] | None:
        """Return (deposit outpoint, withdrawal request txid) for a current deposit."""
        entry = await self._rollup(client, "strata_getCurrentDepositById", deposit_id)
        outpoint = entry.get("output") if isinstance(entry, dict) else None
        if not outpoint:
            logger.warning(f"Missing deposit outpoint for deposit id {deposit_id}")
            return None
        return outpoint, entry.get("withdrawal_request_txid")

    async def get_deposits_and_withdrawals(
        self, client: httpx.AsyncClient
    ) -> tuple[list[DepositInfoOut], list[WithdrawalInfoOut]]:
        deposit_ids = await self._rollup(client, "strata_getCurrentDeposits")
        entries = await gather_all(
            *(self._get_deposit_entry(client, int(deposit_id)) for deposit_id in deposit_ids)
        )
        entries = [entry for entry in entries if entry is not None]

        deposit_results = await gather_all(
            *(self._bridge(client, "stratabridge_depositInfo", outpoint) for outpoint, _ in entries)
        )
        deposits = [parse_deposit_info(result) for result in deposit_results]

        requested = [(outpoint, txid) for outpoint, txid in entries if txid]
        withdrawal_results = await gather_all(
            *(self._bridge(client, "stratabridge_withdrawalInfo", outpoint) for outpoint, _ in requested)
        )
        withdrawals = [
            parse_withdrawal_info(result, txid)
            for (_, txid), result in zip(requested, withdrawal_results)
        ]
        return deposits, withdrawals

    async def get_reimbursements(self, client: httpx.AsyncClient) -> list[ReimbursementInfoOut]:
        claim_txids = await self._bridge(client, "stratabridge_claims")
        results = await gather_all(
            *(self._bridge(client, "stratabridge_claimInfo", txid) for txid in claim_txids)
        )
        return [parse_claim_info(result) for result in results]

    async def _fetch(self, client: httpx.AsyncClient) -> BridgeStatusData:
        operators, (deposits, withdrawals), reimbursements = await gather_all(
            self.get_operators(client),
            self.get_deposits_and_withdrawals(client),
            self.get_reimbursements(client),
        )
        return BridgeStatusData(
            operators=operators,
            deposits=deposits,
            withdrawals=withdrawals,
            reimbursements=reimbursements,
        )
