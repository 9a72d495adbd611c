"""Tests for the upstream probes, balance sources and bridge status client."""

import asyncio
import json

import httpx
import pytest

from statusboard.schemas.bridge import (
    DepositStatus,
    ReimbursementStatus,
    WithdrawalStatus,
)
from statusboard.services.balance_sources import (
    EsploraBalanceSource,
    FaucetL1BalanceSource,
    FaucetL2BalanceSource,
    RollupBalanceSource,
)
from statusboard.services.bridge_client import (
    BridgeStatusClient,
    parse_claim_info,
    parse_deposit_info,
    parse_operator_table,
)
from statusboard.services.health_probes import BundlerHealthProbe, SyncStatusProbe
from statusboard.services.upstream import (
    MalformedResponse,
    UpstreamTimeout,
    UpstreamUnreachable,
    gather_all,
)


def rpc_result(result) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return httpx.MockTransport(handler)


def text_response(text: str, status_code: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status_code, text=text))


class TestSyncStatusProbe:
    """Tests for the sequencer/RPC liveness probe."""

    @pytest.mark.asyncio
    async def test_active_with_tip_height(self):
        probe = SyncStatusProbe(
            "http://rpc.test", transport=rpc_result({"tip_height": 1234, "finalized_block_id": "ab"})
        )

        assert await probe.fetch(timeout=1.0) == "active"

    @pytest.mark.asyncio
    async def test_down_without_tip_height(self):
        probe = SyncStatusProbe("http://rpc.test", transport=rpc_result(None))

        assert await probe.fetch(timeout=1.0) == "down"

    @pytest.mark.asyncio
    async def test_rpc_error_is_malformed(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "boom"}},
            )
        )
        probe = SyncStatusProbe("http://rpc.test", transport=transport)

        with pytest.raises(MalformedResponse):
            await probe.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        probe = SyncStatusProbe("http://rpc.test", transport=text_response("<html>"))

        with pytest.raises(MalformedResponse):
            await probe.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_server_error_is_unreachable(self):
        probe = SyncStatusProbe("http://rpc.test", transport=text_response("", 500))

        with pytest.raises(UpstreamUnreachable):
            await probe.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_connection_refused_is_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        probe = SyncStatusProbe("http://rpc.test", transport=httpx.MockTransport(handler))

        with pytest.raises(UpstreamUnreachable):
            await probe.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_slow_upstream_times_out(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {}})

        probe = SyncStatusProbe("http://rpc.test", transport=httpx.MockTransport(handler))

        with pytest.raises(UpstreamTimeout):
            await probe.fetch(timeout=0.05)


class TestBundlerHealthProbe:
    """Tests for BundlerHealthProbe."""

    @pytest.mark.asyncio
    async def test_ok_body_is_active(self):
        probe = BundlerHealthProbe("http://bundler.test/health", transport=text_response("ok"))

        assert await probe.fetch(timeout=1.0) == "active"

    @pytest.mark.asyncio
    async def test_other_body_is_down(self):
        probe = BundlerHealthProbe("http://bundler.test/health", transport=text_response("degraded"))

        assert await probe.fetch(timeout=1.0) == "down"


class TestBalanceSources:
    """Tests for faucet and Esplora balance sources."""

    @pytest.mark.asyncio
    async def test_faucet_l1_plain_sats(self):
        source = FaucetL1BalanceSource("http://faucet.test/l1", transport=text_response("250000000\n"))

        assert await source.fetch(timeout=1.0) == 250_000_000

    @pytest.mark.asyncio
    async def test_faucet_l2_converts_wei_to_sats(self):
        source = FaucetL2BalanceSource(
            "http://faucet.test/l2", transport=text_response("123456789012345678901")
        )

        assert await source.fetch(timeout=1.0) == 12_345_678_901

    @pytest.mark.asyncio
    async def test_faucet_garbage_is_malformed(self):
        source = FaucetL1BalanceSource("http://faucet.test/l1", transport=text_response("n/a"))

        with pytest.raises(MalformedResponse):
            await source.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_esplora_confirmed_balance(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(
                200,
                json={
                    "address": "bcrt1qwallet",
                    "chain_stats": {"funded_txo_sum": 5000, "spent_txo_sum": 1200},
                    "mempool_stats": {"funded_txo_sum": 99, "spent_txo_sum": 0},
                },
            )

        source = EsploraBalanceSource(
            "http://esplora.test/", "bcrt1qwallet", transport=httpx.MockTransport(handler)
        )

        assert await source.fetch(timeout=1.0) == 3800
        assert seen == ["http://esplora.test/address/bcrt1qwallet"]
        assert source.name == "esplora:bcrt1qwallet"

    @pytest.mark.asyncio
    async def test_esplora_missing_stats_is_malformed(self):
        source = EsploraBalanceSource(
            "http://esplora.test",
            "bcrt1qwallet",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )

        with pytest.raises(MalformedResponse):
            await source.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_rollup_balance_in_wei(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            requests.append(body)
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "result": hex(5 * 10**18)}
            )

        source = RollupBalanceSource(
            "http://rollup.test",
            "0xpaymaster",
            name="paymaster_deposit",
            transport=httpx.MockTransport(handler),
        )

        assert await source.fetch(timeout=1.0) == 5 * 10**18
        assert requests[0]["method"] == "eth_getBalance"
        assert requests[0]["params"] == ["0xpaymaster", "latest"]
        assert source.name == "paymaster_deposit"

    @pytest.mark.asyncio
    async def test_rollup_balance_non_hex_is_malformed(self):
        source = RollupBalanceSource("http://rollup.test", "0xpaymaster", transport=rpc_result(12))

        with pytest.raises(MalformedResponse):
            await source.fetch(timeout=1.0)


class TestGatherAll:
    """Tests for gather_all."""

    @pytest.mark.asyncio
    async def test_results_in_argument_order(self):
        async def value(v, delay):
            await asyncio.sleep(delay)
            return v

        assert await gather_all(value(1, 0.02), value(2, 0.0)) == [1, 2]

    @pytest.mark.asyncio
    async def test_first_error_cancels_the_rest(self):
        finished = []

        async def slow():
            await asyncio.sleep(0.2)
            finished.append("slow")

        async def failing():
            raise UpstreamUnreachable("gone")

        with pytest.raises(UpstreamUnreachable):
            await gather_all(slow(), failing())

        await asyncio.sleep(0.3)
        assert finished == []


class TestBridgeParsing:
    """Tests for bridge RPC response parsing."""

    def test_operator_table_shapes(self):
        assert parse_operator_table({"1": "pkb", "0": "pka"}) == [(0, "pka"), (1, "pkb")]
        assert parse_operator_table([[0, "pka"], [1, "pkb"]]) == [(0, "pka"), (1, "pkb")]
        assert parse_operator_table(["pka", "pkb"]) == [(0, "pka"), (1, "pkb")]

    def test_deposit_txid_only_when_complete(self):
        complete = parse_deposit_info(
            {"status": {"Complete": {"deposit_request_txid": "req", "deposit_txid": "dep"}}}
        )
        pending = parse_deposit_info(
            {"status": {"status": "in_progress", "deposit_request_txid": "req"}}
        )

        assert complete.status is DepositStatus.COMPLETE
        assert complete.deposit_txid == "dep"
        assert pending.status is DepositStatus.IN_PROGRESS
        assert pending.deposit_txid is None

    def test_claim_challenge_step(self):
        challenged = parse_claim_info(
            {
                "claim_txid": "claim",
                "status": {"Challenged": {"challenge_step": "Assert"}},
            }
        )
        cancelled = parse_claim_info({"claim_txid": "claim", "status": "Cancelled"})

        assert challenged.status is ReimbursementStatus.CHALLENGED
        assert challenged.challenge_step == "Assert"
        assert cancelled.challenge_step == "N/A"
        assert cancelled.payout_txid is None

    def test_unknown_status_is_malformed(self):
        with pytest.raises(MalformedResponse):
            parse_deposit_info({"status": "Exploded"})


class TestBridgeStatusClient:
    """Tests for BridgeStatusClient against a fake rollup and bridge RPC."""

    ROLLUP = {
        "strata_getCurrentDeposits": [0, 1, 2],
        "strata_getCurrentDepositById": {
            0: {"output": "aa:0", "withdrawal_request_txid": None},
            1: {"output": "bb:0", "withdrawal_request_txid": "wreq"},
            2: {"output": None},
        },
    }
    BRIDGE = {
        "stratabridge_bridgeOperators": ["pk0", "pk1"],
        "stratabridge_operatorStatus": {0: "Online", 1: {"Offline": {}}},
        "stratabridge_depositInfo": {
            "aa:0": {"status": {"InProgress": {"deposit_request_txid": "dreq0"}}},
            "bb:0": {
                "status": {"Complete": {"deposit_request_txid": "dreq1", "deposit_txid": "dtx1"}}
            },
        },
        "stratabridge_withdrawalInfo": {
            "bb:0": {"status": {"Complete": {"fulfillment_txid": "ful1"}}},
        },
        "stratabridge_claims": ["claim0"],
        "stratabridge_claimInfo": {
            "claim0": {"claim_txid": "claim0", "status": {"Complete": {"payout_txid": "pay0"}}},
        },
    }

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        table = self.ROLLUP if request.url.host == "rollup.test" else self.BRIDGE
        result = table[body["method"]]
        if body["params"]:
            result = result[body["params"][0]]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    @pytest.mark.asyncio
    async def test_collects_full_bridge_status(self):
        client = BridgeStatusClient(
            "http://rollup.test", "http://bridge.test", transport=httpx.MockTransport(self.handler)
        )

        data = await client.fetch(timeout=1.0)

        assert [(op.operator_id, op.operator_address, op.status) for op in data.operators] == [
            ("Alpen Labs #0", "pk0", "Online"),
            ("Alpen Labs #1", "pk1", "Offline"),
        ]
        # Deposit 2 has no outpoint and is skipped
        assert [d.deposit_request_txid for d in data.deposits] == ["dreq0", "dreq1"]
        assert data.deposits[1].deposit_txid == "dtx1"
        assert len(data.withdrawals) == 1
        assert data.withdrawals[0].withdrawal_request_txid == "wreq"
        assert data.withdrawals[0].fulfillment_txid == "ful1"
        assert data.withdrawals[0].status is WithdrawalStatus.COMPLETE
        assert data.reimbursements[0].payout_txid == "pay0"
        assert data.reimbursements[0].status is ReimbursementStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_any_failing_call_fails_whole_fetch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "bridge.test":
                return httpx.Response(503)
            return self.handler(request)

        client = BridgeStatusClient(
            "http://rollup.test", "http://bridge.test", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(UpstreamUnreachable):
            await client.fetch(timeout=1.0)

    @pytest.mark.asyncio
    async def test_failing_call_leaves_no_calls_running(self):
        completed = []

        async def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["method"] == "stratabridge_claims":
                return httpx.Response(503)
            await asyncio.sleep(0.2)
            completed.append(body["method"])
            return self.handler(request)

        client = BridgeStatusClient(
            "http://rollup.test", "http://bridge.test", transport=httpx.MockTransport(handler)
        )

        with pytest.raises(UpstreamUnreachable):
            await client.fetch(timeout=1.0)

        assert [task for task in asyncio.all_tasks() if task is not asyncio.current_task()] == []
        await asyncio.sleep(0.3)
        assert completed == []
