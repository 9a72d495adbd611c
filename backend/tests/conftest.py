"""Pytest fixtures for status dashboard backend tests."""

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
import pytest_asyncio
from eth_abi import encode
from eth_utils import to_hex
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from statusboard.config import Settings
from statusboard.database import Base, get_db
from statusboard.main import app
from statusboard.models import WITHDRAWAL_REQUESTS_TASK, IndexerState
from statusboard.schemas.activity import (
    AccountOut,
    ActivityStatName,
    ActivityStatsData,
    SelectAccountsBy,
    TimeWindow,
)
from statusboard.schemas.bridge import (
    BridgeStatusData,
    DepositInfoOut,
    DepositStatus,
    OperatorStatusOut,
)
from statusboard.services.aggregator import (
    OperatorWallet,
    PaymasterWallet,
    StatusAggregator,
    get_aggregator,
)
from statusboard.services.log_source import ChainLogSource, event_topic
from statusboard.services.upstream import UpstreamClient

# Test database URL - in-memory SQLite shared across the session's connections
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BRIDGEOUT_ADDRESS = "0x5400000000000000000000000000000000000001"
WITHDRAWAL_EVENT_SIGNATURE = "WithdrawalIntentEvent(uint64,bytes)"
WITHDRAWAL_TOPIC = event_topic(WITHDRAWAL_EVENT_SIGNATURE)


class StubClient(UpstreamClient[Any]):
    """Upstream client returning a canned value, error or delay."""

    def __init__(
        self,
        value: Any = None,
        error: Exception | None = None,
        delay: float = 0.0,
        name: str = "stub",
    ):
        super().__init__()
        self.value = value
        self.error = error
        self.delay = delay
        self.name = name
        self.calls = 0

    async def _fetch(self, client: httpx.AsyncClient) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


class FakeChain:
    """
    JSON-RPC double for the rollup execution node.

    Serves `eth_blockNumber` from `head` and `eth_getLogs` from `logs`,
    filtered by the requested block range.
    """

    def __init__(self, head: int = 0, logs: list[dict[str, Any]] | None = None):
        self.head = head
        self.logs = logs or []
        self.status_code = 200
        self.requests: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="unavailable")

        if body["method"] == "eth_blockNumber":
            result: Any = hex(self.head)
        elif body["method"] == "eth_getLogs":
            query = body["params"][0]
            low, high = int(query["fromBlock"], 16), int(query["toBlock"], 16)
            result = [
                entry for entry in self.logs if low <= int(entry["blockNumber"], 16) <= high
            ]
        else:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self) -> list[str]:
        return [request["method"] for request in self.requests]

    def log_source(self) -> ChainLogSource:
        return ChainLogSource("http://rollup.test", transport=httpx.MockTransport(self.handler))


def make_withdrawal_log(
    txid: str,
    amount: int,
    destination: bytes,
    block_number: int,
    topic: str = WITHDRAWAL_TOPIC,
) -> dict[str, Any]:
    """Build an eth_getLogs entry for a withdrawal intent event."""
    return {
        "address": BRIDGEOUT_ADDRESS,
        "topics": [topic],
        "data": to_hex(encode(["uint64", "bytes"], [amount, destination])),
        "blockNumber": hex(block_number),
        "transactionHash": txid,
        "logIndex": "0x0",
    }


def make_txid(n: int) -> str:
    return "0x" + f"{n:x}".rjust(64, "0")


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        rpc_url="http://rollup.test",
        bridge_rpc_url="http://bridge.test",
        debug=True,
    )


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine with the schema created from the models."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session with the withdrawal indexer task seeded."""
    async_session = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        session.add(IndexerState(task_id=WITHDRAWAL_REQUESTS_TASK, last_scanned_block=0))
        await session.commit()
        yield session
        await session.rollback()


@pytest.fixture
def bridge_data() -> BridgeStatusData:
    return BridgeStatusData(
        operators=[
            OperatorStatusOut(
                operator_id="Alpen Labs #0",
                operator_address="02aa" + "00" * 31,
                status="Online",
            )
        ],
        deposits=[
            DepositInfoOut(
                deposit_request_txid="d" * 64,
                deposit_txid="e" * 64,
                status=DepositStatus.COMPLETE,
            )
        ],
    )


@pytest.fixture
def activity_data() -> ActivityStatsData:
    data = ActivityStatsData.empty()
    data.stats[ActivityStatName.USER_OPS][TimeWindow.LAST_24_HOURS] = 3
    data.selected_accounts[SelectAccountsBy.TOP_GAS_CONSUMERS_24H] = [
        AccountOut(address="0xaa", gas_used=700)
    ]
    return data


@pytest.fixture
def make_aggregator(bridge_data, activity_data):
    """Build an aggregator from stub clients; every client succeeds unless overridden."""

    def _make(**overrides: Any) -> StatusAggregator:
        clients: dict[str, Any] = {
            "sequencer": StubClient("active", name="sequencer"),
            "rpc_endpoint": StubClient("active", name="rpc_endpoint"),
            "bundler": StubClient("active", name="bundler"),
            "bridge": StubClient(bridge_data, name="bridge"),
            "faucet_l1": StubClient(250_000_000, name="faucet_l1"),
            "faucet_l2": StubClient(50_000_000, name="faucet_l2"),
            "paymaster_deposit": PaymasterWallet(
                "0xdeposit", StubClient(5 * 10**18, name="paymaster_deposit")
            ),
            "paymaster_validating": PaymasterWallet(
                "0xvalidating", StubClient(10**18, name="paymaster_validating")
            ),
            "activity": StubClient(activity_data, name="activity"),
            "operator_wallets": [
                OperatorWallet("General", "pk1", "Alpen Labs #1", StubClient(1_000)),
                OperatorWallet("StakeChain", "pk1", "Alpen Labs #1", StubClient(2_000)),
            ],
            "timeout": 0.5,
            "activity_timeout": 0.5,
            "faucet_l1_threshold_sats": 100_000_000,
            "faucet_l2_threshold_sats": 100_000_000,
        }
        clients.update(overrides)
        return StatusAggregator(**clients)

    return _make


@pytest.fixture
def aggregator(make_aggregator) -> StatusAggregator:
    return make_aggregator()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, aggregator: StatusAggregator
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database and aggregator overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    app.state.limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
