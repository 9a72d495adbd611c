"""Wallet balance sources for the faucet, the bridge operators and the paymaster."""

import httpx
from eth_utils import to_int

from statusboard.services.upstream import (
    JsonRpcMixin,
    MalformedResponse,
    UpstreamClient,
    get_json,
    get_text,
)

# 1 BTC = 1 ETH peg: 10^18 wei = 10^8 sats
WEIS_PER_SAT = 10_000_000_000


def _parse_int(text: str, source: str) -> int:
    try:
        value = int(text.strip())
    except ValueError as e:
        raise MalformedResponse(f"{source}: could not parse balance {text!r}") from e
    if value < 0:
        raise MalformedResponse(f"{source}: negative balance {value}")
    return value


class FaucetL1BalanceSource(UpstreamClient[int]):
    """Signet faucet balance, served as plain-text sats."""

    name = "faucet_l1"

    def __init__(self, url: str, **kwargs):
        super().__init__(**kwargs)
        self.url = url

    async def _fetch(self, client: httpx.AsyncClient) -> int:
        return _parse_int(await get_text(client, self.url), self.name)


class FaucetL2BalanceSource(UpstreamClient[int]):
    """Rollup faucet balance, served as plain-text wei and returned in sats."""

    name = "faucet_l2"

    def __init__(self, url: str, **kwargs):
        super().__init__(**kwargs)
        self.url = url

    async def _fetch(self, client: httpx.AsyncClient) -> int:
        wei = _parse_int(await get_text(client, self.url), self.name)
        return wei // WEIS_PER_SAT


class EsploraBalanceSource(UpstreamClient[int]):
    """Confirmed balance of a Bitcoin address from an Esplora instance."""

    def __init__(self, esplora_url: str, address: str, **kwargs):
        super().__init__(**kwargs)
        self.esplora_url = esplora_url.rstrip("/")
        self.address = address
        self.name = f"esplora:{address}"

    async def _fetch(self, client: httpx.AsyncClient) -> int:
        data = await get_json(client, f"{self.esplora_url}/address/{self.address}")
        chain_stats = data["chain_stats"]
        funded = int(chain_stats["funded_txo_sum"])
        spent = int(chain_stats["spent_txo_sum"])
        return funded - spent


class RollupBalanceSource(JsonRpcMixin, UpstreamClient[int]):
    """Latest balance of a rollup account in wei, read with `eth_getBalance`."""

    def __init__(self, rpc_url: str, address: str, name: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.rpc_url = rpc_url
        self.address = address
        self.name = name or f"balance:{address}"

    async def _fetch(self, client: httpx.AsyncClient) -> int:
        result = await self.rpc_call(
            client, self.rpc_url, "eth_getBalance", [self.address, "latest"]
        )
        if not isinstance(result, str):
            raise MalformedResponse(f"{self.name}: balance is not a hex string: {result!r}")
        return to_int(hexstr=result)
