"""Rollup chain log source and withdrawal intent log decoding."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, event_signature_to_log_topic, to_hex, to_int

from statusboard.services.upstream import JsonRpcMixin, MalformedResponse, UpstreamClient

logger = logging.getLogger(__name__)

# WithdrawalIntentEvent(uint64 amount, bytes destination): both fields are unindexed
WITHDRAWAL_EVENT_DATA_TYPES = ["uint64", "bytes"]


@dataclass(frozen=True)
class DecodedWithdrawal:
    """A withdrawal intent decoded from a log entry."""

    txid: str
    amount: int
    destination: str
    block_number: int


def event_topic(signature: str) -> str:
    """Topic 0 of an event, as a 0x-prefixed lowercase hex string."""
    return to_hex(event_signature_to_log_topic(signature))


def decode_withdrawal_log(entry: dict[str, Any], topic: str) -> DecodedWithdrawal | None:
    """
    Decode a withdrawal intent log entry.

    Returns None for entries whose first topic is not `topic`. Raises
    MalformedResponse for matching entries that cannot be decoded.
    """
    if not isinstance(entry, dict):
        raise MalformedResponse(f"Log entry is not an object: {entry!r}")

    topics = entry.get("topics") or []
    if not topics or str(topics[0]).lower() != topic.lower():
        return None

    try:
        amount, destination = decode(WITHDRAWAL_EVENT_DATA_TYPES, decode_hex(entry["data"]))
        return DecodedWithdrawal(
            txid=str(entry["transactionHash"]).lower(),
            amount=int(amount),
            destination=destination.hex(),
            block_number=to_int(hexstr=entry["blockNumber"]),
        )
    except (DecodingError, KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Could not decode withdrawal log {entry!r}: {e}") from e


class ChainLogSource(JsonRpcMixin, UpstreamClient[int]):
    """
    Event log source backed by the rollup's execution JSON-RPC.

    `fetch` returns the current chain head; `get_logs` queries one block range.
    """

    name = "chain_logs"

    def __init__(self, rpc_url: str, **kwargs):
        super().__init__(**kwargs)
        self.rpc_url = rpc_url

    async def _fetch(self, client: httpx.AsyncClient) -> int:
        result = await self.rpc_call(client, self.rpc_url, "eth_blockNumber")
        return to_int(hexstr=result)

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str,
        topic: str,
        timeout: float,
    ) -> list[dict[str, Any]]:
        """Fetch logs emitted by `address` with first topic `topic` in [from_block, to_block]."""
        params = [
            {
                "fromBlock": hex(from_block),
                "toBlock": hex(to_block),
                "address": address,
                "topics": [topic],
            }
        ]

        async def request(client: httpx.AsyncClient) -> list[dict[str, Any]]:
            result = await self.rpc_call(client, self.rpc_url, "eth_getLogs", params)
            if not isinstance(result, list):
                raise MalformedResponse(f"eth_getLogs returned {type(result).__name__}")
            return result

        logs = await self.call(request, timeout)
        logger.debug(f"Fetched {len(logs)} logs for blocks {from_block}-{to_block}")
        return logs
