"""Liveness probes for the rollup sequencer, RPC endpoint and bundler."""

import logging

import httpx

from statusboard.services.upstream import JsonRpcMixin, UpstreamClient, get_text

logger = logging.getLogger(__name__)

ACTIVE = "active"
DOWN = "down"
UNKNOWN = "unknown"


class SyncStatusProbe(JsonRpcMixin, UpstreamClient[str]):
    """Calls `strata_syncStatus`; the node is active when it reports a tip height."""

    def __init__(self, url: str, name: str = "rpc", **kwargs):
        super().__init__(**kwargs)
        self.url = url
        self.name = name

    async def _fetch(self, client: httpx.AsyncClient) -> str:
        result = await self.rpc_call(client, self.url, "strata_syncStatus")
        if isinstance(result, dict) and result.get("tip_height") is not None:
            return ACTIVE
        logger.info(f"{self.name} sync status has no tip height: {result}")
        return DOWN


class BundlerHealthProbe(UpstreamClient[str]):
    """Checks the bundler health endpoint, which answers with a body containing "ok"."""

    name = "bundler"

    def __init__(self, url: str, **kwargs):
        super().__init__(**kwargs)
        self.url = url

    async def _fetch(self, client: httpx.AsyncClient) -> str:
        body = await get_text(client, self.url)
        return ACTIVE if "ok" in body else DOWN
