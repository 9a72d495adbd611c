"""Base class and error taxonomy for upstream RPC/HTTP clients."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

import httpx

T = TypeVar("T")
R = TypeVar("R")


class UpstreamError(Exception):
    """Base exception for upstream client errors."""

    pass


class UpstreamUnreachable(UpstreamError):
    """Connection failure or non-success HTTP status."""

    pass


class UpstreamTimeout(UpstreamError):
    """The call did not complete within its timeout."""

    pass


class MalformedResponse(UpstreamError):
    """The upstream answered with something that could not be decoded."""

    pass


class UpstreamClient(ABC, Generic[T]):
    """
    A single upstream capability: fetch one typed value within a timeout.

    Subclasses implement `_fetch`; `fetch` bounds it by the timeout and turns
    transport and decoding failures into `UpstreamError` subclasses. There are
    no retries here, the caller's timer cadence is the retry policy.
    """

    name: str = "upstream"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    @abstractmethod
    async def _fetch(self, client: httpx.AsyncClient) -> T:
        """Perform the request(s) and decode the result."""

    async def fetch(self, timeout: float) -> T:
        return await self.call(self._fetch, timeout)

    async def call(
        self,
        request: Callable[[httpx.AsyncClient], Awaitable[R]],
        timeout: float,
    ) -> R:
        """Run `request` with a fresh HTTP client, bounded by `timeout` seconds."""
        try:
            async with self._client(timeout) as client:
                return await asyncio.wait_for(request(client), timeout)
        except UpstreamError:
            raise
        except (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeout(f"{self.name}: timed out after {timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamUnreachable(
                f"{self.name}: HTTP {e.response.status_code} from {e.request.url}"
            ) from e
        except httpx.RequestError as e:
            raise UpstreamUnreachable(f"{self.name}: {e!r}") from e
        except (ValueError, KeyError, TypeError, IndexError) as e:
            raise MalformedResponse(f"{self.name}: {e}") from e


async def gather_all(*aws: Awaitable[R]) -> list[R]:
    """
    Await all of `aws` concurrently in a task group.

    The first failure cancels the remaining calls and is re-raised as is,
    unwrapped from its exception group.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(aw) for aw in aws]
    except BaseExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]


class JsonRpcMixin:
    """JSON-RPC 2.0 over HTTP POST."""

    async def rpc_call(
        self,
        client: httpx.AsyncClient,
        url: str,
        method: str,
        params: list[Any] | None = None,
    ) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params if params is not None else [],
        }
        response = await client.post(url, json=body)
        response.raise_for_status()
        payload = response.json()

        if not isinstance(payload, dict):
            raise MalformedResponse(f"{method}: response is not a JSON-RPC object")
        if payload.get("error") is not None:
            raise MalformedResponse(f"{method}: RPC error {payload['error']}")
        if "result" not in payload:
            raise MalformedResponse(f"{method}: response has no result")

        return payload["result"]


async def get_text(client: httpx.AsyncClient, url: str) -> str:
    """GET a URL and return its body, raising on non-success status."""
    response = await client.get(url)
    response.raise_for_status()
    return response.text


async def get_json(
    client: httpx.AsyncClient, url: str, params: dict[str, str] | None = None
) -> Any:
    """GET a URL and return its decoded JSON body."""
    response = await client.get(url, params=params)
    response.raise_for_status()
    return response.json()
