"""Account abstraction activity stats from a Blockscout user-ops indexer."""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import httpx

from statusboard.schemas.activity import (
    AccountOut,
    ActivityStatName,
    ActivityStatsData,
    SelectAccountsBy,
    TimeWindow,
)
from statusboard.services.upstream import (
    MalformedResponse,
    UpstreamClient,
    gather_all,
    get_json,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# The indexer expects "YYYY-MM-DD HH:MM:SS" query times
QUERY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
SELECTED_ACCOUNTS_LIMIT = 5


@dataclass(frozen=True)
class UserOp:
    """An ERC-4337 user operation, reduced to what the stats need."""

    sender: str
    gas_used: int
    timestamp: datetime


def window_duration(window: TimeWindow, now: datetime) -> timedelta:
    if window is TimeWindow.LAST_24_HOURS:
        return timedelta(days=1)
    if window is TimeWindow.LAST_30_DAYS:
        return timedelta(days=30)
    return timedelta(days=now.timetuple().tm_yday)


def query_start(now: datetime) -> datetime:
    """Earliest time the stats look at: January 1st or 30 days ago, whichever is first."""
    return min(datetime(now.year, 1, 1, tzinfo=UTC), now - timedelta(days=30))


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _address_hash(item: dict[str, Any]) -> str:
    address = item["address"]["hash"]
    if not isinstance(address, str):
        raise TypeError(f"address hash is {type(address).__name__}")
    return address


def parse_user_op(item: dict[str, Any]) -> UserOp:
    """Decode a user operation item; its `fee` is the gas used, as a decimal string."""
    try:
        return UserOp(
            sender=_address_hash(item),
            gas_used=int(item["fee"]),
            timestamp=_parse_timestamp(item["timestamp"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Could not decode user op {item!r}: {e}") from e


def parse_account(item: dict[str, Any]) -> AccountOut:
    try:
        created = item.get("creation_timestamp")
        return AccountOut(
            address=_address_hash(item),
            creation_timestamp=_parse_timestamp(created) if created is not None else None,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Could not decode account {item!r}: {e}") from e


def next_page_token(data: dict[str, Any]) -> str | None:
    params = data.get("next_page_params")
    if not isinstance(params, dict):
        return None
    token = params.get("page_token")
    if not isinstance(token, str):
        return None
    return token.strip('"')


def compute_activity_stats(
    user_ops: Iterable[UserOp],
    accounts: Iterable[AccountOut],
    now: datetime,
) -> ActivityStatsData:
    """
    Aggregate user operations and accounts into the dashboard stats.

    Each operation counts towards every time window it falls in. The recent
    accounts are the newest by creation time; the top gas consumers sum gas
    per sender over the last 24 hours.
    """
    data = ActivityStatsData.empty()
    window_starts = {window: now - window_duration(window, now) for window in TimeWindow}
    senders: dict[TimeWindow, set[str]] = {window: set() for window in TimeWindow}
    gas_last_day: dict[str, int] = defaultdict(int)
    day_ago = now - timedelta(days=1)

    for op in user_ops:
        for window, start in window_starts.items():
            if op.timestamp >= start:
                data.stats[ActivityStatName.USER_OPS][window] += 1
                data.stats[ActivityStatName.GAS_USED][window] += op.gas_used
                senders[window].add(op.sender)
        if op.timestamp >= day_ago:
            gas_last_day[op.sender] += op.gas_used

    for window, addresses in senders.items():
        data.stats[ActivityStatName.UNIQUE_ACTIVE_ACCOUNTS][window] = len(addresses)

    created = [account for account in accounts if account.creation_timestamp is not None]
    created.sort(key=lambda account: account.creation_timestamp, reverse=True)
    data.selected_accounts[SelectAccountsBy.RECENT] = created[:SELECTED_ACCOUNTS_LIMIT]

    top = sorted(gas_last_day.items(), key=lambda item: item[1], reverse=True)
    data.selected_accounts[SelectAccountsBy.TOP_GAS_CONSUMERS_24H] = [
        AccountOut(address=address, gas_used=gas_used)
        for address, gas_used in top[:SELECTED_ACCOUNTS_LIMIT]
    ]
    return data


class ActivityStatsClient(UpstreamClient[ActivityStatsData]):
    """
    Computes activity stats from the user-ops indexer.

    Both listings are paged with an opaque `page_token`; operations and
    accounts are paged concurrently and any failed page fails the fetch.
    """

    name = "activity"

    def __init__(
        self,
        user_ops_url: str,
        accounts_url: str,
        page_size: int = 100,
        max_pages: int = 100,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.user_ops_url = user_ops_url
        self.accounts_url = accounts_url
        self.page_size = page_size
        self.max_pages = max_pages

    async def _paginate(
        self,
        client: httpx.AsyncClient,
        url: str,
        start: datetime,
        end: datetime,
        parse: Callable[[dict[str, Any]], T],
    ) -> list[T]:
        params = {
            "start_time": start.strftime(QUERY_TIME_FORMAT),
            "end_time": end.strftime(QUERY_TIME_FORMAT),
            "page_size": str(self.page_size),
        }
        items: list[T] = []

        for _ in range(self.max_pages):
            data = await get_json(client, url, params)
            page = data.get("items") if isinstance(data, dict) else None
            if not isinstance(page, list):
                raise MalformedResponse(f"{self.name}: response from {url} has no items list")
            items.extend(parse(item) for item in page)

            token = next_page_token(data)
            if token is None:
                return items
            params = {**params, "page_token": token}

        logger.warning(f"{self.name}: stopped paging {url} after {self.max_pages} pages")
        return items

    async def _fetch(self, client: httpx.AsyncClient) -> ActivityStatsData:
        now = datetime.now(UTC)
        start = query_start(now)

        user_ops, accounts = await gather_all(
            self._paginate(client, self.user_ops_url, start, now, parse_user_op),
            self._paginate(client, self.accounts_url, start, now, parse_account),
        )
        logger.info(f"Fetched {len(user_ops)} user ops and {len(accounts)} accounts")
        return compute_activity_stats(user_ops, accounts, now)
