"""Pydantic schemas for the account abstraction activity view."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from statusboard.schemas.sections import SectionStatus


class ActivityStatName(str, Enum):
    USER_OPS = "ACTIVITY_STATS__USER_OPS"
    GAS_USED = "ACTIVITY_STATS__GAS_USED"
    UNIQUE_ACTIVE_ACCOUNTS = "ACTIVITY_STATS__UNIQUE_ACTIVE_ACCOUNTS"


class TimeWindow(str, Enum):
    LAST_24_HOURS = "TIME_WINDOW__LAST_24_HOURS"
    LAST_30_DAYS = "TIME_WINDOW__LAST_30_DAYS"
    YEAR_TO_DATE = "TIME_WINDOW__YEAR_TO_DATE"


class SelectAccountsBy(str, Enum):
    RECENT = "ACCOUNTS__RECENT"
    TOP_GAS_CONSUMERS_24H = "ACCOUNTS__TOP_GAS_CONSUMERS_24H"


class AccountOut(BaseModel):
    """A smart account; `gas_used` is only set in the top gas consumer list."""

    address: str
    creation_timestamp: datetime | None = None
    gas_used: int = 0


class ActivityStatsData(BaseModel):
    """Counters per stat and time window, plus selected account lists."""

    stats: dict[ActivityStatName, dict[TimeWindow, int]]
    selected_accounts: dict[SelectAccountsBy, list[AccountOut]]

    @classmethod
    def empty(cls) -> "ActivityStatsData":
        return cls(
            stats={name: {window: 0 for window in TimeWindow} for name in ActivityStatName},
            selected_accounts={select_by: [] for select_by in SelectAccountsBy},
        )


class ActivityStatsResponse(ActivityStatsData):
    """
    Activity view.

    Counters are all zero when `status` is "failed"; when "degraded" they
    hold the last successful refresh and `error` describes the current failure.
    """

    status: SectionStatus
    error: str | None = None
