"""Pydantic schemas for indexed withdrawal requests."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class WithdrawalRequestOut(BaseModel):
    """Withdrawal request response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    txid: str
    amount: int
    destination: str
    block_number: int
    timestamp: datetime


class WithdrawalRequestsResponse(BaseModel):
    """Paginated response for withdrawal requests."""

    withdrawal_requests: list[WithdrawalRequestOut]
    next_cursor: str | None = None
