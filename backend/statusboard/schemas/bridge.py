"""Pydantic schemas for the bridge status view."""

from enum import Enum

from pydantic import BaseModel

from statusboard.schemas.sections import SectionStatus


class DepositStatus(str, Enum):
    IN_PROGRESS = "In progress"
    FAILED = "Failed"
    COMPLETE = "Complete"


class WithdrawalStatus(str, Enum):
    IN_PROGRESS = "In progress"
    COMPLETE = "Complete"


class ReimbursementStatus(str, Enum):
    IN_PROGRESS = "In progress"
    CHALLENGED = "Challenged"
    CANCELLED = "Cancelled"
    COMPLETE = "Complete"


class OperatorStatusOut(BaseModel):
    """Liveness of a single bridge operator."""

    operator_id: str
    operator_address: str
    status: str


class DepositInfoOut(BaseModel):
    deposit_request_txid: str
    deposit_txid: str | None = None
    status: DepositStatus


class WithdrawalInfoOut(BaseModel):
    withdrawal_request_txid: str
    fulfillment_txid: str | None = None
    status: WithdrawalStatus


class ReimbursementInfoOut(BaseModel):
    claim_txid: str
    challenge_step: str = "N/A"
    payout_txid: str | None = None
    status: ReimbursementStatus


class BridgeStatusData(BaseModel):
    """Everything the bridge RPC reports for one refresh."""

    operators: list[OperatorStatusOut] = []
    deposits: list[DepositInfoOut] = []
    withdrawals: list[WithdrawalInfoOut] = []
    reimbursements: list[ReimbursementInfoOut] = []


class BridgeStatusResponse(BridgeStatusData):
    """
    Bridge status view.

    The lists are empty when `status` is "failed"; when "degraded" they hold
    the last successful refresh and `error` describes the current failure.
    """

    status: SectionStatus
    error: str | None = None
