"""Pydantic schemas for the paymaster wallet balances view."""

from pydantic import BaseModel

from statusboard.schemas.sections import SectionStatus


class WalletBalanceOut(BaseModel):
    """
    A rollup wallet and its balance in wei.

    The balance is a decimal string since wei amounts overflow JSON numbers;
    it is null when the balance could not be read.
    """

    address: str
    balance: str | None = None


class PaymasterWalletsOut(BaseModel):
    deposit: WalletBalanceOut
    validating: WalletBalanceOut


class WalletBalancesResponse(BaseModel):
    status: SectionStatus
    wallets: PaymasterWalletsOut
