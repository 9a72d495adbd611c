"""Pydantic schemas for the wallet balances view. All amounts are in sats."""

from typing import Literal

from pydantic import BaseModel

from statusboard.schemas.sections import SectionStatus

BalanceHealth = Literal["Healthy", "Low", "Unknown"]


class FaucetBalancesOut(BaseModel):
    """Faucet balances; a field is null when its source could not be read."""

    l1_balance_sats: int | None = None
    l2_balance_sats: int | None = None
    l1_health: BalanceHealth = "Unknown"
    l2_health: BalanceHealth = "Unknown"


class OperatorWalletBalanceOut(BaseModel):
    wallet_type: Literal["General", "StakeChain"]
    operator_id: str | None = None
    operator_pk: str
    balance_sats: int | None = None


class OperatorBalanceRow(BaseModel):
    """General and stake-chain balances of one operator, merged by public key."""

    operator_id: str
    operator_pk: str
    general_balance_sats: int | None = None
    stake_chain_balance_sats: int | None = None


class BridgeOperatorBalancesOut(BaseModel):
    general_wallets: list[OperatorWalletBalanceOut] = []
    stake_chain_wallets: list[OperatorWalletBalanceOut] = []
    operators: list[OperatorBalanceRow] = []


class BalancesResponse(BaseModel):
    status: SectionStatus
    faucet: FaucetBalancesOut
    bridge_operators: BridgeOperatorBalancesOut
