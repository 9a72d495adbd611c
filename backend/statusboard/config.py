"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class OperatorWalletConfig(BaseModel):
    """A bridge operator wallet to watch on L1."""

    operator_pk: str
    address: str
    operator_id: str | None = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/statusboard"

    # Rollup network
    rpc_url: str = "http://localhost:8433"
    sequencer_url: str = "http://localhost:8432"
    bundler_url: str = "http://localhost:8434/health"

    # Bridge
    bridge_rpc_url: str = "http://localhost:8546"
    esplora_url: str = "http://localhost:3002"
    bridge_general_wallets: list[OperatorWalletConfig] = []
    bridge_stake_chain_wallets: list[OperatorWalletConfig] = []

    # Faucet (thresholds in sats, same unit as the balances)
    faucet_l1_balance_url: str = "http://localhost:3000/sats_to_claim/l1"
    faucet_l2_balance_url: str = "http://localhost:3000/sats_to_claim/l2"
    faucet_l1_threshold_sats: int = 100_000_000
    faucet_l2_threshold_sats: int = 100_000_000

    # Paymaster wallets (rollup addresses, balances read through rpc_url)
    paymaster_deposit_wallet: str = ""
    paymaster_validating_wallet: str = ""

    # Account abstraction activity (Blockscout user-ops indexer)
    activity_user_ops_url: str = "http://localhost:8080/api/v1/operations"
    activity_accounts_url: str = "http://localhost:8080/api/v1/accounts"
    activity_page_size: int = 100
    activity_max_pages: int = 100
    activity_refresh_interval_seconds: int = 60
    activity_timeout_seconds: float = 30.0

    # Withdrawal request indexer
    bridgeout_address: str = "0x5400000000000000000000000000000000000001"
    withdrawal_event_signature: str = "WithdrawalIntentEvent(uint64,bytes)"
    eth_logs_batch_size: int = 1000
    indexer_poll_interval_seconds: int = 10

    # Status aggregation
    status_refresh_interval_seconds: int = 10
    upstream_timeout_seconds: float = 5.0

    # API settings
    api_prefix: str = "/api"
    cors_origins: list[str] = ["*"]
    rate_limit_per_minute: int = 60

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
