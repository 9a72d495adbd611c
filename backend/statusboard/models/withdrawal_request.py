"""WithdrawalRequest model for withdrawal intents observed in rollup event logs."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from statusboard.database import Base


class WithdrawalRequest(Base):
    """
    Withdrawal request emitted by the bridge-out contract.

    Append-only ledger: a row is identified by (txid, destination) and is
    never updated once written.
    """

    __tablename__ = "withdrawal_requests"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    txid: Mapped[str] = mapped_column(String(66), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # sats
    destination: Mapped[str] = mapped_column(String(512), nullable=False)  # hex descriptor
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("txid", "destination", name="uq_withdrawal_requests_txid_destination"),
        # Cursor pagination index
        Index("idx_withdrawal_requests_cursor", block_number.desc(), id.desc()),
    )

    def __repr__(self) -> str:
        return f"<WithdrawalRequest {self.txid}: {self.amount} sats>"
