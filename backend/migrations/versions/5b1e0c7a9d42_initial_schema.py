"""Initial schema: indexer checkpoints and withdrawal requests.

Revision ID: 5b1e0c7a9d42
Revises: None
Create Date: 2025-06-03
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7a9d42"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "withdrawal_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("txid", sa.String(length=66), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("destination", sa.String(length=512), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "txid", "destination", name="uq_withdrawal_requests_txid_destination"
        ),
        if_not_exists=True,
    )
    op.create_index(
        "idx_withdrawal_requests_cursor",
        "withdrawal_requests",
        [sa.text("block_number DESC"), sa.text("id DESC")],
        if_not_exists=True,
    )

    indexer_state = op.create_table(
        "indexer_state",
        sa.Column("task_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column(
            "last_scanned_block",
            sa.BigInteger(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        if_not_exists=True,
    )

    op.bulk_insert(
        indexer_state,
        [{"task_id": "withdrawal_requests", "last_scanned_block": 0}],
    )


def downgrade() -> None:
    op.drop_table("indexer_state", if_exists=True)
    op.drop_index(
        "idx_withdrawal_requests_cursor", table_name="withdrawal_requests", if_exists=True
    )
    op.drop_table("withdrawal_requests", if_exists=True)
