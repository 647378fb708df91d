"""Initial ledger schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the LedgerLock storage schema:
- ledger_transactions: Append-only committed transactions
- ledger_events: Append-only events emitted by transactions
- identities: Registered users and devices
- permission_edges: Directed requester -> resource grant flags
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Ledger transactions table
    op.create_table(
        "ledger_transactions",
        sa.Column("sequence_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
        sa.Column("signer", sa.String(130), nullable=False),
        sa.Column("operation", sa.String(50), nullable=False),
        sa.Column("arguments", sa.JSON(), nullable=True),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("sequence_id"),
    )
    op.create_index("ix_ledger_transactions_tx_hash", "ledger_transactions", ["tx_hash"], unique=True)
    op.create_index("ix_ledger_transactions_signer", "ledger_transactions", ["signer"])

    # Ledger events table
    op.create_table(
        "ledger_events",
        sa.Column("sequence_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tx_sequence_id", sa.Integer(), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("requester", sa.String(130), nullable=True),
        sa.Column("resource", sa.String(130), nullable=True),
        sa.Column("is_success", sa.Boolean(), nullable=True),
        sa.Column("entity_address", sa.String(130), nullable=True),
        sa.Column("role", sa.String(255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tx_sequence_id"], ["ledger_transactions.sequence_id"]),
        sa.PrimaryKeyConstraint("sequence_id"),
    )
    op.create_index("ix_ledger_events_type_seq", "ledger_events", ["event_type", "sequence_id"])
    op.create_index("ix_ledger_events_requester", "ledger_events", ["requester"])
    op.create_index("ix_ledger_events_resource", "ledger_events", ["resource"])
    op.create_index("ix_ledger_events_timestamp", "ledger_events", ["timestamp"])

    # Identities table
    op.create_table(
        "identities",
        sa.Column("address", sa.String(130), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(255), nullable=False),
        sa.Column("registered", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("registration_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("registration_tx_hash", sa.String(66), nullable=False),
        sa.PrimaryKeyConstraint("address"),
    )

    # Permission edges table
    op.create_table(
        "permission_edges",
        sa.Column("requester", sa.String(130), nullable=False),
        sa.Column("resource", sa.String(130), nullable=False),
        sa.Column("granted", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_tx_hash", sa.String(66), nullable=False),
        sa.PrimaryKeyConstraint("requester", "resource"),
    )


def downgrade() -> None:
    op.drop_table("permission_edges")
    op.drop_table("identities")
    op.drop_table("ledger_events")
    op.drop_table("ledger_transactions")
