# ruff: noqa: I001
"""Ledger core tables: accounts, transactions, processor connections.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2025-12-10
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ledger_accounts
    op.create_table(
        "ledger_accounts",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("external_item_id", sa.Text(), nullable=True),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("sync_cursor", sa.Text(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("origin", sa.String(16), nullable=False, server_default=sa.text("'MANUAL'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("origin in ('AGGREGATOR','MANUAL')", name="ck_ledger_account_origin"),
        sa.CheckConstraint(
            "origin <> 'AGGREGATOR' OR external_item_id IS NOT NULL",
            name="ck_ledger_account_aggregator_item",
        ),
    )
    op.create_index("ix_ledger_accounts_user_id", "ledger_accounts", ["user_id"], unique=False)
    # Case-insensitive name lookup used by manual-account reconciliation
    op.create_index(
        "ix_ledger_accounts_user_lower_name",
        "ledger_accounts",
        ["user_id", sa.text("lower(name)")],
        unique=False,
    )

    # ledger_transactions
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("direction", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(16), nullable=False, server_default=sa.text("'OTHER'")),
        sa.Column(
            "status", sa.String(16), nullable=False, server_default=sa.text("'COMPLETED'")
        ),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("company_id", sa.Text(), nullable=False),
        sa.Column("account_id", sa.String(32), nullable=True),
        sa.Column("external_id", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["ledger_accounts.id"],
            name="fk_ledger_tx_account",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_ledger_tx_amount_unsigned"),
        sa.CheckConstraint("direction in ('INCOME','EXPENSE')", name="ck_ledger_tx_direction"),
        sa.CheckConstraint(
            (
                "category in ('TRANSPORT','MEALS','SUPPLIES','SERVICES',"
                "'TAX','PAYROLL','OTHER')"
            ),
            name="ck_ledger_tx_category",
        ),
        sa.CheckConstraint("status in ('PENDING','COMPLETED')", name="ck_ledger_tx_status"),
        sa.CheckConstraint(
            "source in ('DOCUMENT','SPREADSHEET','AGGREGATOR','PROCESSOR')",
            name="ck_ledger_tx_source",
        ),
    )
    # Global uniqueness of upstream identities; NULLs may repeat.
    op.create_index(
        "uq_ledger_tx_external_id",
        "ledger_transactions",
        ["external_id"],
        unique=True,
    )
    op.create_index("ix_ledger_transactions_date", "ledger_transactions", ["date"], unique=False)
    op.create_index(
        "ix_ledger_transactions_company_id", "ledger_transactions", ["company_id"], unique=False
    )

    # ledger_processor_connections
    op.create_table(
        "ledger_processor_connections",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("provider", sa.String(32), nullable=False, server_default=sa.text("'stripe'")),
        sa.Column("api_key", sa.Text(), nullable=False),
        sa.Column("external_account_id", sa.Text(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "provider", name="uq_ledger_processor_user_provider"),
    )


def downgrade() -> None:
    op.drop_table("ledger_processor_connections")
    op.drop_index("ix_ledger_transactions_company_id", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_date", table_name="ledger_transactions")
    op.drop_index("uq_ledger_tx_external_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_index("ix_ledger_accounts_user_lower_name", table_name="ledger_accounts")
    op.drop_index("ix_ledger_accounts_user_id", table_name="ledger_accounts")
    op.drop_table("ledger_accounts")
