from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from uuid import uuid4

from sqlalchemy import (
    CHAR,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return uuid4().hex


# ---------------------------
# Enumerations (stored as text, guarded by CHECK constraints)
# ---------------------------


class Category(StrEnum):
    TRANSPORT = "TRANSPORT"
    MEALS = "MEALS"
    SUPPLIES = "SUPPLIES"
    SERVICES = "SERVICES"
    TAX = "TAX"
    PAYROLL = "PAYROLL"
    OTHER = "OTHER"


class Direction(StrEnum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class TransactionSource(StrEnum):
    DOCUMENT = "DOCUMENT"
    SPREADSHEET = "SPREADSHEET"
    AGGREGATOR = "AGGREGATOR"
    PROCESSOR = "PROCESSOR"


class AccountOrigin(StrEnum):
    AGGREGATOR = "AGGREGATOR"
    MANUAL = "MANUAL"


def _in_check(column: str, values: type[StrEnum]) -> str:
    quoted = ",".join(f"'{v.value}'" for v in values)
    return f"{column} in ({quoted})"


# ---------------------------
# Core: ledger_accounts
# ---------------------------


class LedgerAccount(Base):
    __tablename__ = "ledger_accounts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Aggregator item identifier; required when origin is AGGREGATOR.
    external_item_id: Mapped[str | None] = mapped_column(String, nullable=True)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, default="EUR")
    current_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    # Stored aggregator credential, written by the (external) linking flow.
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Opaque incremental-sync position. Only moves forward; NULL means
    # "backfill from the beginning" on the next sync.
    sync_cursor: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    origin: Mapped[str] = mapped_column(String(16), nullable=False, default=AccountOrigin.MANUAL)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(_in_check("origin", AccountOrigin), name="ck_ledger_account_origin"),
        CheckConstraint(
            "origin <> 'AGGREGATOR' OR external_item_id IS NOT NULL",
            name="ck_ledger_account_aggregator_item",
        ),
    )


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    # Unsigned; the sign lives in ``direction``.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    direction: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False, default=Category.OTHER)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.COMPLETED
    )
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    company_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    account_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("ledger_accounts.id", ondelete="SET NULL"), nullable=True
    )
    # Upstream identity (aggregator or processor transaction id). The UNIQUE
    # constraint is the dedup backstop under concurrent imports; NULLs are
    # allowed to repeat.
    external_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_ledger_tx_amount_unsigned"),
        CheckConstraint(_in_check("direction", Direction), name="ck_ledger_tx_direction"),
        CheckConstraint(_in_check("category", Category), name="ck_ledger_tx_category"),
        CheckConstraint(_in_check("status", TransactionStatus), name="ck_ledger_tx_status"),
        CheckConstraint(_in_check("source", TransactionSource), name="ck_ledger_tx_source"),
        Index("ix_ledger_transactions_date", "date"),
    )


# ---------------------------
# Core: ledger_processor_connections
# ---------------------------


class ProcessorConnection(Base):
    __tablename__ = "ledger_processor_connections"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default="stripe")
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
    external_account_id: Mapped[str | None] = mapped_column(String, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_ledger_processor_user_provider"),
    )


__all__ = [
    "AccountOrigin",
    "Base",
    "Category",
    "Direction",
    "LedgerAccount",
    "LedgerTransaction",
    "ProcessorConnection",
    "TransactionSource",
    "TransactionStatus",
]
