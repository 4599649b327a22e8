"""SQLAlchemy models registry for the ledger store."""

from .ledger import (
    AccountOrigin,
    Base,
    Category,
    Direction,
    LedgerAccount,
    LedgerTransaction,
    ProcessorConnection,
    TransactionSource,
    TransactionStatus,
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
