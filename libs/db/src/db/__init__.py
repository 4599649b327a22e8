"""db: ledger store library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models and enumerations in ``db.models.ledger`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.ledger import (
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

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

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
    "metadata",
]
