"""DB helpers for tests: bootstrap a temporary SQLite ledger and seed accounts."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

from sqlalchemy import func, select

from db.client import create_schema, session_scope
from db.models.ledger import AccountOrigin, LedgerAccount, LedgerTransaction


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file with the ledger schema and return its URL.

    A file-backed database lets the per-record sessions opened by the writer
    see each other's commits (in-memory SQLite is per-connection).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    create_schema(database_url=url)
    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


def add_account(
    database_url: str,
    *,
    user_id: str,
    name: str = "Main",
    origin: AccountOrigin = AccountOrigin.MANUAL,
    external_item_id: str | None = None,
    access_token: str | None = None,
    sync_cursor: str | None = None,
    balance: Decimal | None = None,
) -> str:
    """Insert one account and return its id."""

    with session_scope(database_url=database_url) as session:
        row = LedgerAccount(
            user_id=user_id,
            name=name,
            origin=origin,
            external_item_id=external_item_id,
            access_token=access_token,
            sync_cursor=sync_cursor,
            current_balance=balance,
        )
        session.add(row)
        session.flush()
        return row.id


def get_account(database_url: str, account_id: str) -> LedgerAccount:
    with session_scope(database_url=database_url) as session:
        row = session.get(LedgerAccount, account_id)
        assert row is not None, f"account {account_id} not found"
        return row


def list_transactions(database_url: str) -> list[LedgerTransaction]:
    with session_scope(database_url=database_url) as session:
        return list(
            session.scalars(
                select(LedgerTransaction).order_by(
                    LedgerTransaction.date, LedgerTransaction.external_id
                )
            )
        )


def count_transactions(database_url: str, *, external_id: str | None = None) -> int:
    with session_scope(database_url=database_url) as session:
        stmt = select(func.count()).select_from(LedgerTransaction)
        if external_id is not None:
            stmt = stmt.where(LedgerTransaction.external_id == external_id)
        return int(session.scalar(stmt) or 0)
