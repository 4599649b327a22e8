"""Per-account aggregator sync position.

The cursor is an opaque token from the aggregator. It only moves forward,
through a compare-and-set (:meth:`SyncCursorStore.advance`), and is cleared
only when the account's credential is re-issued (:meth:`SyncCursorStore.reset`),
which forces a full backfill on the next sync.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select, update

from db.client import session_scope
from db.models.ledger import LedgerAccount

from .errors import AuthorizationError, InputRejected
from .logging_setup import get_logger

_logger = get_logger("ledger_ingest.cursors")


@dataclass(frozen=True, slots=True)
class SyncPosition:
    account_id: str
    access_token: str | None
    cursor: str | None
    item_id: str | None


class SyncCursorStore:
    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def load(self, user_id: str, account_id: str) -> SyncPosition:
        """Return the stored credential and cursor for an account the user owns."""

        with session_scope(database_url=self._database_url) as session:
            row = session.scalar(select(LedgerAccount).where(LedgerAccount.id == account_id))
            if row is None or row.user_id != user_id:
                # Unknown and foreign accounts are indistinguishable to the caller
                raise AuthorizationError(
                    "account-not-owned", f"account {account_id} does not belong to the caller"
                )
            return SyncPosition(
                account_id=row.id,
                access_token=row.access_token,
                cursor=row.sync_cursor,
                item_id=row.external_item_id,
            )

    def advance(self, account_id: str, *, expected: str | None, new: str) -> bool:
        """Move the cursor from ``expected`` to ``new``.

        Returns ``False`` without writing when ``new`` is empty or when the
        stored cursor no longer equals ``expected`` (another run moved it).
        """

        if not new:
            return False
        current = (
            LedgerAccount.sync_cursor.is_(None)
            if expected is None
            else LedgerAccount.sync_cursor == expected
        )
        with session_scope(database_url=self._database_url) as session:
            res = session.execute(
                update(LedgerAccount)
                .where(LedgerAccount.id == account_id, current)
                .values(sync_cursor=new, last_synced_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )
            moved = res.rowcount == 1
        _logger.info("cursors:advance account_id=%s moved=%s", account_id, moved)
        return moved

    def touch(self, account_id: str) -> None:
        with session_scope(database_url=self._database_url) as session:
            session.execute(
                update(LedgerAccount)
                .where(LedgerAccount.id == account_id)
                .values(last_synced_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )

    def reset(self, user_id: str, account_id: str, access_token: str) -> None:
        """Store a re-issued credential and clear the cursor."""

        if not access_token or not access_token.strip():
            raise InputRejected("empty-credential", "access token must be non-empty")
        self.load(user_id, account_id)
        with session_scope(database_url=self._database_url) as session:
            session.execute(
                update(LedgerAccount)
                .where(LedgerAccount.id == account_id)
                .values(access_token=access_token.strip(), sync_cursor=None)
                .execution_options(synchronize_session=False)
            )
        _logger.info("cursors:reset account_id=%s", account_id)


__all__ = ["SyncCursorStore", "SyncPosition"]
