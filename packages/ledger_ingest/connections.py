"""Stored payment-processor credentials (one per user and provider)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import select, update

from db.client import session_scope
from db.models.ledger import ProcessorConnection

DEFAULT_PROVIDER = "stripe"


@dataclass(frozen=True, slots=True)
class ConnectionInfo:
    id: str
    user_id: str
    provider: str
    api_key: str
    external_account_id: str | None
    last_synced_at: datetime | None


def _info(row: ProcessorConnection) -> ConnectionInfo:
    return ConnectionInfo(
        id=row.id,
        user_id=row.user_id,
        provider=row.provider,
        api_key=row.api_key,
        external_account_id=row.external_account_id,
        last_synced_at=row.last_synced_at,
    )


class ConnectionStore:
    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def get(self, user_id: str, provider: str = DEFAULT_PROVIDER) -> ConnectionInfo | None:
        with session_scope(database_url=self._database_url) as session:
            row = session.scalar(
                select(ProcessorConnection).where(
                    ProcessorConnection.user_id == user_id,
                    ProcessorConnection.provider == provider,
                )
            )
            return _info(row) if row is not None else None

    def upsert(
        self,
        user_id: str,
        api_key: str,
        *,
        provider: str = DEFAULT_PROVIDER,
        external_account_id: str | None = None,
    ) -> ConnectionInfo:
        """Create the user's connection or replace its key."""

        with session_scope(database_url=self._database_url) as session:
            row = session.scalar(
                select(ProcessorConnection).where(
                    ProcessorConnection.user_id == user_id,
                    ProcessorConnection.provider == provider,
                )
            )
            if row is None:
                row = ProcessorConnection(user_id=user_id, provider=provider, api_key=api_key)
                session.add(row)
            else:
                row.api_key = api_key
            if external_account_id is not None:
                row.external_account_id = external_account_id
            session.flush()
            return _info(row)

    def touch(self, connection_id: str) -> None:
        with session_scope(database_url=self._database_url) as session:
            session.execute(
                update(ProcessorConnection)
                .where(ProcessorConnection.id == connection_id)
                .values(last_synced_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )


__all__ = ["ConnectionInfo", "ConnectionStore", "DEFAULT_PROVIDER"]
