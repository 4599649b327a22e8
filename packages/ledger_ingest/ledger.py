# ruff: noqa: I001
"""Ledger writes: canonical transactions and manual-account reconciliation.

Every record is written in its own short session and commit. A failure on one
record is reported as an ``errors[]`` entry and never rolls back records that
were already written in the same run.

Idempotency for pull sources rests on the UNIQUE ``external_id`` column. The
writer pre-checks for an existing row (the common re-sync case), and an
``IntegrityError`` on insert is re-checked: if a row with the same external id
now exists, a concurrent run won the race and the record is a duplicate skip.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from db.client import session_scope
from db.models.ledger import (
    AccountOrigin,
    Category,
    Direction,
    LedgerAccount,
    LedgerTransaction,
    TransactionSource,
    TransactionStatus,
)
from .errors import ReconciliationError, bounded_excerpt
from .logging_setup import get_logger
from .models import (
    AccountReconciliation,
    BatchResult,
    CandidateTransaction,
    ExternalTransaction,
    ExtractedAccount,
)

_logger = get_logger("ledger_ingest.ledger")

_CENT = Decimal("0.01")


class WriteOutcome(StrEnum):
    CREATED = "created"
    DUPLICATE = "duplicate"


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """A canonical transaction ready to insert. ``amount`` is unsigned."""

    amount: Decimal
    direction: str
    description: str
    date: date
    category: str
    source: str
    status: str = TransactionStatus.COMPLETED
    account_id: str | None = None
    external_id: str | None = None


def canonicalize(
    signed_amount: Decimal,
    *,
    description: str,
    tx_date: date,
    category: str,
    source: TransactionSource,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    account_id: str | None = None,
    external_id: str | None = None,
    direction: Direction | None = None,
) -> LedgerEntry:
    """Split a signed amount into ``(amount >= 0, direction)``.

    ``direction`` is derived from the sign unless given explicitly.
    """

    if direction is None:
        direction = Direction.EXPENSE if signed_amount < 0 else Direction.INCOME
    return LedgerEntry(
        amount=abs(signed_amount).quantize(_CENT, rounding=ROUND_HALF_UP),
        direction=direction,
        description=description,
        date=tx_date,
        category=category,
        source=source,
        status=status,
        account_id=account_id,
        external_id=external_id,
    )


def entry_from_candidate(
    candidate: CandidateTransaction, *, source: TransactionSource, account_id: str | None
) -> LedgerEntry:
    return canonicalize(
        candidate.amount,
        description=candidate.description,
        tx_date=candidate.date,
        category=candidate.category,
        source=source,
        account_id=account_id,
    )


def entry_from_external(
    tx: ExternalTransaction,
    *,
    source: TransactionSource,
    category: Category,
    account_id: str | None = None,
    direction: Direction | None = None,
) -> LedgerEntry:
    return canonicalize(
        tx.amount,
        description=tx.description,
        tx_date=tx.date,
        category=category,
        source=source,
        status=TransactionStatus.PENDING if tx.pending else TransactionStatus.COMPLETED,
        account_id=account_id,
        external_id=tx.external_id,
        direction=direction,
    )


def _db_reason(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return bounded_excerpt(str(orig if orig is not None else exc).splitlines()[0], 120)


class LedgerWriter:
    """Persist canonical entries and reconcile extracted accounts."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    # ---- transactions --------------------------------------------------------

    def _external_id_exists(self, external_id: str) -> bool:
        with session_scope(database_url=self._database_url) as session:
            found = session.scalar(
                select(LedgerTransaction.id).where(LedgerTransaction.external_id == external_id)
            )
        return found is not None

    def write_one(self, entry: LedgerEntry, *, company_id: str) -> WriteOutcome:
        """Insert one entry in its own transaction.

        Raises :class:`ReconciliationError` for any failure other than a
        duplicate external id.
        """

        try:
            with session_scope(database_url=self._database_url) as session:
                if entry.external_id is not None:
                    existing = session.scalar(
                        select(LedgerTransaction.id).where(
                            LedgerTransaction.external_id == entry.external_id
                        )
                    )
                    if existing is not None:
                        return WriteOutcome.DUPLICATE
                session.add(
                    LedgerTransaction(
                        amount=entry.amount,
                        direction=entry.direction,
                        description=entry.description,
                        date=entry.date,
                        category=entry.category,
                        status=entry.status,
                        source=entry.source,
                        company_id=company_id,
                        account_id=entry.account_id,
                        external_id=entry.external_id,
                    )
                )
                session.flush()
        except IntegrityError as e:
            if entry.external_id is not None and self._external_id_exists(entry.external_id):
                return WriteOutcome.DUPLICATE
            raise ReconciliationError("constraint-violation", _db_reason(e)) from e
        except SQLAlchemyError as e:
            raise ReconciliationError("storage-error", _db_reason(e)) from e
        return WriteOutcome.CREATED

    def write_batch(self, entries: Iterable[LedgerEntry], *, company_id: str) -> BatchResult:
        """Write entries one by one; failures are collected, not raised."""

        result = BatchResult()
        for position, entry in enumerate(entries, start=1):
            ref = entry.external_id or f"record {position}"
            try:
                outcome = self.write_one(entry, company_id=company_id)
            except ReconciliationError as e:
                _logger.warning("ledger:write_failed ref=%s reason=%s", ref, e)
                result.errors.append(f"{ref}: {e}")
                continue
            if outcome is WriteOutcome.DUPLICATE:
                result.skipped += 1
            else:
                result.count += 1
        _logger.info(
            "ledger:batch_done company_id=%s count=%d skipped=%d errors=%d",
            company_id,
            result.count,
            result.skipped,
            len(result.errors),
        )
        return result

    # ---- accounts ------------------------------------------------------------

    def owned_account(self, user_id: str, account_id: str) -> LedgerAccount | None:
        """Return the account when it exists and belongs to ``user_id``."""

        with session_scope(database_url=self._database_url) as session:
            return session.scalar(
                select(LedgerAccount).where(
                    LedgerAccount.id == account_id, LedgerAccount.user_id == user_id
                )
            )

    def reconcile_accounts(
        self, user_id: str, accounts: Sequence[ExtractedAccount]
    ) -> AccountReconciliation:
        """Match each extracted account to a MANUAL account by name, else create it.

        Names match case-insensitively. The first account reconciled becomes
        ``default_account_id``.
        """

        created = updated = 0
        default_id: str | None = None
        errors: list[str] = []
        for acc in accounts:
            try:
                with session_scope(database_url=self._database_url) as session:
                    row = session.scalar(
                        select(LedgerAccount)
                        .where(
                            LedgerAccount.user_id == user_id,
                            LedgerAccount.origin == AccountOrigin.MANUAL,
                            func.lower(LedgerAccount.name) == acc.name.lower(),
                        )
                        .order_by(LedgerAccount.created_at, LedgerAccount.id)
                        .limit(1)
                    )
                    if row is None:
                        row = LedgerAccount(
                            user_id=user_id,
                            name=acc.name,
                            currency=acc.currency,
                            current_balance=acc.balance,
                            origin=AccountOrigin.MANUAL,
                        )
                        session.add(row)
                        session.flush()
                        created += 1
                    else:
                        row.current_balance = acc.balance
                        row.currency = acc.currency
                        updated += 1
                    account_id = row.id
            except SQLAlchemyError as e:
                _logger.warning("ledger:account_failed name=%s reason=%s", acc.name, _db_reason(e))
                errors.append(f"account {acc.name!r}: {_db_reason(e)}")
                continue
            if default_id is None:
                default_id = account_id

        if accounts:
            _logger.info(
                "ledger:accounts_reconciled user_id=%s created=%d updated=%d",
                user_id,
                created,
                updated,
            )
        return AccountReconciliation(
            accounts_created=created,
            accounts_updated=updated,
            default_account_id=default_id,
            errors=tuple(errors),
        )


__all__ = [
    "LedgerEntry",
    "LedgerWriter",
    "WriteOutcome",
    "canonicalize",
    "entry_from_candidate",
    "entry_from_external",
]
