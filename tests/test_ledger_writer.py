# ruff: noqa: I001
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session

from db.models.ledger import Category, Direction, TransactionSource
from ledger_ingest.errors import ReconciliationError
from ledger_ingest.ledger import LedgerEntry, LedgerWriter, WriteOutcome, canonicalize

from tests.helpers.db import count_transactions, list_transactions


# ---- Helpers -----------------------------------------------------------------


def _entry(n: int, *, category: str = Category.OTHER, external_id: str | None = None) -> LedgerEntry:
    return canonicalize(
        Decimal(f"-{n}.25"),
        description=f"Record {n}",
        tx_date=date(2024, 12, n),
        category=category,
        source=TransactionSource.SPREADSHEET if external_id is None else TransactionSource.AGGREGATOR,
        external_id=external_id,
    )


# ---- canonicalize ------------------------------------------------------------


@pytest.mark.parametrize(
    "signed, amount, direction",
    [
        (Decimal("-23.5"), Decimal("23.50"), Direction.EXPENSE),
        (Decimal("1500"), Decimal("1500.00"), Direction.INCOME),
        (Decimal("0"), Decimal("0.00"), Direction.INCOME),
        (Decimal("-0.005"), Decimal("0.01"), Direction.EXPENSE),
    ],
)
def test_canonicalize_splits_sign_into_direction(signed, amount, direction):
    entry = canonicalize(
        signed,
        description="x",
        tx_date=date(2024, 12, 14),
        category=Category.OTHER,
        source=TransactionSource.DOCUMENT,
    )
    assert entry.amount == amount
    assert entry.direction == direction


def test_explicit_direction_wins_over_sign():
    entry = canonicalize(
        Decimal("30"),
        description="Payout",
        tx_date=date(2024, 12, 14),
        category=Category.OTHER,
        source=TransactionSource.PROCESSOR,
        direction=Direction.EXPENSE,
    )
    assert (entry.amount, entry.direction) == (Decimal("30.00"), Direction.EXPENSE)


# ---- writes ------------------------------------------------------------------


def test_constraint_violation_fails_only_that_record(database_url):
    entries = [_entry(1), _entry(2), _entry(3, category="BOGUS"), _entry(4), _entry(5)]

    result = LedgerWriter(database_url=database_url).write_batch(entries, company_id="co1")

    assert result.count == 4
    assert result.skipped == 0
    assert len(result.errors) == 1
    assert result.errors[0].startswith("record 3: constraint-violation")
    assert [t.description for t in list_transactions(database_url)] == [
        "Record 1",
        "Record 2",
        "Record 4",
        "Record 5",
    ]


def test_duplicate_external_id_is_skipped_not_failed(database_url):
    writer = LedgerWriter(database_url=database_url)

    first = writer.write_batch([_entry(1, external_id="ext-1")], company_id="co1")
    second = writer.write_batch(
        [_entry(1, external_id="ext-1"), _entry(2, external_id="ext-2")], company_id="co1"
    )

    assert (first.count, first.skipped) == (1, 0)
    assert (second.count, second.skipped, second.errors) == (1, 1, [])
    assert count_transactions(database_url, external_id="ext-1") == 1


def test_entries_without_external_id_are_append_only(database_url):
    writer = LedgerWriter(database_url=database_url)

    writer.write_batch([_entry(1)], company_id="co1")
    writer.write_batch([_entry(1)], company_id="co1")

    assert count_transactions(database_url) == 2


def test_write_one_reports_constraint_reason(database_url):
    writer = LedgerWriter(database_url=database_url)

    with pytest.raises(ReconciliationError) as ei:
        writer.write_one(_entry(1, category="BOGUS"), company_id="co1")

    assert ei.value.reason == "constraint-violation"
    assert writer.write_one(_entry(2), company_id="co1") is WriteOutcome.CREATED


def test_stored_row_matches_entry(database_url):
    LedgerWriter(database_url=database_url).write_batch(
        [_entry(14, category=Category.TRANSPORT, external_id="ext-14")], company_id="co1"
    )

    (row,) = list_transactions(database_url)
    assert row.amount == Decimal("14.25")
    assert row.direction == Direction.EXPENSE
    assert row.category == Category.TRANSPORT
    assert row.source == TransactionSource.AGGREGATOR
    assert row.date == date(2024, 12, 14)
    assert row.company_id == "co1"


def test_lost_insert_race_is_a_duplicate_skip(database_url, request):
    # Another writer commits the same external id between this writer's
    # existence check and its flush, so only the UNIQUE constraint catches it.
    writer = LedgerWriter(database_url=database_url)
    rival = LedgerWriter(database_url=database_url)
    fired: list[str] = []

    def _rival_insert(session, _flush_context, _instances):
        pending_ids = {getattr(obj, "external_id", None) for obj in session.new}
        if "ext-race" in pending_ids and not fired:
            fired.append("ext-race")
            outcome = rival.write_one(_entry(7, external_id="ext-race"), company_id="co1")
            assert outcome is WriteOutcome.CREATED

    event.listen(Session, "before_flush", _rival_insert)
    request.addfinalizer(lambda: event.remove(Session, "before_flush", _rival_insert))

    result = writer.write_batch([_entry(7, external_id="ext-race")], company_id="co1")

    assert fired == ["ext-race"]
    assert (result.count, result.skipped, result.errors) == (0, 1, [])
    assert count_transactions(database_url, external_id="ext-race") == 1
