# ruff: noqa: I001
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from db.models.ledger import AccountOrigin, Category, TransactionSource
from ledger_ingest.config import IngestSettings
from ledger_ingest.errors import AuthorizationError
from ledger_ingest.models import CandidateTransaction, ExtractedAccount, ExtractionResult
from ledger_ingest.reconcile import IngestContext, Reconciler

from tests.helpers.db import add_account, get_account, list_transactions


CTX = IngestContext(user_id="u1", company_id="co1")


# ---- Helpers -----------------------------------------------------------------


def _tx(description: str, amount: str) -> CandidateTransaction:
    return CandidateTransaction(
        date=date(2024, 12, 14), description=description, amount=Decimal(amount), category=Category.OTHER
    )


def _result(accounts=(), transactions=()) -> ExtractionResult:
    return ExtractionResult(transactions=tuple(transactions), accounts=tuple(accounts))


# ---- Tests -------------------------------------------------------------------


def test_existing_manual_account_matches_case_insensitively(database_url):
    existing = add_account(database_url, user_id="u1", name="Main Account", balance=Decimal("10"))
    reconciler = Reconciler(IngestSettings(database_url=database_url))

    recon = reconciler.reconcile_accounts(
        CTX, [ExtractedAccount(name="MAIN account", balance=Decimal("120.50"), currency="USD")]
    )

    assert (recon.accounts_created, recon.accounts_updated) == (0, 1)
    assert recon.default_account_id == existing
    row = get_account(database_url, existing)
    assert row.current_balance == Decimal("120.50")
    assert row.currency == "USD"
    assert row.name == "Main Account"


def test_aggregator_and_foreign_accounts_are_not_matched(database_url):
    add_account(
        database_url,
        user_id="u1",
        name="Main",
        origin=AccountOrigin.AGGREGATOR,
        external_item_id="item-1",
    )
    add_account(database_url, user_id="someone-else", name="Main")
    reconciler = Reconciler(IngestSettings(database_url=database_url))

    recon = reconciler.reconcile_accounts(CTX, [ExtractedAccount(name="Main", balance=Decimal("5"))])

    assert (recon.accounts_created, recon.accounts_updated) == (1, 0)
    created = get_account(database_url, recon.default_account_id)
    assert created.user_id == "u1"
    assert created.origin == AccountOrigin.MANUAL


def test_first_reconciled_account_owns_the_transactions(database_url):
    reconciler = Reconciler(IngestSettings(database_url=database_url))
    result = _result(
        accounts=[
            ExtractedAccount(name="Checking", balance=Decimal("1")),
            ExtractedAccount(name="Savings", balance=Decimal("2")),
        ],
        transactions=[_tx("Taxi", "-23.5"), _tx("Salary", "2000")],
    )

    summary = reconciler.save_extraction(CTX, result, source=TransactionSource.DOCUMENT)

    assert summary.success
    assert (summary.count, summary.accounts_created) == (2, 2)
    rows = list_transactions(database_url)
    owner = {r.account_id for r in rows}
    assert len(owner) == 1
    assert get_account(database_url, owner.pop()).name == "Checking"


def test_explicit_account_must_be_owned(database_url):
    foreign = add_account(database_url, user_id="someone-else", name="Theirs")
    reconciler = Reconciler(IngestSettings(database_url=database_url))

    with pytest.raises(AuthorizationError):
        reconciler.save_extraction(
            CTX,
            _result(transactions=[_tx("Taxi", "-23.5")]),
            source=TransactionSource.SPREADSHEET,
            account_id=foreign,
        )

    assert list_transactions(database_url) == []


def test_explicit_account_overrides_default(database_url):
    mine = add_account(database_url, user_id="u1", name="Business")
    reconciler = Reconciler(IngestSettings(database_url=database_url))

    reconciler.save_extraction(
        CTX,
        _result(
            accounts=[ExtractedAccount(name="Statement account", balance=Decimal("0"))],
            transactions=[_tx("Taxi", "-23.5")],
        ),
        source=TransactionSource.DOCUMENT,
        account_id=mine,
    )

    (row,) = list_transactions(database_url)
    assert row.account_id == mine


def test_accounts_only_extraction_is_a_success(database_url):
    reconciler = Reconciler(IngestSettings(database_url=database_url))

    summary = reconciler.save_extraction(
        CTX,
        _result(accounts=[ExtractedAccount(name="Main", balance=Decimal("7"))]),
        source=TransactionSource.DOCUMENT,
    )

    assert summary.success
    assert (summary.count, summary.accounts_created) == (0, 1)


def test_save_extraction_refuses_pull_sources(database_url):
    reconciler = Reconciler(IngestSettings(database_url=database_url))

    with pytest.raises(ValueError):
        reconciler.save_extraction(CTX, _result(), source=TransactionSource.AGGREGATOR)
