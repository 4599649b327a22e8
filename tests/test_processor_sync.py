# ruff: noqa: I001
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from db.models.ledger import Category, Direction, TransactionSource
from ledger_ingest.adapters.processor import ProcessorAdapter, ProcessorClient
from ledger_ingest.config import IngestSettings
from ledger_ingest.errors import InputRejected
from ledger_ingest.reconcile import IngestContext, Reconciler

from tests.helpers.db import count_transactions, list_transactions
from tests.helpers.http_stub import FakeProcessor, stripe_entry


CTX = IngestContext(user_id="u1", company_id="co1")


# ---- Helpers -----------------------------------------------------------------


def _reconciler(database_url: str, fake: FakeProcessor, **overrides) -> Reconciler:
    settings = IngestSettings(database_url=database_url)
    if overrides:
        settings = settings.with_overrides(**overrides)

    def factory(api_key: str) -> ProcessorClient:
        return ProcessorClient(api_key=api_key, transport=fake.transport())

    return Reconciler(settings, processor_client_factory=factory)


def _entries() -> list[dict]:
    return [
        stripe_entry("txn_1", amount=5000, entry_type="charge", description="Invoice 42"),
        stripe_entry("txn_2", amount=-175, entry_type="stripe_fee", description="Stripe processing fees"),
        stripe_entry("txn_3", amount=-3000, entry_type="payout", description=None),
    ]


# ---- connect -----------------------------------------------------------------


def test_connect_verifies_key_before_storing(database_url):
    fake = FakeProcessor(_entries())
    reconciler = _reconciler(database_url, fake)

    with pytest.raises(InputRejected) as ei:
        reconciler.connect_processor(CTX, "sk_test_wrong")

    assert ei.value.reason == "processor-unauthorized"
    assert reconciler.connections.get("u1") is None

    info = reconciler.connect_processor(CTX, "sk_test_ok")
    assert info.provider == "stripe"
    assert reconciler.connections.get("u1").api_key == "sk_test_ok"
    assert fake.requests[-1].url.path == "/v1/balance"


def test_connect_replaces_existing_key(database_url):
    fake = FakeProcessor(valid_key="sk_test_ok")
    reconciler = _reconciler(database_url, fake)
    first = reconciler.connect_processor(CTX, "sk_test_ok")

    fake.valid_key = "sk_test_new"
    second = reconciler.connect_processor(CTX, "sk_test_new")

    assert second.id == first.id
    assert reconciler.connections.get("u1").api_key == "sk_test_new"


def test_connect_rejects_blank_key(database_url):
    with pytest.raises(InputRejected) as ei:
        _reconciler(database_url, FakeProcessor()).connect_processor(CTX, "   ")
    assert ei.value.reason == "empty-credential"


# ---- sync --------------------------------------------------------------------


def test_sync_without_connection_is_rejected(database_url):
    with pytest.raises(InputRejected) as ei:
        _reconciler(database_url, FakeProcessor()).sync_processor(CTX)
    assert ei.value.reason == "processor-not-connected"


def test_sync_maps_direction_and_category(database_url):
    fake = FakeProcessor(_entries())
    reconciler = _reconciler(database_url, fake)
    reconciler.connect_processor(CTX, "sk_test_ok")

    summary = reconciler.sync_processor(CTX)

    assert summary.success
    assert summary.count == 3
    rows = {r.external_id: r for r in list_transactions(database_url)}
    assert (rows["txn_1"].direction, rows["txn_1"].category) == (Direction.INCOME, Category.SERVICES)
    assert rows["txn_1"].amount == Decimal("50.00")
    assert (rows["txn_2"].direction, rows["txn_2"].category) == (Direction.EXPENSE, Category.TAX)
    assert rows["txn_2"].amount == Decimal("1.75")
    assert (rows["txn_3"].direction, rows["txn_3"].category) == (Direction.EXPENSE, Category.OTHER)
    assert rows["txn_3"].description == "Stripe payout"
    assert all(r.source == TransactionSource.PROCESSOR for r in rows.values())
    assert all(r.date == date(2024, 12, 14) for r in rows.values())
    assert all(r.account_id is None for r in rows.values())

    assert reconciler.connections.get("u1").last_synced_at is not None


def test_resync_skips_already_imported_entries(database_url):
    fake = FakeProcessor(_entries())
    reconciler = _reconciler(database_url, fake)
    reconciler.connect_processor(CTX, "sk_test_ok")
    reconciler.sync_processor(CTX)

    fake.entries.insert(0, stripe_entry("txn_0", amount=1200))
    summary = reconciler.sync_processor(CTX)

    assert summary.count == 1
    assert summary.skipped == 3
    assert count_transactions(database_url) == 4


def test_sync_is_capped_per_run(database_url):
    fake = FakeProcessor([stripe_entry(f"txn_{i}") for i in range(5)])
    reconciler = _reconciler(database_url, fake, processor_max_records=2)
    reconciler.connect_processor(CTX, "sk_test_ok")

    summary = reconciler.sync_processor(CTX)

    assert summary.count == 2
    assert {r.external_id for r in list_transactions(database_url)} == {"txn_0", "txn_1"}


def test_malformed_entry_is_reported_and_others_are_written(database_url):
    broken = stripe_entry("txn_broken")
    broken["created"] = "yesterday"
    fake = FakeProcessor([stripe_entry("txn_ok"), broken])
    reconciler = _reconciler(database_url, fake)
    reconciler.connect_processor(CTX, "sk_test_ok")

    summary = reconciler.sync_processor(CTX)

    assert not summary.success
    assert summary.count == 1
    assert summary.errors[0].startswith("txn_broken:")


def test_out_of_range_created_does_not_abort_the_run(database_url):
    fake = FakeProcessor(
        [stripe_entry("txn_ok"), stripe_entry("txn_far_future", created=10**20)]
    )
    reconciler = _reconciler(database_url, fake)
    reconciler.connect_processor(CTX, "sk_test_ok")

    summary = reconciler.sync_processor(CTX)

    assert not summary.success
    assert summary.count == 1
    assert summary.errors == (f"txn_far_future: created out of range: {10**20!r}",)
    assert {r.external_id for r in list_transactions(database_url)} == {"txn_ok"}


# ---- adapter paging ----------------------------------------------------------


def test_adapter_pages_with_starting_after():
    fake = FakeProcessor([stripe_entry(f"txn_{i}") for i in range(5)])
    with ProcessorClient(api_key="sk_test_ok", transport=fake.transport()) as client:
        entries = ProcessorAdapter(client, page_size=2, max_records=10).fetch()

    assert [e["id"] for e in entries] == [f"txn_{i}" for i in range(5)]
    afters = [r.url.params.get("starting_after") for r in fake.requests]
    assert afters == [None, "txn_1", "txn_3"]
