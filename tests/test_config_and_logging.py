from __future__ import annotations

import io
import logging

import pytest

from ledger_ingest.config import IngestSettings
from ledger_ingest.logging_setup import configure_logging, get_logger


def test_defaults_without_environment():
    s = IngestSettings.from_env()

    assert s.database_url is None
    assert s.max_document_bytes == 10 * 1024 * 1024
    assert s.min_viable_text_chars == 50
    assert s.aggregator_base_url == "https://sandbox.plaid.com"
    assert s.default_currency == "EUR"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///x.db")
    monkeypatch.setenv("PLAID_ENV", "Production")
    monkeypatch.setenv("PLAID_SECRET", "shh")
    monkeypatch.setenv("LEDGER_INGEST_MAX_TEXT_CHARS", "2000")
    monkeypatch.setenv("LEDGER_INGEST_DEFAULT_CURRENCY", "usd")

    s = IngestSettings.from_env()

    assert s.database_url == "sqlite+pysqlite:///x.db"
    assert s.aggregator_base_url == "https://production.plaid.com"
    assert s.max_text_chars == 2000
    assert s.default_currency == "USD"
    # Secrets stay out of reprs and logs
    assert "shh" not in repr(s)


@pytest.mark.parametrize(
    "name, value",
    [
        ("LEDGER_INGEST_MAX_TEXT_CHARS", "lots"),
        ("LEDGER_INGEST_AGGREGATOR_PAGE_SIZE", "0"),
        ("LEDGER_INGEST_HTTP_TIMEOUT_SECONDS", "-1"),
        ("PLAID_ENV", "staging"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        IngestSettings.from_env()


def test_configure_logging_is_idempotent_and_uses_event_format():
    buf = io.StringIO()
    configure_logging("DEBUG", fmt="%(levelname)s %(message)s", stream=buf)
    configure_logging("ERROR", stream=io.StringIO())

    get_logger("ledger_ingest.test").info("test:event key=%s", "v")

    assert buf.getvalue().strip() == "INFO test:event key=v"
    handlers = [
        h for h in logging.getLogger("ledger_ingest").handlers if not isinstance(h, logging.NullHandler)
    ]
    assert len(handlers) == 1
