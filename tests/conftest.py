"""Pytest configuration for test isolation.

Makes ``packages/`` and ``libs/db/src`` importable when the project is not
installed, and resets logging and cached engines around every test so tests
don't share handlers or SQLite connections.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
for _p in (_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep developer ``.env`` values and cached engines out of tests."""

    from db.client import dispose_engines
    from ledger_ingest.logging_setup import reset_logging

    for name in ("DATABASE_URL", "OPENAI_API_KEY", "PLAID_CLIENT_ID", "PLAID_SECRET", "PLAID_ENV"):
        monkeypatch.delenv(name, raising=False)
    yield
    reset_logging()
    dispose_engines()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    from tests.helpers.db import bootstrap_sqlite_db

    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite")
