from __future__ import annotations

from db.models.ledger import AccountOrigin
from ledger_ingest.cursors import SyncCursorStore
from tests.helpers.db import add_account, get_account


def _account(database_url: str, cursor: str | None) -> str:
    return add_account(
        database_url,
        user_id="u1",
        name="Checking",
        origin=AccountOrigin.AGGREGATOR,
        external_item_id="item-1",
        access_token="tok",
        sync_cursor=cursor,
    )


def test_advance_is_compare_and_set(database_url):
    account_id = _account(database_url, None)
    store = SyncCursorStore(database_url=database_url)

    assert store.advance(account_id, expected=None, new="c1")
    # A concurrent run that still believes the cursor is unset loses
    assert not store.advance(account_id, expected=None, new="c9")
    assert store.advance(account_id, expected="c1", new="c2")

    assert get_account(database_url, account_id).sync_cursor == "c2"


def test_advance_refuses_empty_cursor(database_url):
    account_id = _account(database_url, "c1")
    store = SyncCursorStore(database_url=database_url)

    assert not store.advance(account_id, expected="c1", new="")
    assert get_account(database_url, account_id).sync_cursor == "c1"


def test_load_returns_position(database_url):
    account_id = _account(database_url, "c5")

    position = SyncCursorStore(database_url=database_url).load("u1", account_id)

    assert (position.access_token, position.cursor, position.item_id) == ("tok", "c5", "item-1")
