"""Bank-aggregator adapter (Plaid-shaped ``/transactions/sync``).

The feed is cursor based: each call returns the changes since ``cursor`` plus
a ``next_cursor``. :class:`AggregatorAdapter` walks pages strictly one after
another and yields each page so the caller can persist it and advance the
stored cursor before the next request.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..logging_setup import get_logger
from ._http import JsonHttpClient

_logger = get_logger("ledger_ingest.adapters.aggregator")


@dataclass(frozen=True, slots=True)
class SyncPage:
    added: list[dict[str, Any]]
    next_cursor: str
    has_more: bool
    modified: list[dict[str, Any]] = field(default_factory=list)
    removed: list[dict[str, Any]] = field(default_factory=list)


def _dict_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


class AggregatorClient(JsonHttpClient):
    """Credentialed client for the aggregator API."""

    service_name = "aggregator"

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str | None,
        secret: str | None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, transport=transport)
        self._client_id = client_id
        self._secret = secret

    def sync(self, access_token: str, cursor: str | None, *, count: int = 100) -> SyncPage:
        """Fetch one page of changes after ``cursor`` (``None`` backfills)."""

        body: dict[str, Any] = {
            "client_id": self._client_id,
            "secret": self._secret,
            "access_token": access_token,
            "count": count,
        }
        if cursor:
            body["cursor"] = cursor
        data = self._request("POST", "/transactions/sync", json=body)
        return SyncPage(
            added=_dict_items(data.get("added")),
            modified=_dict_items(data.get("modified")),
            removed=_dict_items(data.get("removed")),
            next_cursor=str(data.get("next_cursor") or ""),
            has_more=bool(data.get("has_more", False)),
        )


class AggregatorAdapter:
    """Sequential pager over :meth:`AggregatorClient.sync`."""

    def __init__(
        self, client: AggregatorClient, *, page_size: int = 100, max_records: int = 500
    ) -> None:
        self._client = client
        self._page_size = page_size
        self._max_records = max_records

    def iter_pages(self, access_token: str, cursor: str | None) -> Iterator[SyncPage]:
        """Yield pages until the feed is drained or the per-run cap is reached."""

        pulled = 0
        while True:
            count = max(1, min(self._page_size, self._max_records - pulled))
            page = self._client.sync(access_token, cursor, count=count)
            pulled += len(page.added)
            _logger.info(
                "aggregator:page added=%d modified=%d removed=%d has_more=%s",
                len(page.added),
                len(page.modified),
                len(page.removed),
                page.has_more,
            )
            yield page
            if not page.has_more or not page.next_cursor:
                return
            if pulled >= self._max_records:
                _logger.info("aggregator:cap_reached pulled=%d cap=%d", pulled, self._max_records)
                return
            cursor = page.next_cursor


__all__ = ["AggregatorAdapter", "AggregatorClient", "SyncPage"]
