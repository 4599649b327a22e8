"""Payment-processor adapter (Stripe-shaped balance transactions).

There is no cursor: each run pages from the newest entry with
``starting_after`` and stops at ``max_records``. Entries carry a stable id, so
re-fetching what an earlier run already stored only produces duplicate skips.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..logging_setup import get_logger
from ._http import JsonHttpClient

_logger = get_logger("ledger_ingest.adapters.processor")


class ProcessorClient(JsonHttpClient):
    """Bearer-authenticated client for the processor API."""

    service_name = "processor"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.stripe.com",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    def list_balance_transactions(
        self, *, limit: int, starting_after: str | None = None
    ) -> tuple[list[dict[str, Any]], bool]:
        params: dict[str, Any] = {"limit": limit}
        if starting_after:
            params["starting_after"] = starting_after
        data = self._request("GET", "/v1/balance_transactions", params=params)
        entries = [e for e in data.get("data") or [] if isinstance(e, dict)]
        return entries, bool(data.get("has_more", False))

    def verify(self) -> dict[str, Any]:
        """Check the key against ``/v1/balance``; raises when it is rejected."""

        return self._request("GET", "/v1/balance")


class ProcessorAdapter:
    def __init__(
        self, client: ProcessorClient, *, page_size: int = 100, max_records: int = 100
    ) -> None:
        self._client = client
        self._page_size = page_size
        self._max_records = max_records

    def fetch(self) -> list[dict[str, Any]]:
        """Return up to ``max_records`` entries, newest first."""

        out: list[dict[str, Any]] = []
        starting_after: str | None = None
        while len(out) < self._max_records:
            limit = min(self._page_size, self._max_records - len(out))
            entries, has_more = self._client.list_balance_transactions(
                limit=limit, starting_after=starting_after
            )
            out.extend(entries)
            _logger.info(
                "processor:page entries=%d total=%d has_more=%s", len(entries), len(out), has_more
            )
            if not has_more or len(entries) < limit:
                break
            last_id = entries[-1].get("id")
            if not last_id:
                break
            starting_after = str(last_id)
        return out[: self._max_records]


__all__ = ["ProcessorAdapter", "ProcessorClient"]
