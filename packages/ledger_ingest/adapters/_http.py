"""Thin synchronous JSON-over-HTTP base for the pull-source clients.

Requests are made once: there is no retry or backoff here. Transport errors
become :class:`ExtractionFailure` with a ``<service>-timeout`` or
``<service>-error`` reason; rejected credentials become
``InputRejected("<service>-unauthorized")``.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..errors import ExtractionFailure, InputRejected
from ..logging_setup import get_logger

_logger = get_logger("ledger_ingest.adapters.http")


def _upstream_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    # Plaid: {"error_code": ...}; Stripe: {"error": {"code": ...}}
    if isinstance(body.get("error_code"), str):
        return body["error_code"]
    err = body.get("error")
    if isinstance(err, dict) and isinstance(err.get("code"), str):
        return err["code"]
    return None


class JsonHttpClient:
    """Base class holding one ``httpx.Client`` per upstream service."""

    service_name: str = "http"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        name = self.service_name
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            _logger.error("%s:timeout method=%s path=%s", name, method, path)
            raise ExtractionFailure(f"{name}-timeout", f"{name} request timed out") from e
        except httpx.HTTPError as e:
            _logger.error(
                "%s:transport_error method=%s path=%s error=%s",
                name,
                method,
                path,
                e.__class__.__name__,
            )
            raise ExtractionFailure(f"{name}-error", f"{name} request failed: {e}") from e

        if response.status_code in (401, 403):
            raise InputRejected(
                f"{name}-unauthorized", f"{name} rejected the stored credential"
            )
        if response.is_error:
            code = _upstream_code(response)
            _logger.error(
                "%s:http_error method=%s path=%s status=%d code=%s",
                name,
                method,
                path,
                response.status_code,
                code,
            )
            raise ExtractionFailure(
                f"{name}-error",
                f"{name} returned HTTP {response.status_code}" + (f" ({code})" if code else ""),
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionFailure(f"{name}-error", f"{name} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise ExtractionFailure(f"{name}-error", f"{name} returned a non-object body")
        return body


__all__ = ["JsonHttpClient"]
