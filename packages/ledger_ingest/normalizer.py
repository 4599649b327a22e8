"""Normalize provider payloads into pipeline inputs.

- :func:`response_text` pulls the raw text out of an OpenAI Responses result
  (any SDK shape) without interpreting it.
- :func:`from_aggregator` and :func:`from_processor` map one Plaid-shaped or
  Stripe-shaped record to an :class:`ExternalTransaction` using the ledger
  sign convention (negative is an outflow).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .categorizer import PROCESSOR_EXPENSE_TYPES
from .errors import ExtractionFailure
from .models import ExternalTransaction


def response_text(resp: Any) -> str:
    """Return the text output of a Responses API result.

    Prefers ``resp.output_text``; falls back to ``resp.output[0].content[0].text``
    (a plain string, or an object exposing ``value`` on some SDK versions).
    """

    text = getattr(resp, "output_text", None)
    if isinstance(text, str) and text:
        return text

    output = getattr(resp, "output", None)
    if output:
        content = getattr(output[0], "content", None)
        if content:
            txt_obj = getattr(content[0], "text", None)
            if isinstance(txt_obj, str) and txt_obj:
                return txt_obj
            maybe_val = getattr(txt_obj, "value", None)
            if isinstance(maybe_val, str) and maybe_val:
                return maybe_val
    raise ExtractionFailure("empty-response", "model returned no text output")


def _decimal(raw: Any, *, field: str) -> Decimal:
    if isinstance(raw, bool):
        raise ValueError(f"{field} is not a number")
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{field} is not a number: {raw!r}") from e
    if not d.is_finite():
        raise ValueError(f"{field} is not finite")
    return d


def _str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def from_aggregator(item: Mapping[str, Any]) -> ExternalTransaction:
    """Map one ``/transactions/sync`` item.

    The aggregator reports money leaving the account as a positive amount, so
    the sign is flipped here. Error messages do not repeat the transaction
    id; callers prefix it.
    """

    external_id = _str_or_none(item.get("transaction_id"))
    if external_id is None:
        raise ValueError("missing transaction_id")
    amount = -_decimal(item.get("amount"), field="amount")

    raw_date = _str_or_none(item.get("date"))
    if raw_date is None:
        raise ValueError("missing date")
    try:
        tx_date = date.fromisoformat(raw_date[:10])
    except ValueError as e:
        raise ValueError(f"invalid date {raw_date[:10]!r}") from e

    pfc = item.get("personal_finance_category")
    hint: str | list[str] | None = None
    if isinstance(pfc, Mapping) and _str_or_none(pfc.get("primary")):
        hint = str(pfc["primary"])
    elif isinstance(item.get("category"), list):
        hint = [str(c) for c in item["category"] if c is not None]
    elif isinstance(item.get("category"), str):
        hint = item["category"]

    description = (
        _str_or_none(item.get("name")) or _str_or_none(item.get("merchant_name")) or "Bank transaction"
    )
    currency = _str_or_none(item.get("iso_currency_code") or item.get("unofficial_currency_code"))
    return ExternalTransaction(
        external_id=external_id,
        date=tx_date,
        description=description,
        amount=amount,
        category_hint=hint,
        pending=bool(item.get("pending", False)),
        currency=currency.upper() if currency else None,
    )


def from_processor(entry: Mapping[str, Any]) -> ExternalTransaction:
    """Map one balance-transaction entry (amount in minor units, epoch ``created``)."""

    external_id = _str_or_none(entry.get("id"))
    if external_id is None:
        raise ValueError("missing id")
    minor = _decimal(entry.get("amount"), field="amount")
    record_type = _str_or_none(entry.get("type")) or ""
    magnitude = abs(minor) / Decimal(100)
    amount = -magnitude if record_type in PROCESSOR_EXPENSE_TYPES else magnitude

    created = entry.get("created")
    if isinstance(created, bool) or not isinstance(created, int | float):
        raise ValueError("created is not an epoch timestamp")
    try:
        tx_date = datetime.fromtimestamp(created, tz=UTC).date()
    except (OverflowError, OSError, ValueError) as e:
        raise ValueError(f"created out of range: {created!r}") from e

    currency = _str_or_none(entry.get("currency"))
    return ExternalTransaction(
        external_id=external_id,
        date=tx_date,
        description=_str_or_none(entry.get("description")) or f"Stripe {record_type or 'transaction'}",
        amount=amount,
        category_hint=None,
        pending=False,
        currency=currency.upper() if currency else None,
        record_type=record_type,
    )


__all__ = ["from_aggregator", "from_processor", "response_text"]
