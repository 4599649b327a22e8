"""Per-record repair, classification and schema validation.

Takes the candidate list produced by :mod:`ledger_ingest.repair` and turns it
into validated :class:`CandidateTransaction` / :class:`ExtractedAccount`
objects. Invalid records are dropped one by one with a logged reason; the
batch is only rejected when nothing at all survives.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from pydantic import ValidationError

from .errors import ValidationFailure, bounded_excerpt
from .logging_setup import get_logger
from .models import CandidateTransaction, DroppedRecord, ExtractedAccount, ExtractionResult
from .repair import run_repair_chain

_logger = get_logger("ledger_ingest.validation")

PLACEHOLDER_DESCRIPTION = "Unlabelled transaction"
_PREVIEW_CHARS = 80

_YMD_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$")
_DMY_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")
_ISO_DATETIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]\d{2}:\d{2}")
_EPOCH_RE = re.compile(r"^\d{9,13}$")
_MS_THRESHOLD = 100_000_000_000  # above this an epoch number is in milliseconds

_CURRENCY_NOISE_RE = re.compile(r"[\u20ac$\u00a3\u00a5]|[A-Za-z]{3}|[\s\u00a0\u202f']")
_THOUSANDS_COMMA_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+$")

Kind = Literal["transaction", "account"]


# ---------------------------------------------------------------------------
# Field repair
# ---------------------------------------------------------------------------


def _epoch_to_iso(value: float) -> str:
    seconds = value / 1000 if value >= _MS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=UTC).date().isoformat()


def normalize_date(value: Any) -> Any:
    """Return ``YYYY-MM-DD`` for recognised formats; otherwise ``value`` unchanged.

    Recognised: epoch seconds or milliseconds (number or digit string),
    ``DD/MM/YYYY``, ``DD-MM-YYYY``, ``DD.MM.YYYY``, ``YYYY/MM/DD`` and ISO
    date-times. Day-first is assumed for ambiguous numeric dates.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        try:
            return _epoch_to_iso(float(value))
        except (OverflowError, OSError, ValueError):
            return value
    if not isinstance(value, str):
        return value

    s = value.strip()
    if _EPOCH_RE.match(s):
        try:
            return _epoch_to_iso(float(s))
        except (OverflowError, OSError, ValueError):
            return value
    m = _ISO_DATETIME_RE.match(s)
    if m:
        return m.group(1)
    m = _YMD_RE.match(s)
    if m:
        y, mo, d = m.groups()
        return f"{y}-{int(mo):02d}-{int(d):02d}"
    m = _DMY_RE.match(s)
    if m:
        d, mo, y = m.groups()
        return f"{y}-{int(mo):02d}-{int(d):02d}"
    return s


def coerce_amount(value: Any) -> Any:
    """Parse formatted numeric strings into ``Decimal``.

    Handles currency symbols/codes, space and apostrophe thousands separators,
    ``1.234,56`` vs ``1,234.56``, a lone decimal comma and parenthesised
    negatives. Unparseable input is returned unchanged for validation to reject.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int | float | Decimal):
        return Decimal(str(value))
    if not isinstance(value, str):
        return value

    s = value.strip()
    negative = s.startswith("(") and s.endswith(")")
    if negative:
        s = s[1:-1]
    s = _CURRENCY_NOISE_RE.sub("", s)
    if s.endswith("-") and not s.startswith("-"):
        negative, s = True, s[:-1]

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", "") if _THOUSANDS_COMMA_RE.match(s) else s.replace(",", ".")
    elif s.count(".") > 1:
        s = s.replace(".", "")

    try:
        d = Decimal(s)
    except InvalidOperation:
        return value
    return -d if negative else d


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    s = value if isinstance(value, str) else str(value)
    s = s.strip()
    return s or None


def repair_record(obj: Mapping[str, Any], kind: Kind, *, default_currency: str = "EUR") -> dict:
    """Return a repaired copy of ``obj`` ready for schema validation."""

    out = dict(obj)
    if kind == "transaction":
        if "date" in out:
            out["date"] = normalize_date(out["date"])
        out["description"] = _text_or_none(out.get("description")) or PLACEHOLDER_DESCRIPTION
        if "amount" in out:
            out["amount"] = coerce_amount(out["amount"])
        if isinstance(out.get("category"), str):
            out["category"] = out["category"].strip().upper()
    else:
        if "name" in out and out["name"] is not None and not isinstance(out["name"], str):
            out["name"] = str(out["name"])
        out["balance"] = coerce_amount(out.get("balance"))
        currency = _text_or_none(out.get("currency"))
        out["currency"] = currency.upper() if currency else default_currency
    return out


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(obj: Any) -> Kind | None:
    """Route an object by its keys, whichever array the model put it in."""

    if not isinstance(obj, Mapping):
        return None
    has_tx_keys = "date" in obj or "description" in obj
    if "name" in obj and "balance" in obj and not has_tx_keys:
        return "account"
    if has_tx_keys or "amount" in obj:
        return "transaction"
    return None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _preview(obj: Any) -> str:
    try:
        text = json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = repr(obj)
    return bounded_excerpt(text, _PREVIEW_CHARS)


def _first_error(exc: ValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "invalid"
    err = errs[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "record"
    return f"{loc}: {err.get('msg', 'invalid')}"


def validate_items(
    items: Iterable[Any], *, stage: str = "", default_currency: str = "EUR"
) -> ExtractionResult:
    """Classify, repair and validate every item.

    Raises :class:`ValidationFailure` (``no-usable-records``) when neither a
    transaction nor an account survives.
    """

    transactions: list[CandidateTransaction] = []
    accounts: list[ExtractedAccount] = []
    dropped: list[DroppedRecord] = []

    for obj in items:
        kind = classify(obj)
        if kind is None:
            dropped.append(DroppedRecord("unclassifiable", "unclassifiable", _preview(obj)))
            continue
        repaired = repair_record(obj, kind, default_currency=default_currency)
        try:
            if kind == "transaction":
                transactions.append(CandidateTransaction.model_validate(repaired))
            else:
                accounts.append(ExtractedAccount.model_validate(repaired))
        except ValidationError as e:
            dropped.append(DroppedRecord(kind, _first_error(e), _preview(obj)))

    for d in dropped:
        _logger.warning(
            "validation:dropped kind=%s reason=%s preview=%s", d.kind, d.reason, d.preview
        )
    _logger.info(
        "validation:done stage=%s transactions=%d accounts=%d dropped=%d",
        stage,
        len(transactions),
        len(accounts),
        len(dropped),
    )

    if not transactions and not accounts:
        raise ValidationFailure(
            "no-usable-records",
            f"no usable records after validation ({len(dropped)} dropped)",
        )
    return ExtractionResult(
        transactions=tuple(transactions),
        accounts=tuple(accounts),
        dropped=tuple(dropped),
        stage=stage,
    )


def parse_extraction(raw: str, *, default_currency: str = "EUR") -> ExtractionResult:
    """Full pipeline: repair chain, then per-record repair and validation."""

    outcome = run_repair_chain(raw)
    return validate_items(outcome.items, stage=outcome.stage, default_currency=default_currency)


__all__ = [
    "PLACEHOLDER_DESCRIPTION",
    "classify",
    "coerce_amount",
    "normalize_date",
    "parse_extraction",
    "repair_record",
    "validate_items",
]
