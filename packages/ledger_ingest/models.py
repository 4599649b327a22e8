"""Data models shared across the ingestion pipeline.

Two kinds of objects live here:

- Ephemeral candidates produced by adapters and the repair pipeline
  (:class:`CandidateTransaction`, :class:`ExtractedAccount`,
  :class:`ExternalTransaction`). They exist for one run only.
- Run outputs (:class:`ExtractionResult`, :class:`BatchResult`,
  :class:`RunSummary`, :class:`SyncSummary`).

The pydantic models are the schema boundary between untrusted model output
and the canonical ledger rows in ``db.models.ledger``: nothing downstream
re-checks shape.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date as date_cls
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from db.models.ledger import Category

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _finite_decimal(v: Any) -> Decimal:
    # bool is an int subclass; a JSON true must not become an amount of 1
    if isinstance(v, bool) or v is None:
        raise ValueError("must be a number")
    if isinstance(v, float) and not math.isfinite(v):
        raise ValueError("must be finite")
    try:
        d = v if isinstance(v, Decimal) else Decimal(str(v))
    except ArithmeticError as e:
        raise ValueError("must be a number") from e
    if not d.is_finite():
        raise ValueError("must be finite")
    return d


# ---------------------------------------------------------------------------
# Candidates (schema boundary)
# ---------------------------------------------------------------------------


class CandidateTransaction(BaseModel):
    """A transaction extracted from a document or spreadsheet.

    ``amount`` is signed: negative is an outflow.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, str_strip_whitespace=True)

    date: date_cls
    description: str
    amount: Decimal
    category: Category

    @field_validator("date", mode="before")
    @classmethod
    def _strict_iso_date(cls, v: Any) -> date_cls:
        if isinstance(v, date_cls):
            return v
        if not isinstance(v, str) or not _ISO_DATE_RE.match(v.strip()):
            raise ValueError("date must be YYYY-MM-DD")
        # fromisoformat rejects impossible dates such as 2024-02-30
        return date_cls.fromisoformat(v.strip())

    @field_validator("description")
    @classmethod
    def _non_empty_description(cls, v: str) -> str:
        if not v:
            raise ValueError("description must be non-empty")
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def _finite_amount(cls, v: Any) -> Decimal:
        return _finite_decimal(v)

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v: Any) -> Category:
        if v is None:
            raise ValueError("category is required")
        s = str(v).strip().upper()
        try:
            return Category(s)
        except ValueError as e:
            raise ValueError(f"category not in enumeration: {s!r}") from e


class ExtractedAccount(BaseModel):
    """A bank account (name + balance) read from a statement."""

    model_config = ConfigDict(extra="ignore", frozen=True, str_strip_whitespace=True)

    name: str
    balance: Decimal
    currency: str = "EUR"

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, v: str) -> str:
        if not v:
            raise ValueError("name must be non-empty")
        return v

    @field_validator("balance", mode="before")
    @classmethod
    def _finite_balance(cls, v: Any) -> Decimal:
        return _finite_decimal(v)

    @field_validator("currency")
    @classmethod
    def _iso_currency(cls, v: str) -> str:
        s = v.upper()
        if not _CURRENCY_RE.match(s):
            raise ValueError(f"currency must be a 3-letter code: {v!r}")
        return s


@dataclass(frozen=True, slots=True)
class ExternalTransaction:
    """Normalized record from the aggregator or processor feed.

    ``amount`` uses the ledger sign convention (negative is an outflow)
    regardless of the upstream convention.
    """

    external_id: str
    date: date_cls
    description: str
    amount: Decimal
    category_hint: str | list[str] | None = None
    pending: bool = False
    currency: str | None = None
    record_type: str | None = None


# ---------------------------------------------------------------------------
# Run outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DroppedRecord:
    """A parsed object that did not survive validation."""

    kind: str  # "transaction" | "account" | "unclassifiable"
    reason: str
    preview: str


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Validated output of the repair pipeline for one model response."""

    transactions: tuple[CandidateTransaction, ...]
    accounts: tuple[ExtractedAccount, ...]
    dropped: tuple[DroppedRecord, ...] = ()
    stage: str = ""


@dataclass(slots=True)
class BatchResult:
    """Outcome of writing one batch of transactions."""

    count: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: BatchResult) -> None:
        self.count += other.count
        self.skipped += other.skipped
        self.errors.extend(other.errors)


@dataclass(frozen=True, slots=True)
class AccountReconciliation:
    accounts_created: int = 0
    accounts_updated: int = 0
    default_account_id: str | None = None
    errors: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Result of a document, spreadsheet or processor run."""

    success: bool
    count: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    accounts_created: int = 0
    accounts_updated: int = 0


@dataclass(frozen=True, slots=True)
class SyncSummary:
    """Result of an aggregator sync run."""

    success: bool
    count: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    accounts_created: int = 0
    accounts_updated: int = 0
    cursor_advanced: bool = False
    pages: int = 0
    pending_skipped: int = 0

    @property
    def added_count(self) -> int:
        return self.count


__all__ = [
    "AccountReconciliation",
    "BatchResult",
    "CandidateTransaction",
    "DroppedRecord",
    "ExternalTransaction",
    "ExtractedAccount",
    "ExtractionResult",
    "RunSummary",
    "SyncSummary",
]
