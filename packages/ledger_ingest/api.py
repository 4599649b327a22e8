"""Public import surface for ``ledger_ingest``.

Host applications construct one :class:`Reconciler` per database and call its
run methods with an :class:`IngestContext`. The functions below are thin
conveniences for one-off calls that build the reconciler from the
environment.
"""

from __future__ import annotations

from db.models.ledger import Category, Direction, TransactionSource

from .categorizer import categorize_hint, categorize_processor_entry
from .config import IngestSettings
from .errors import (
    AuthorizationError,
    ExtractionFailure,
    IngestionError,
    InputRejected,
    ReconciliationError,
    ValidationFailure,
)
from .models import (
    CandidateTransaction,
    DroppedRecord,
    ExtractedAccount,
    ExtractionResult,
    RunSummary,
    SyncSummary,
)
from .reconcile import ConfirmCallback, IngestContext, Reconciler
from .repair import REPAIR_STAGES, run_repair_chain
from .validation import parse_extraction


def default_reconciler(settings: IngestSettings | None = None) -> Reconciler:
    """Build a :class:`Reconciler` from ``settings`` or the environment."""

    return Reconciler(settings or IngestSettings.from_env())


def sync_aggregator_account(ctx: IngestContext, account_id: str) -> SyncSummary:
    return default_reconciler().sync_aggregator_account(ctx, account_id)


def sync_processor(ctx: IngestContext) -> RunSummary:
    return default_reconciler().sync_processor(ctx)


__all__ = [
    "REPAIR_STAGES",
    "AuthorizationError",
    "CandidateTransaction",
    "Category",
    "ConfirmCallback",
    "Direction",
    "DroppedRecord",
    "ExtractedAccount",
    "ExtractionFailure",
    "ExtractionResult",
    "IngestContext",
    "IngestSettings",
    "IngestionError",
    "InputRejected",
    "Reconciler",
    "ReconciliationError",
    "RunSummary",
    "SyncSummary",
    "TransactionSource",
    "ValidationFailure",
    "categorize_hint",
    "categorize_processor_entry",
    "default_reconciler",
    "parse_extraction",
    "run_repair_chain",
    "sync_aggregator_account",
    "sync_processor",
]
