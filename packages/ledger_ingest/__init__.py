"""ledger_ingest: turn statements and provider feeds into ledger rows.

See :mod:`ledger_ingest.api` for the public surface.
"""

from .api import (
    IngestContext,
    IngestSettings,
    Reconciler,
    RunSummary,
    SyncSummary,
    default_reconciler,
)
from .errors import (
    AuthorizationError,
    ExtractionFailure,
    IngestionError,
    InputRejected,
    ReconciliationError,
    ValidationFailure,
)

__all__ = [
    "AuthorizationError",
    "ExtractionFailure",
    "IngestContext",
    "IngestSettings",
    "IngestionError",
    "InputRejected",
    "Reconciler",
    "ReconciliationError",
    "RunSummary",
    "SyncSummary",
    "ValidationFailure",
    "default_reconciler",
]
