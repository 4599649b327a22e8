"""Error taxonomy for ``ledger_ingest``.

Every failure carries a short machine-readable ``reason`` code (for example
``"document-too-large"`` or ``"unparseable-response"``) and a human readable
``detail``. Failures caused by model output may also carry a bounded
``excerpt`` of the offending text. The excerpt is for server-side diagnostics
only and is never part of ``str(exc)``, so it does not leak to end users.
"""

from __future__ import annotations

_EXCERPT_LIMIT = 200


def bounded_excerpt(text: str | None, limit: int = _EXCERPT_LIMIT) -> str:
    """Return at most ``limit`` characters of ``text`` with an ellipsis marker."""

    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


class IngestionError(Exception):
    """Base class for all ingestion failures."""

    def __init__(self, reason: str, detail: str | None = None, *, excerpt: str | None = None):
        self.reason = reason
        self.detail = detail or reason
        self.excerpt = bounded_excerpt(excerpt) if excerpt else None
        super().__init__(self.detail)

    def __str__(self) -> str:
        if self.detail == self.reason:
            return self.reason
        return f"{self.reason}: {self.detail}"


class InputRejected(IngestionError):
    """Payload refused before any parsing (size, type, emptiness)."""


class ExtractionFailure(IngestionError):
    """The source or the model produced nothing usable."""


class ValidationFailure(ExtractionFailure):
    """Output parsed, but no record survived validation."""


class ReconciliationError(IngestionError):
    """A single record could not be written. Recovered per record."""


class AuthorizationError(IngestionError):
    """The caller referenced an account or connection it does not own."""


__all__ = [
    "AuthorizationError",
    "ExtractionFailure",
    "IngestionError",
    "InputRejected",
    "ReconciliationError",
    "ValidationFailure",
    "bounded_excerpt",
]
