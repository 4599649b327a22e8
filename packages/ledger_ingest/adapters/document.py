"""PDF statement adapter.

Input checks run before any parsing so oversized or mistyped uploads never
reach ``pdfplumber``. Text is read page by page, checked for a minimum length
(a scanned statement without a text layer yields almost nothing) and capped
before the single model call.
"""

from __future__ import annotations

import io

import pdfplumber

from ..config import IngestSettings
from ..errors import ExtractionFailure, InputRejected
from ..extraction_client import ExtractionClient
from ..logging_setup import get_logger
from ..normalizer import response_text

_logger = get_logger("ledger_ingest.adapters.document")

ALLOWED_MIME_TYPES: frozenset[str] = frozenset({"application/pdf"})
PDF_MAGIC = b"%PDF-"
TRUNCATION_MARKER = "\n\n[... text truncated ...]"


def read_pdf_pages(data: bytes) -> list[str]:
    """Return the text of every page, ``""`` for pages without a text layer."""

    with pdfplumber.open(io.BytesIO(data)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


class DocumentAdapter:
    """Turn PDF bytes into raw model output for the repair pipeline."""

    def __init__(
        self, settings: IngestSettings, *, client: ExtractionClient | None = None
    ) -> None:
        self._settings = settings
        self._client = client

    def check(self, data: bytes, filename: str | None, mime_type: str | None) -> None:
        """Raise :class:`InputRejected` for payloads that must not be parsed."""

        if not data:
            raise InputRejected("empty-document", "document is empty")
        if len(data) > self._settings.max_document_bytes:
            raise InputRejected(
                "document-too-large",
                f"document is {len(data)} bytes; limit is {self._settings.max_document_bytes}",
            )
        mime = (mime_type or "").split(";", 1)[0].strip().lower()
        named_pdf = bool(filename) and filename.lower().endswith(".pdf")
        if mime not in ALLOWED_MIME_TYPES and not named_pdf:
            raise InputRejected(
                "unsupported-mime-type", f"unsupported document type: {mime or 'unknown'}"
            )
        if not data.startswith(PDF_MAGIC):
            raise InputRejected("not-a-pdf", "payload is not a PDF document")

    def extract_text(
        self, data: bytes, *, filename: str | None = None, mime_type: str | None = None
    ) -> str:
        """Validate, read and cap the statement text."""

        self.check(data, filename, mime_type)
        try:
            pages = read_pdf_pages(data)
        except Exception as e:  # noqa: BLE001 - pdfminer raises a wide range of types
            _logger.warning("document:unreadable error=%s", e.__class__.__name__)
            raise ExtractionFailure("document-unreadable", "PDF could not be read") from e

        text = "\n\n".join(p.strip() for p in pages if p.strip())
        _logger.info("document:text pages=%d chars=%d", len(pages), len(text))

        if len(text.strip()) < self._settings.min_viable_text_chars:
            raise ExtractionFailure(
                "document-not-viable",
                "document has no readable text layer (scanned image?)",
            )
        if len(text) > self._settings.max_text_chars:
            _logger.info(
                "document:truncated chars=%d limit=%d", len(text), self._settings.max_text_chars
            )
            text = text[: self._settings.max_text_chars] + TRUNCATION_MARKER
        return text

    def extract(
        self, data: bytes, *, filename: str | None = None, mime_type: str | None = None
    ) -> str:
        """Return the raw model output for a PDF statement."""

        text = self.extract_text(data, filename=filename, mime_type=mime_type)
        resp = self._get_client().extract(
            text, kind="document", model=self._settings.document_model
        )
        return response_text(resp)

    def _get_client(self) -> ExtractionClient:
        if self._client is None:
            self._client = ExtractionClient(
                api_key=self._settings.openai_api_key,
                timeout=self._settings.openai_timeout_seconds,
            )
        return self._client


__all__ = ["ALLOWED_MIME_TYPES", "DocumentAdapter", "TRUNCATION_MARKER", "read_pdf_pages"]
