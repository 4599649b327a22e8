"""Delimited-text statement adapter.

Bank exports disagree on delimiters, headers and number formats, so rows are
only split and cleaned here; interpreting columns is left to the model, whose
output goes through the same repair pipeline as the document path.
"""

from __future__ import annotations

import csv
import io
from typing import NamedTuple

from ..config import IngestSettings
from ..errors import InputRejected
from ..extraction_client import ExtractionClient
from ..logging_setup import get_logger
from ..normalizer import response_text

_logger = get_logger("ledger_ingest.adapters.spreadsheet")

_DELIMITERS = ",;\t|"
_SNIFF_CHARS = 8192


class ParsedSheet(NamedTuple):
    header: list[str]
    rows: list[list[str]]
    omitted_rows: int

    def render(self) -> str:
        """Re-serialize as comma-separated text with a truncation marker."""

        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(self.header)
        writer.writerows(self.rows)
        text = buf.getvalue()
        if self.omitted_rows:
            text += f"\n[... {self.omitted_rows} more rows truncated ...]"
        return text


def _decode(data: str | bytes) -> str:
    if isinstance(data, str):
        return data.lstrip("\ufeff")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InputRejected("spreadsheet-not-utf8", "spreadsheet is not UTF-8 text") from e


def _sniff(text: str) -> type[csv.Dialect] | csv.Dialect:
    try:
        return csv.Sniffer().sniff(text[:_SNIFF_CHARS], delimiters=_DELIMITERS)
    except csv.Error:
        return csv.excel


class SpreadsheetAdapter:
    """Turn a delimited export into raw model output for the repair pipeline."""

    def __init__(
        self, settings: IngestSettings, *, client: ExtractionClient | None = None
    ) -> None:
        self._settings = settings
        self._client = client

    def parse_rows(self, data: str | bytes) -> ParsedSheet:
        text = _decode(data)
        if not text.strip():
            raise InputRejected("empty-spreadsheet", "spreadsheet is empty")
        if len(text) > self._settings.max_spreadsheet_chars:
            raise InputRejected(
                "spreadsheet-too-large",
                f"spreadsheet is {len(text)} chars; limit is {self._settings.max_spreadsheet_chars}",
            )

        dialect = _sniff(text)
        rows = [
            [cell.strip() for cell in row]
            for row in csv.reader(io.StringIO(text), dialect)
            if any(cell.strip() for cell in row)
        ]
        if len(rows) < 2:
            raise InputRejected("no-rows", "spreadsheet has no data rows")

        header, body = rows[0], rows[1:]
        cap = self._settings.max_spreadsheet_rows
        omitted = max(0, len(body) - cap)
        _logger.info(
            "spreadsheet:parsed delimiter=%r rows=%d omitted=%d",
            getattr(dialect, "delimiter", ","),
            len(body),
            omitted,
        )
        return ParsedSheet(header=header, rows=body[:cap], omitted_rows=omitted)

    def extract(self, data: str | bytes) -> str:
        """Return the raw model output for a delimited statement."""

        sheet = self.parse_rows(data)
        resp = self._get_client().extract(
            sheet.render(), kind="spreadsheet", model=self._settings.spreadsheet_model
        )
        return response_text(resp)

    def _get_client(self) -> ExtractionClient:
        if self._client is None:
            self._client = ExtractionClient(
                api_key=self._settings.openai_api_key,
                timeout=self._settings.openai_timeout_seconds,
            )
        return self._client


__all__ = ["ParsedSheet", "SpreadsheetAdapter"]
