"""Runtime settings for ingestion runs.

Values come from the environment (``LEDGER_INGEST_*`` plus the provider
credentials) with conservative defaults. Entrypoints load ``.env`` first; this
module never does so itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

_PLAID_HOSTS: dict[str, str] = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    s = raw.strip()
    return s or None


@dataclass(frozen=True, slots=True)
class IngestSettings:
    """Limits, model choice and provider credentials for one process."""

    database_url: str | None = None

    # Document path
    max_document_bytes: int = 10 * 1024 * 1024
    min_viable_text_chars: int = 50
    max_text_chars: int = 15_000

    # Spreadsheet path
    max_spreadsheet_chars: int = 200_000
    max_spreadsheet_rows: int = 500

    # Model extraction
    openai_api_key: str | None = field(default=None, repr=False)
    document_model: str = "gpt-4o"
    spreadsheet_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 60.0

    # Pull sources
    aggregator_base_url: str = _PLAID_HOSTS["sandbox"]
    aggregator_client_id: str | None = None
    aggregator_secret: str | None = field(default=None, repr=False)
    aggregator_page_size: int = 100
    aggregator_max_records: int = 500
    processor_base_url: str = "https://api.stripe.com"
    processor_page_size: int = 100
    processor_max_records: int = 100
    http_timeout_seconds: float = 30.0

    default_currency: str = "EUR"

    @classmethod
    def from_env(cls) -> IngestSettings:
        """Build settings from environment variables, keeping defaults when unset."""

        d = cls()
        plaid_env = (_env_str("PLAID_ENV") or "sandbox").lower()
        if plaid_env not in _PLAID_HOSTS:
            raise ValueError(
                f"PLAID_ENV must be one of {sorted(_PLAID_HOSTS)}, got {plaid_env!r}"
            )
        return cls(
            database_url=_env_str("DATABASE_URL"),
            max_document_bytes=_env_int("LEDGER_INGEST_MAX_DOCUMENT_BYTES", d.max_document_bytes),
            min_viable_text_chars=_env_int(
                "LEDGER_INGEST_MIN_VIABLE_TEXT_CHARS", d.min_viable_text_chars
            ),
            max_text_chars=_env_int("LEDGER_INGEST_MAX_TEXT_CHARS", d.max_text_chars),
            max_spreadsheet_chars=_env_int(
                "LEDGER_INGEST_MAX_SPREADSHEET_CHARS", d.max_spreadsheet_chars
            ),
            max_spreadsheet_rows=_env_int(
                "LEDGER_INGEST_MAX_SPREADSHEET_ROWS", d.max_spreadsheet_rows
            ),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            document_model=_env_str("LEDGER_INGEST_DOCUMENT_MODEL") or d.document_model,
            spreadsheet_model=_env_str("LEDGER_INGEST_SPREADSHEET_MODEL") or d.spreadsheet_model,
            openai_timeout_seconds=_env_float(
                "LEDGER_INGEST_OPENAI_TIMEOUT_SECONDS", d.openai_timeout_seconds
            ),
            aggregator_base_url=_env_str("LEDGER_INGEST_AGGREGATOR_BASE_URL")
            or _PLAID_HOSTS[plaid_env],
            aggregator_client_id=_env_str("PLAID_CLIENT_ID"),
            aggregator_secret=_env_str("PLAID_SECRET"),
            aggregator_page_size=_env_int(
                "LEDGER_INGEST_AGGREGATOR_PAGE_SIZE", d.aggregator_page_size
            ),
            aggregator_max_records=_env_int(
                "LEDGER_INGEST_AGGREGATOR_MAX_RECORDS", d.aggregator_max_records
            ),
            processor_base_url=_env_str("LEDGER_INGEST_PROCESSOR_BASE_URL")
            or d.processor_base_url,
            processor_page_size=_env_int("LEDGER_INGEST_PROCESSOR_PAGE_SIZE", d.processor_page_size),
            processor_max_records=_env_int(
                "LEDGER_INGEST_PROCESSOR_MAX_RECORDS", d.processor_max_records
            ),
            http_timeout_seconds=_env_float(
                "LEDGER_INGEST_HTTP_TIMEOUT_SECONDS", d.http_timeout_seconds
            ),
            default_currency=(
                _env_str("LEDGER_INGEST_DEFAULT_CURRENCY") or d.default_currency
            ).upper(),
        )

    def with_overrides(self, **changes: object) -> IngestSettings:
        return replace(self, **changes)  # type: ignore[arg-type]


__all__ = ["IngestSettings"]
