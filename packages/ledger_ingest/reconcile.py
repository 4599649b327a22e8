"""Top-level ingestion runs.

Each run is one sequential flow: adapter, normalizer, repair and validation
pipeline, categorizer, then the ledger writer. Push sources (document,
spreadsheet) are split into a preview step (``extract_*``) and an explicit
commit (:meth:`Reconciler.save_extraction`). Pull sources (aggregator,
processor) write as they page.

Run-aborting failures propagate as :class:`~ledger_ingest.errors.IngestionError`
subclasses; per-record write failures only appear in the summary's
``errors``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias

from db.models.ledger import TransactionSource

from . import normalizer
from .adapters.aggregator import AggregatorAdapter, AggregatorClient
from .adapters.document import DocumentAdapter
from .adapters.processor import ProcessorAdapter, ProcessorClient
from .adapters.spreadsheet import SpreadsheetAdapter
from .categorizer import categorize_hint, categorize_processor_entry
from .config import IngestSettings
from .connections import DEFAULT_PROVIDER, ConnectionInfo, ConnectionStore
from .cursors import SyncCursorStore
from .errors import AuthorizationError, InputRejected
from .extraction_client import ExtractionClient
from .ledger import LedgerEntry, LedgerWriter, entry_from_candidate, entry_from_external
from .logging_setup import get_logger
from .models import (
    AccountReconciliation,
    BatchResult,
    ExtractedAccount,
    ExtractionResult,
    RunSummary,
    SyncSummary,
)
from .validation import parse_extraction

_logger = get_logger("ledger_ingest.reconcile")

ConfirmCallback: TypeAlias = Callable[[ExtractionResult], bool]
ProcessorClientFactory: TypeAlias = Callable[[str], ProcessorClient]


@dataclass(frozen=True, slots=True)
class IngestContext:
    """Who a run is for: the owning user and the company the rows belong to."""

    user_id: str
    company_id: str


class Reconciler:
    """Orchestrates ingestion runs against one ledger database.

    External clients are injected for tests; by default they are built per
    run from ``settings`` with the stored credentials.
    """

    def __init__(
        self,
        settings: IngestSettings,
        *,
        extraction_client: ExtractionClient | None = None,
        aggregator_client: AggregatorClient | None = None,
        processor_client_factory: ProcessorClientFactory | None = None,
    ) -> None:
        self.settings = settings
        self._extraction_client = extraction_client
        self._aggregator_client = aggregator_client
        self._processor_client_factory = processor_client_factory
        self.writer = LedgerWriter(database_url=settings.database_url)
        self.cursors = SyncCursorStore(database_url=settings.database_url)
        self.connections = ConnectionStore(database_url=settings.database_url)

    # ---- push sources: preview -----------------------------------------------

    def extract_document(
        self, data: bytes, *, filename: str | None = None, mime_type: str | None = None
    ) -> ExtractionResult:
        """Extract and validate a PDF statement without writing anything."""

        adapter = DocumentAdapter(self.settings, client=self._extraction_client)
        raw = adapter.extract(data, filename=filename, mime_type=mime_type)
        return parse_extraction(raw, default_currency=self.settings.default_currency)

    def extract_spreadsheet(self, data: str | bytes) -> ExtractionResult:
        """Extract and validate a delimited statement without writing anything."""

        adapter = SpreadsheetAdapter(self.settings, client=self._extraction_client)
        raw = adapter.extract(data)
        return parse_extraction(raw, default_currency=self.settings.default_currency)

    # ---- push sources: commit ------------------------------------------------

    def _require_owned_account(self, ctx: IngestContext, account_id: str) -> None:
        if self.writer.owned_account(ctx.user_id, account_id) is None:
            raise AuthorizationError(
                "account-not-owned", f"account {account_id} does not belong to the caller"
            )

    def reconcile_accounts(
        self, ctx: IngestContext, accounts: Sequence[ExtractedAccount]
    ) -> AccountReconciliation:
        return self.writer.reconcile_accounts(ctx.user_id, accounts)

    def save_extraction(
        self,
        ctx: IngestContext,
        result: ExtractionResult,
        *,
        source: TransactionSource,
        account_id: str | None = None,
    ) -> RunSummary:
        """Commit a previewed extraction. Append-only: there is no dedup here."""

        if source not in (TransactionSource.DOCUMENT, TransactionSource.SPREADSHEET):
            raise ValueError(f"save_extraction only accepts push sources, got {source}")
        if account_id is not None:
            self._require_owned_account(ctx, account_id)

        recon = self.reconcile_accounts(ctx, result.accounts)
        owner = account_id or recon.default_account_id
        entries = [
            entry_from_candidate(c, source=source, account_id=owner) for c in result.transactions
        ]
        batch = self.writer.write_batch(entries, company_id=ctx.company_id)
        errors = (*recon.errors, *batch.errors)
        touched = batch.count + recon.accounts_created + recon.accounts_updated
        summary = RunSummary(
            success=touched > 0 or not errors,
            count=batch.count,
            skipped=batch.skipped,
            errors=errors,
            accounts_created=recon.accounts_created,
            accounts_updated=recon.accounts_updated,
        )
        _logger.info(
            "import:saved source=%s count=%d errors=%d accounts_created=%d accounts_updated=%d",
            source,
            summary.count,
            len(summary.errors),
            summary.accounts_created,
            summary.accounts_updated,
        )
        return summary

    def _confirm_and_save(
        self,
        ctx: IngestContext,
        result: ExtractionResult,
        *,
        source: TransactionSource,
        confirm: ConfirmCallback,
        account_id: str | None,
    ) -> RunSummary:
        if not confirm(result):
            _logger.info("import:cancelled source=%s", source)
            return RunSummary(success=False)
        return self.save_extraction(ctx, result, source=source, account_id=account_id)

    def import_document(
        self,
        ctx: IngestContext,
        data: bytes,
        *,
        confirm: ConfirmCallback,
        filename: str | None = None,
        mime_type: str | None = None,
        account_id: str | None = None,
    ) -> RunSummary:
        """Preview a PDF statement, ask ``confirm``, then commit."""

        if account_id is not None:
            self._require_owned_account(ctx, account_id)
        result = self.extract_document(data, filename=filename, mime_type=mime_type)
        return self._confirm_and_save(
            ctx,
            result,
            source=TransactionSource.DOCUMENT,
            confirm=confirm,
            account_id=account_id,
        )

    def import_spreadsheet(
        self,
        ctx: IngestContext,
        data: str | bytes,
        *,
        confirm: ConfirmCallback,
        account_id: str | None = None,
    ) -> RunSummary:
        """Preview a delimited statement, ask ``confirm``, then commit."""

        if account_id is not None:
            self._require_owned_account(ctx, account_id)
        result = self.extract_spreadsheet(data)
        return self._confirm_and_save(
            ctx,
            result,
            source=TransactionSource.SPREADSHEET,
            confirm=confirm,
            account_id=account_id,
        )

    # ---- aggregator ----------------------------------------------------------

    def _new_aggregator_client(self) -> AggregatorClient:
        s = self.settings
        return AggregatorClient(
            base_url=s.aggregator_base_url,
            client_id=s.aggregator_client_id,
            secret=s.aggregator_secret,
            timeout=s.http_timeout_seconds,
        )

    def _aggregator_entries(
        self, items: Sequence[dict], *, account_id: str, errors: list[str]
    ) -> tuple[list[LedgerEntry], int]:
        """Map one page of ``added`` items; returns the entries and the pending count.

        Pending items are left out: the posted version arrives later under
        its own transaction id.
        """

        entries: list[LedgerEntry] = []
        pending = 0
        for pos, item in enumerate(items, start=1):
            try:
                tx = normalizer.from_aggregator(item)
            except ValueError as e:
                errors.append(f"{item.get('transaction_id') or f'record {pos}'}: {e}")
                continue
            if tx.pending:
                pending += 1
                continue
            entries.append(
                entry_from_external(
                    tx,
                    source=TransactionSource.AGGREGATOR,
                    category=categorize_hint(tx.category_hint),
                    account_id=account_id,
                )
            )
        return entries, pending

    def sync_aggregator_account(self, ctx: IngestContext, account_id: str) -> SyncSummary:
        """Pull new aggregator transactions for one account.

        Pages are written one at a time and the stored cursor is advanced only
        after every mappable record of the page was written or skipped as a
        duplicate. Items that cannot be mapped are reported in ``errors`` and
        passed over, since replaying them would fail the same way. A page with
        a write error ends the run with the cursor left where it was, so the
        next run retries that page.
        """

        position = self.cursors.load(ctx.user_id, account_id)
        if not position.access_token:
            raise InputRejected("aggregator-not-linked", f"account {account_id} has no credential")

        owned_client = self._aggregator_client is None
        client = self._aggregator_client or self._new_aggregator_client()
        adapter = AggregatorAdapter(
            client,
            page_size=self.settings.aggregator_page_size,
            max_records=self.settings.aggregator_max_records,
        )

        total = BatchResult()
        cursor = position.cursor
        advanced = False
        pages = 0
        pending = 0
        _logger.info(
            "aggregator_sync:start account_id=%s has_cursor=%s", account_id, cursor is not None
        )
        try:
            for page in adapter.iter_pages(position.access_token, cursor):
                pages += 1
                malformed: list[str] = []
                entries, page_pending = self._aggregator_entries(
                    page.added, account_id=account_id, errors=malformed
                )
                pending += page_pending
                if malformed:
                    _logger.warning(
                        "aggregator_sync:malformed_items account_id=%s page=%d count=%d",
                        account_id,
                        pages,
                        len(malformed),
                    )
                page_result = self.writer.write_batch(entries, company_id=ctx.company_id)
                write_failed = bool(page_result.errors)
                page_result.errors[:0] = malformed
                total.merge(page_result)

                if write_failed:
                    _logger.warning(
                        "aggregator_sync:cursor_held account_id=%s page=%d errors=%d",
                        account_id,
                        pages,
                        len(page_result.errors) - len(malformed),
                    )
                    break
                if page.next_cursor and page.next_cursor != cursor:
                    if not self.cursors.advance(account_id, expected=cursor, new=page.next_cursor):
                        _logger.warning(
                            "aggregator_sync:cursor_conflict account_id=%s page=%d",
                            account_id,
                            pages,
                        )
                        break
                    cursor = page.next_cursor
                    advanced = True
        finally:
            if owned_client:
                client.close()

        self.cursors.touch(account_id)
        summary = SyncSummary(
            success=not total.errors,
            count=total.count,
            skipped=total.skipped,
            errors=tuple(total.errors),
            cursor_advanced=advanced,
            pages=pages,
            pending_skipped=pending,
        )
        _logger.info(
            "aggregator_sync:done account_id=%s pages=%d added=%d skipped=%d pending=%d "
            "errors=%d cursor_advanced=%s",
            account_id,
            pages,
            summary.added_count,
            summary.skipped,
            pending,
            len(summary.errors),
            advanced,
        )
        return summary

    def rotate_aggregator_credential(
        self, ctx: IngestContext, account_id: str, access_token: str
    ) -> None:
        """Store a re-issued credential; the next sync backfills from scratch."""

        self.cursors.reset(ctx.user_id, account_id, access_token)

    # ---- processor -----------------------------------------------------------

    def _new_processor_client(self, api_key: str) -> ProcessorClient:
        if self._processor_client_factory is not None:
            return self._processor_client_factory(api_key)
        return ProcessorClient(
            api_key=api_key,
            base_url=self.settings.processor_base_url,
            timeout=self.settings.http_timeout_seconds,
        )

    def connect_processor(
        self, ctx: IngestContext, api_key: str, *, provider: str = DEFAULT_PROVIDER
    ) -> ConnectionInfo:
        """Verify an API key against the processor and store it."""

        key = (api_key or "").strip()
        if not key:
            raise InputRejected("empty-credential", "API key must be non-empty")
        with self._new_processor_client(key) as client:
            client.verify()
        info = self.connections.upsert(ctx.user_id, key, provider=provider)
        _logger.info("processor:connected user_id=%s provider=%s", ctx.user_id, provider)
        return info

    def sync_processor(self, ctx: IngestContext, *, provider: str = DEFAULT_PROVIDER) -> RunSummary:
        """Import the newest processor balance entries (capped per run)."""

        conn = self.connections.get(ctx.user_id, provider)
        if conn is None:
            raise InputRejected("processor-not-connected", f"no {provider} connection for user")

        with self._new_processor_client(conn.api_key) as client:
            raw_entries = ProcessorAdapter(
                client,
                page_size=self.settings.processor_page_size,
                max_records=self.settings.processor_max_records,
            ).fetch()

        errors: list[str] = []
        entries: list[LedgerEntry] = []
        for pos, raw in enumerate(raw_entries, start=1):
            try:
                tx = normalizer.from_processor(raw)
            except ValueError as e:
                errors.append(f"{raw.get('id') or f'record {pos}'}: {e}")
                continue
            direction, category = categorize_processor_entry(tx.record_type, tx.description)
            entries.append(
                entry_from_external(
                    tx,
                    source=TransactionSource.PROCESSOR,
                    category=category,
                    direction=direction,
                )
            )

        batch = self.writer.write_batch(entries, company_id=ctx.company_id)
        self.connections.touch(conn.id)
        all_errors = (*errors, *batch.errors)
        _logger.info(
            "processor_sync:done user_id=%s fetched=%d count=%d skipped=%d errors=%d",
            ctx.user_id,
            len(raw_entries),
            batch.count,
            batch.skipped,
            len(all_errors),
        )
        return RunSummary(
            success=not all_errors,
            count=batch.count,
            skipped=batch.skipped,
            errors=all_errors,
        )


__all__ = ["ConfirmCallback", "IngestContext", "Reconciler"]
