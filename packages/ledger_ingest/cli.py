# ruff: noqa: I001
"""CLI for the ``ledger_ingest`` package.

A Typer console over :class:`~ledger_ingest.reconcile.Reconciler`. The root
callback loads a local ``.env`` with ``python-dotenv`` (never overriding the
environment) and configures logging before any command runs. Statement
imports show a ``rich`` preview table and ask for confirmation unless
``--yes`` is given.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from dotenv import load_dotenv
from prompt_toolkit.shortcuts import confirm as pt_confirm
from rich.console import Console
from rich.table import Table
from typer.models import OptionInfo

from .config import IngestSettings
from .errors import IngestionError
from .logging_setup import configure_logging
from .models import ExtractionResult, RunSummary, SyncSummary

_T = TypeVar("_T")
_console = Console()

_PREVIEW_ROWS = 50


# ---- Small module-level helpers used by CLI commands -------------------------


def _settings(database_url: str | None) -> IngestSettings:
    """Read settings from the environment; a bad value is ``Error: ...`` and exit 1."""

    try:
        settings = IngestSettings.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    if database_url:
        settings = settings.with_overrides(database_url=database_url)
    return settings


def _run(fn: Callable[[], _T]) -> _T:
    """Invoke a run, turning ingestion errors into ``Error: ...`` and exit 1."""

    try:
        return fn()
    except IngestionError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


def render_preview(result: ExtractionResult, console: Console = _console) -> None:
    """Print extracted accounts and transactions as tables."""

    if result.accounts:
        acc_table = Table(title="Accounts")
        acc_table.add_column("Name")
        acc_table.add_column("Balance", justify="right")
        acc_table.add_column("Currency")
        for acc in result.accounts:
            acc_table.add_row(acc.name, f"{acc.balance:.2f}", acc.currency)
        console.print(acc_table)

    tx_table = Table(title=f"Transactions ({len(result.transactions)})")
    tx_table.add_column("Date")
    tx_table.add_column("Description", overflow="fold")
    tx_table.add_column("Amount", justify="right")
    tx_table.add_column("Category")
    for tx in result.transactions[:_PREVIEW_ROWS]:
        style = "red" if tx.amount < 0 else "green"
        tx_table.add_row(
            tx.date.isoformat(),
            tx.description,
            f"[{style}]{tx.amount:.2f}[/{style}]",
            tx.category.value,
        )
    console.print(tx_table)
    if len(result.transactions) > _PREVIEW_ROWS:
        console.print(f"... {len(result.transactions) - _PREVIEW_ROWS} more not shown")
    if result.dropped:
        console.print(f"[yellow]{len(result.dropped)} record(s) dropped during validation[/yellow]")


def _confirmer(assume_yes: bool) -> Callable[[ExtractionResult], bool]:
    def _confirm(result: ExtractionResult) -> bool:
        render_preview(result)
        if assume_yes:
            return True
        return pt_confirm("Save these records to the ledger?")

    return _confirm


def _print_summary(summary: RunSummary | SyncSummary) -> None:
    line = f"saved={summary.count} skipped={summary.skipped} errors={len(summary.errors)}"
    if summary.accounts_created or summary.accounts_updated:
        line += (
            f" accounts_created={summary.accounts_created}"
            f" accounts_updated={summary.accounts_updated}"
        )
    if isinstance(summary, SyncSummary):
        line += (
            f" pending_skipped={summary.pending_skipped}"
            f" cursor_advanced={summary.cursor_advanced}"
        )
    print(line)
    for err in summary.errors:
        print(f"  - {err}", file=sys.stderr)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Ingest bank statements (PDF/CSV) and provider feeds into the ledger. "
        "Loads OPENAI_API_KEY, PLAID_* and DATABASE_URL from a local .env."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in defaults).
# Used inside Annotated, so defaults come from the parameter, not the Option.
USER_OPTION: OptionInfo = typer.Option(..., "--user-id", help="Owning user id.")
COMPANY_OPTION: OptionInfo = typer.Option(..., "--company-id", help="Owning company id.")
DB_OPTION: OptionInfo = typer.Option(
    ..., "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
YES_OPTION: OptionInfo = typer.Option(..., "--yes", "-y", help="Save without asking.")
ACCOUNT_OPTION: OptionInfo = typer.Option(
    ..., "--account-id", help="Attach transactions to this (owned) account."
)


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        print(f"Error: cannot read '{path}': {e}", file=sys.stderr)
        raise typer.Exit(1) from e


@app.command("init-db")
def init_db_cmd(database_url: Annotated[str | None, DB_OPTION] = None) -> None:
    """Create the ledger tables directly (SQLite/dev; use Alembic in production)."""

    from db.client import create_schema

    settings = _settings(database_url)
    if not settings.database_url:
        print("Error: DATABASE_URL is not set.", file=sys.stderr)
        raise typer.Exit(1)
    create_schema(database_url=settings.database_url)
    print("ledger schema ready")


@app.command("import-pdf")
def import_pdf_cmd(
    pdf_path: Path,
    user_id: Annotated[str, USER_OPTION],
    company_id: Annotated[str, COMPANY_OPTION],
    account_id: Annotated[str | None, ACCOUNT_OPTION] = None,
    yes: Annotated[bool, YES_OPTION] = False,
    database_url: Annotated[str | None, DB_OPTION] = None,
) -> None:
    """Extract a PDF bank statement, preview it and save it."""

    from .reconcile import IngestContext, Reconciler

    data = _read_file(pdf_path)
    reconciler = Reconciler(_settings(database_url))
    summary = _run(
        lambda: reconciler.import_document(
            IngestContext(user_id=user_id, company_id=company_id),
            data,
            filename=pdf_path.name,
            mime_type="application/pdf",
            account_id=account_id,
            confirm=_confirmer(yes),
        )
    )
    _print_summary(summary)
    if not summary.success:
        raise typer.Exit(1)


@app.command("import-csv")
def import_csv_cmd(
    csv_path: Path,
    user_id: Annotated[str, USER_OPTION],
    company_id: Annotated[str, COMPANY_OPTION],
    account_id: Annotated[str | None, ACCOUNT_OPTION] = None,
    yes: Annotated[bool, YES_OPTION] = False,
    database_url: Annotated[str | None, DB_OPTION] = None,
) -> None:
    """Extract a delimited bank export, preview it and save it."""

    from .reconcile import IngestContext, Reconciler

    data = _read_file(csv_path)
    reconciler = Reconciler(_settings(database_url))
    summary = _run(
        lambda: reconciler.import_spreadsheet(
            IngestContext(user_id=user_id, company_id=company_id),
            data,
            account_id=account_id,
            confirm=_confirmer(yes),
        )
    )
    _print_summary(summary)
    if not summary.success:
        raise typer.Exit(1)


@app.command("sync-bank")
def sync_bank_cmd(
    account_id: str,
    user_id: Annotated[str, USER_OPTION],
    company_id: Annotated[str, COMPANY_OPTION],
    database_url: Annotated[str | None, DB_OPTION] = None,
) -> None:
    """Pull new transactions for a linked bank account."""

    from .reconcile import IngestContext, Reconciler

    reconciler = Reconciler(_settings(database_url))
    summary = _run(
        lambda: reconciler.sync_aggregator_account(
            IngestContext(user_id=user_id, company_id=company_id), account_id
        )
    )
    _print_summary(summary)
    if not summary.success:
        raise typer.Exit(1)


@app.command("sync-processor")
def sync_processor_cmd(
    user_id: Annotated[str, USER_OPTION],
    company_id: Annotated[str, COMPANY_OPTION],
    database_url: Annotated[str | None, DB_OPTION] = None,
) -> None:
    """Import the latest payment-processor balance entries."""

    from .reconcile import IngestContext, Reconciler

    reconciler = Reconciler(_settings(database_url))
    summary = _run(
        lambda: reconciler.sync_processor(IngestContext(user_id=user_id, company_id=company_id))
    )
    _print_summary(summary)
    if not summary.success:
        raise typer.Exit(1)


@app.command("connect-processor")
def connect_processor_cmd(
    user_id: Annotated[str, USER_OPTION],
    api_key: Annotated[str, typer.Option(prompt=True, hide_input=True)],
    database_url: Annotated[str | None, DB_OPTION] = None,
) -> None:
    """Verify and store a payment-processor API key."""

    from .reconcile import IngestContext, Reconciler

    reconciler = Reconciler(_settings(database_url))
    info = _run(
        lambda: reconciler.connect_processor(
            IngestContext(user_id=user_id, company_id=""), api_key
        )
    )
    print(f"connected provider={info.provider} connection_id={info.id}")


@app.command("rotate-bank-credential")
def rotate_bank_credential_cmd(
    account_id: str,
    user_id: Annotated[str, USER_OPTION],
    access_token: Annotated[str, typer.Option(prompt=True, hide_input=True)],
    database_url: Annotated[str | None, DB_OPTION] = None,
) -> None:
    """Store a re-issued aggregator credential; the next sync backfills."""

    from .reconcile import IngestContext, Reconciler

    reconciler = Reconciler(_settings(database_url))
    _run(
        lambda: reconciler.rotate_aggregator_credential(
            IngestContext(user_id=user_id, company_id=""), account_id, access_token
        )
    )
    print(f"credential rotated for account {account_id}; cursor cleared")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
