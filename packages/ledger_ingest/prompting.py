"""Prompt construction for statement extraction.

This module builds:
- The system instructions for the document (PDF text) and spreadsheet (CSV
  rows) extraction tasks. Both state the exact output contract: an object with
  ``accounts`` and ``transactions`` arrays, ``YYYY-MM-DD`` dates, signed
  amounts and the fixed category enumeration.
- The user content embedding the statement between BEGIN_/END_ markers.
- A JSON-object ``text`` config for the OpenAI Responses API.

The model's framing is never trusted; whatever comes back goes through
``ledger_ingest.repair`` and ``ledger_ingest.validation``.
"""

from __future__ import annotations

from openai.types.responses import ResponseTextConfigParam

from db.models.ledger import Category

BEGIN_STATEMENT = "BEGIN_STATEMENT\n"
END_STATEMENT = "\nEND_STATEMENT"

_CATEGORY_LIST = ", ".join(c.value for c in Category)

_OUTPUT_CONTRACT = (
    "Return ONLY a JSON object, with no prose, markdown or code fences, of exactly this shape:\n"
    '{"accounts": [{"name": string, "balance": number, "currency": string}],\n'
    ' "transactions": [{"date": "YYYY-MM-DD", "description": string, '
    '"amount": number, "category": string}]}\n'
    "Field rules:\n"
    "- date: strictly YYYY-MM-DD (e.g. 2024-12-14).\n"
    "- description: the label or counterparty, without extra quotes.\n"
    "- amount: decimal number, POSITIVE for income/credit, NEGATIVE for expense/debit.\n"
    f"- category: exactly one of {_CATEGORY_LIST}.\n"
    "- currency: 3-letter ISO code (e.g. EUR).\n"
    'If nothing is found, return {"accounts": [], "transactions": []}.'
)


def build_document_instructions() -> str:
    """System instructions for extracting a PDF bank statement's text."""

    return (
        "You are an expert bookkeeping assistant extracting data from a bank statement. "
        "IGNORE opening/closing balance lines, totals, titles, headers and period dates "
        "when listing transactions; report each account's closing balance under 'accounts'. "
        "Extract ONLY individual transaction lines (bank movements).\n" + _OUTPUT_CONTRACT
    )


def build_spreadsheet_instructions() -> str:
    """System instructions for extracting a delimited statement export."""

    return (
        "You are an expert bookkeeping assistant analysing a bank statement exported as "
        "delimited text. IGNORE header rows, total rows and empty rows. Extract ONLY "
        "individual transaction rows, converting dates from the file's format. The "
        "'accounts' array may be empty when the export carries no balances.\n"
        + _OUTPUT_CONTRACT
    )


def build_user_content(statement_text: str, *, kind: str = "document") -> str:
    """Embed the statement between markers so stubs and logs can locate it."""

    lead = (
        "Extract every transaction from the following bank statement."
        if kind == "document"
        else "Analyse this delimited bank statement export and extract every transaction."
    )
    return f"{lead}\n\n{BEGIN_STATEMENT}{statement_text}{END_STATEMENT}"


def build_text_config() -> ResponseTextConfigParam:
    """Request a JSON object. No strict schema: repair tolerates drift."""

    return {"format": {"type": "json_object"}}


__all__ = [
    "BEGIN_STATEMENT",
    "END_STATEMENT",
    "build_document_instructions",
    "build_spreadsheet_instructions",
    "build_text_config",
    "build_user_content",
]
