"""Single-call wrapper around the OpenAI Responses API for statement extraction.

The client is constructed per run with an explicitly injected key and a hard
timeout. SDK retries are disabled and this module never retries: a second call
to a non-deterministic model may return a different answer for the same
statement, so a failure surfaces as :class:`ExtractionFailure` instead.
"""

from __future__ import annotations

import time
from typing import Any, Protocol

import openai
from openai import OpenAI

from . import prompting
from .errors import ExtractionFailure
from .logging_setup import get_logger

_logger = get_logger("ledger_ingest.extraction_client")


class ResponsesClient(Protocol):
    """The slice of ``openai.OpenAI`` this module needs (``client.responses``)."""

    responses: Any


def _create_client(api_key: str | None, timeout: float) -> OpenAI:
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


class ExtractionClient:
    """Send statement text to the model and return its raw text output."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        timeout: float = 60.0,
        client: ResponsesClient | None = None,
    ) -> None:
        self._client = client if client is not None else _create_client(api_key, timeout)

    def extract(self, statement_text: str, *, kind: str, model: str) -> Any:
        """Run one extraction round-trip and return the SDK response object.

        ``kind`` is ``"document"`` or ``"spreadsheet"`` and selects the system
        instructions.
        """

        instructions = (
            prompting.build_document_instructions()
            if kind == "document"
            else prompting.build_spreadsheet_instructions()
        )
        user_content = prompting.build_user_content(statement_text, kind=kind)

        _logger.info(
            "extraction:request kind=%s model=%s input_chars=%d", kind, model, len(statement_text)
        )
        t0 = time.perf_counter()
        try:
            resp = self._client.responses.create(
                model=model,
                instructions=instructions,
                input=user_content,
                text=prompting.build_text_config(),
                temperature=0.1,
            )
        except openai.APITimeoutError as e:
            _logger.error(
                "extraction:timeout kind=%s latency_ms=%.2f",
                kind,
                (time.perf_counter() - t0) * 1000.0,
            )
            raise ExtractionFailure("model-timeout", "extraction service timed out") from e
        except openai.OpenAIError as e:
            _logger.error(
                "extraction:failed kind=%s latency_ms=%.2f error=%s",
                kind,
                (time.perf_counter() - t0) * 1000.0,
                e.__class__.__name__,
            )
            raise ExtractionFailure("model-error", f"extraction service failed: {e}") from e

        _logger.info(
            "extraction:done kind=%s latency_ms=%.2f", kind, (time.perf_counter() - t0) * 1000.0
        )
        return resp


__all__ = ["ExtractionClient", "ResponsesClient"]
