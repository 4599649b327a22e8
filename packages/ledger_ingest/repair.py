"""Turn raw model output into a list of candidate objects.

Repair is an ordered chain of pure functions. :func:`strip_wrapping` always
runs first to produce the working text; then each stage in
:data:`REPAIR_STAGES` is tried in order and the first one that returns a list
wins. Later stages are never invoked once an earlier one succeeds.

Stages return ``None`` to pass, never raise. When every stage passes, the
chain raises ``ExtractionFailure("unparseable-response")`` carrying a bounded
excerpt of the raw text for server-side diagnostics.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from typing import Any, NamedTuple, TypeAlias

from .errors import ExtractionFailure
from .logging_setup import get_logger

_logger = get_logger("ledger_ingest.repair")

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?([\s\S]*?)```")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_DATED_OBJECT_RE = re.compile(r"\{[^{}]*\"date\"[^{}]*\}")
_TRAILING_COMMA_RE = re.compile(r",\s*$")

_CLOSERS = {"[": "]", "{": "}"}
_RECORD_KEYS = ("date", "description", "amount", "name", "balance")

Items: TypeAlias = list[Any]


class RepairStage(NamedTuple):
    name: str
    fn: Callable[[str], Items | None]


class RepairOutcome(NamedTuple):
    stage: str
    items: Items


# ---------------------------------------------------------------------------
# Stage 1: wrapping
# ---------------------------------------------------------------------------


def strip_wrapping(raw: str) -> str:
    """Drop code fences and surrounding prose.

    Slices from the first ``[``/``{`` to the last matching closer. When no
    closer exists (truncated output) the slice runs to the end of the text.
    """

    text = raw.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    elif text.startswith("```"):
        # Opening fence without a closing one
        text = text.split("\n", 1)[1] if "\n" in text else ""

    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    end = text.rfind(_CLOSERS[text[start]])
    if end <= start:
        return text[start:]
    return text[start : end + 1]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None


def coerce_items(value: Any) -> Items | None:
    """Return the candidate list carried by a decoded JSON value.

    - a list is used as-is;
    - an object with ``accounts``/``transactions`` arrays yields both,
      accounts first;
    - any other object yields its first array-valued field;
    - a bare record object yields a one-element list.
    """

    if isinstance(value, list):
        return value
    if not isinstance(value, dict):
        return None

    known = [value[k] for k in ("accounts", "transactions") if isinstance(value.get(k), list)]
    if known:
        return [item for arr in known for item in arr]
    for v in value.values():
        if isinstance(v, list):
            return v
    if any(k in value for k in _RECORD_KEYS):
        return [value]
    return None


def _balanced_span(text: str, start: int) -> str | None:
    """Return the bracket-balanced substring opening at ``start``, if closed."""

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _close_open_brackets(text: str) -> str:
    """Append the closers missing from ``text`` (string-aware)."""

    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()

    fixed = text + '"' if in_string else text
    fixed = _TRAILING_COMMA_RE.sub("", fixed.rstrip())
    return fixed + "".join(reversed(stack))


# ---------------------------------------------------------------------------
# Stages 2-5
# ---------------------------------------------------------------------------


def parse_json(text: str) -> Items | None:
    return coerce_items(_loads(text))


def extract_array(text: str) -> Items | None:
    """Parse the first top-level JSON array embedded in ``text``."""

    m = _ARRAY_RE.search(text)
    if m:
        value = _loads(m.group(0))
        if isinstance(value, list):
            return value
    start = text.find("[")
    if start == -1:
        return None
    span = _balanced_span(text, start)
    value = _loads(span) if span else None
    return value if isinstance(value, list) else None


def balance_brackets(text: str) -> Items | None:
    """Close a truncated payload, then retry from the last complete object."""

    items = coerce_items(_loads(_close_open_brackets(text)))
    if items is not None:
        return items
    cut = text.rfind("}")
    if cut == -1:
        return None
    return coerce_items(_loads(_close_open_brackets(text[: cut + 1])))


def salvage_objects(text: str) -> Items | None:
    """Keep every flat ``{...}`` fragment with a ``"date"`` key that parses."""

    found = []
    for m in _DATED_OBJECT_RE.finditer(text):
        value = _loads(m.group(0))
        if isinstance(value, dict):
            found.append(value)
    return found or None


REPAIR_STAGES: tuple[RepairStage, ...] = (
    RepairStage("parse_json", parse_json),
    RepairStage("extract_array", extract_array),
    RepairStage("balance_brackets", balance_brackets),
    RepairStage("salvage_objects", salvage_objects),
)


def run_repair_chain(raw: str, stages: Sequence[RepairStage] = REPAIR_STAGES) -> RepairOutcome:
    """Apply ``strip_wrapping`` then the first stage that yields a list."""

    text = strip_wrapping(raw or "")
    for stage in stages:
        items = stage.fn(text)
        if items is not None:
            _logger.info("repair:stage_ok stage=%s items=%d", stage.name, len(items))
            return RepairOutcome(stage=stage.name, items=items)
        _logger.debug("repair:stage_pass stage=%s", stage.name)

    _logger.warning("repair:unparseable raw_chars=%d", len(raw or ""))
    raise ExtractionFailure(
        "unparseable-response",
        "model output could not be parsed as JSON after repair",
        excerpt=raw,
    )


__all__ = [
    "REPAIR_STAGES",
    "RepairOutcome",
    "RepairStage",
    "balance_brackets",
    "coerce_items",
    "extract_array",
    "parse_json",
    "run_repair_chain",
    "salvage_objects",
    "strip_wrapping",
]
