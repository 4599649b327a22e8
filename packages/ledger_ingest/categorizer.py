"""Rule-table categorization for pull-source feeds.

Aggregator category hints ("Food and Drink", ``["Travel", "Taxi"]``,
``"GENERAL_SERVICES"``) are matched case-insensitively by substring against
curated keyword sets, tried in a fixed priority order. The first match wins;
anything else is ``OTHER``. This never raises.

Processor records carry a type (``charge``, ``stripe_fee``, ``payout`` ...)
instead of a hint; :func:`categorize_processor_entry` maps it to a direction
and a category.
"""

from __future__ import annotations

from collections.abc import Sequence

from db.models.ledger import Category, Direction

# Order matters: "travel" must win over "service" for "Travel Services".
KEYWORD_RULES: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.TRANSPORT, ("transport", "travel", "gas", "parking", "taxi", "airline")),
    (Category.MEALS, ("food", "restaurant", "groceries", "coffee")),
    (Category.SUPPLIES, ("shops", "supplies", "hardware", "merchandise")),
    (Category.SERVICES, ("service", "professional")),
    (Category.TAX, ("tax", "government")),
    (Category.PAYROLL, ("payroll", "salary")),
)

PROCESSOR_EXPENSE_TYPES: frozenset[str] = frozenset(
    {"stripe_fee", "payout", "refund", "adjustment"}
)


def _first_hint(hint: str | Sequence[str] | None) -> str:
    if hint is None:
        return ""
    if isinstance(hint, str):
        return hint
    for part in hint:
        if isinstance(part, str) and part.strip():
            return part
    return ""


def categorize_hint(hint: str | Sequence[str] | None) -> Category:
    """Map a free-text (or hierarchical list) hint to a :class:`Category`."""

    text = _first_hint(hint).replace("_", " ").strip().lower()
    if not text:
        return Category.OTHER
    for category, keywords in KEYWORD_RULES:
        if any(k in text for k in keywords):
            return category
    return Category.OTHER


def categorize_processor_entry(
    record_type: str | None, description: str | None = None
) -> tuple[Direction, Category]:
    """Return ``(direction, category)`` for a processor balance entry."""

    rtype = (record_type or "").strip().lower()
    direction = Direction.EXPENSE if rtype in PROCESSOR_EXPENSE_TYPES else Direction.INCOME
    if rtype == "stripe_fee" or "stripe fee" in (description or "").lower():
        return direction, Category.TAX
    if direction is Direction.INCOME:
        return direction, Category.SERVICES
    return direction, Category.OTHER


__all__ = [
    "KEYWORD_RULES",
    "PROCESSOR_EXPENSE_TYPES",
    "categorize_hint",
    "categorize_processor_entry",
]
