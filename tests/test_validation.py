# ruff: noqa: I001
from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import pytest

from db.models.ledger import Category
from ledger_ingest.errors import ExtractionFailure, ValidationFailure
from ledger_ingest.validation import (
    PLACEHOLDER_DESCRIPTION,
    classify,
    coerce_amount,
    normalize_date,
    parse_extraction,
    validate_items,
)


# ---- field repair ------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-12-14", "2024-12-14"),
        ("14/12/2024", "2024-12-14"),
        ("14-12-2024", "2024-12-14"),
        ("2024/12/14", "2024-12-14"),
        ("2024-12-14T09:30:00Z", "2024-12-14"),
        (1734134400, "2024-12-14"),
        (1734134400000, "2024-12-14"),
        ("1734134400", "2024-12-14"),
        ("yesterday", "yesterday"),
    ],
)
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1,234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("-12,50", Decimal("-12.50")),
        ("1 234,56 €", Decimal("1234.56")),
        ("(45.00)", Decimal("-45.00")),
        ("EUR -7.5", Decimal("-7.5")),
        (-23.5, Decimal("-23.5")),
    ],
)
def test_coerce_amount(raw, expected):
    assert coerce_amount(raw) == expected


def test_coerce_amount_leaves_garbage_and_booleans_untouched():
    assert coerce_amount("n/a") == "n/a"
    assert coerce_amount(True) is True


# ---- classification ----------------------------------------------------------


def test_account_inside_transactions_array_is_routed_to_accounts():
    raw = json.dumps(
        {
            "accounts": [],
            "transactions": [
                {"name": "Main", "balance": 120.5, "currency": "EUR"},
                {"date": "2024-12-14", "description": "Taxi", "amount": -23.5},
            ],
        }
    )
    result = parse_extraction(raw)

    assert [a.name for a in result.accounts] == ["Main"]
    assert result.accounts[0].balance == Decimal("120.5")
    assert [t.description for t in result.transactions] == ["Taxi"]


def test_classify_rules():
    assert classify({"name": "Main", "balance": 1}) == "account"
    assert classify({"name": "Main", "balance": 1, "date": "2024-01-01"}) == "transaction"
    assert classify({"amount": 3}) == "transaction"
    assert classify({"foo": "bar"}) is None
    assert classify(["not", "an", "object"]) is None


# ---- validation --------------------------------------------------------------


def test_scenario_fenced_object_with_day_first_date_and_lowercase_category():
    raw = (
        "Here is the data:\n```json\n"
        '{"accounts":[],"transactions":[{"date":"14/12/2024","description":"Rent",'
        '"amount":-800,"category":"supplies"}]}\n```'
    )
    result = parse_extraction(raw)

    assert len(result.transactions) == 1
    tx = result.transactions[0]
    assert tx.date == date(2024, 12, 14)
    assert tx.category is Category.SUPPLIES
    assert tx.amount == Decimal("-800")


def test_invalid_records_are_dropped_individually():
    items = [
        {"date": "2024-12-14", "description": "Taxi", "amount": -23.5, "category": "TRANSPORT"},
        {"date": "2024-02-30", "description": "Bad day", "amount": 1},
        {"date": "2024-12-15", "description": "Bool", "amount": True},
        {"date": "2024-12-16", "description": "Inf", "amount": "Infinity"},
        {"date": "2024-12-17", "description": "Odd", "amount": 2, "category": "FUN"},
        {"hello": "world"},
    ]
    result = validate_items(items, stage="parse_json")

    assert [t.description for t in result.transactions] == ["Taxi"]
    kinds = sorted(d.kind for d in result.dropped)
    assert kinds == ["transaction", "transaction", "transaction", "transaction", "unclassifiable"]
    assert result.stage == "parse_json"


def test_missing_description_gets_placeholder():
    result = validate_items([{"date": "2024-12-14", "amount": "12,00", "category": "other"}])

    tx = result.transactions[0]
    assert tx.description == PLACEHOLDER_DESCRIPTION
    assert tx.category is Category.OTHER
    assert tx.amount == Decimal("12.00")


@pytest.mark.parametrize(
    "item",
    [
        {"date": "2024-12-14", "description": "Taxi", "amount": -23.5},
        {"date": "2024-12-14", "description": "Taxi", "amount": -23.5, "category": None},
    ],
)
def test_transaction_without_category_is_dropped(item):
    result = validate_items(
        [item, {"date": "2024-12-15", "description": "Tea", "amount": -3, "category": "MEALS"}]
    )

    assert [t.description for t in result.transactions] == ["Tea"]
    (dropped,) = result.dropped
    assert dropped.kind == "transaction"
    assert dropped.reason.startswith("category:")


def test_account_currency_defaults_and_is_normalized():
    result = validate_items(
        [{"name": "Main", "balance": "1 000,00"}, {"name": "Savings", "balance": 5, "currency": " usd "}],
        default_currency="GBP",
    )

    assert [(a.name, a.currency) for a in result.accounts] == [("Main", "GBP"), ("Savings", "USD")]
    assert result.accounts[0].balance == Decimal("1000.00")


def test_accounts_only_is_a_success_with_no_transactions():
    result = validate_items([{"name": "Main", "balance": 10}])

    assert result.transactions == ()
    assert len(result.accounts) == 1


def test_zero_survivors_is_a_validation_failure():
    with pytest.raises(ValidationFailure) as ei:
        validate_items([{"date": "nope", "amount": "x"}, {"foo": 1}])

    assert ei.value.reason == "no-usable-records"
    # Callers handling extraction failures also catch validation failures
    assert isinstance(ei.value, ExtractionFailure)


def test_empty_result_object_is_a_validation_failure():
    with pytest.raises(ValidationFailure):
        parse_extraction('{"accounts": [], "transactions": []}')
