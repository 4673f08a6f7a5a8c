from datetime import date
from decimal import Decimal

import pytest

from receipt_ingest.domain.categories import CATEGORIES
from receipt_ingest.models import CandidateTransaction
from receipt_ingest.services.validation import validate_transaction, validate_transactions

TODAY = date(2024, 6, 1)
LINE_ITEM = {"category": "Groceries", "type": "expense"}


def test_amount_with_rupee_symbol_and_grouping() -> None:
    result = validate_transaction({**LINE_ITEM, "description": "Dinner", "amount": "₹1,234.50"}, today=TODAY)

    assert result is not None
    assert result.amount == Decimal("1234.50")
    assert result.needs_manual_review is False


@pytest.mark.parametrize("amount", [None, "", "abc", "-5", 0, "0.00", float("nan"), True])
def test_bad_amount_is_nulled_and_flagged(amount: object) -> None:
    result = validate_transaction({"description": "Item", "amount": amount}, today=TODAY)

    assert result is not None
    assert result.amount is None
    assert result.needs_manual_review is True


@pytest.mark.parametrize("description", [None, "", "   "])
def test_missing_description_is_rejected(description: str | None) -> None:
    assert validate_transaction({"description": description, "amount": 5}, today=TODAY) is None


@pytest.mark.parametrize(
    ("category", "expected"),
    [
        ("Groceries", "Groceries"),
        (" Travel ", "Travel"),
        ("groceries", "Other Expense"),
        ("Beverages", "Other Expense"),
        (None, "Other Expense"),
    ],
)
def test_category_is_closed(category: str | None, expected: str) -> None:
    result = validate_transaction({"description": "x", "amount": 1, "category": category}, today=TODAY)

    assert result is not None
    assert result.category == expected
    assert result.category in CATEGORIES


@pytest.mark.parametrize(
    ("overrides", "flagged"),
    [
        ({}, False),
        ({"category": "Beverages"}, True),
        ({"category": None}, True),
        ({"type": "refund"}, True),
        ({"type": None}, True),
    ],
)
def test_replaced_category_or_type_needs_review(overrides: dict, flagged: bool) -> None:
    record = {**LINE_ITEM, "description": "Tea", "amount": "2.00", **overrides}

    result = validate_transaction(record, today=TODAY)

    assert result is not None
    assert result.needs_manual_review is flagged
    again = validate_transaction(result, today=TODAY)
    assert again == result


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("income", "income"), ("INCOME", "income"), (" expense ", "expense"), ("refund", "expense"), (None, "expense")],
)
def test_type_is_normalized(raw: str | None, expected: str) -> None:
    result = validate_transaction({"description": "x", "amount": 1, "type": raw}, today=TODAY)

    assert result is not None
    assert result.type == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-05-12", date(2024, 5, 12)),
        ("12/05/2024", date(2024, 5, 12)),
        ("2023-12-31T18:00:00Z", date(2023, 12, 31)),
        ("yesterday", TODAY),
        (None, TODAY),
    ],
)
def test_date_parsing(raw: str | None, expected: date) -> None:
    result = validate_transaction({"description": "x", "amount": 1, "date": raw}, today=TODAY)

    assert result is not None
    assert result.date == expected


def test_review_flag_is_preserved() -> None:
    base = {**LINE_ITEM, "description": "x", "amount": 1}
    camel = validate_transaction({**base, "needsManualReview": True}, today=TODAY)
    snake = validate_transaction({**base, "needs_manual_review": True}, today=TODAY)
    stringly = validate_transaction({**base, "needs_manual_review": "true"}, today=TODAY)

    assert camel is not None and camel.needs_manual_review is True
    assert snake is not None and snake.needs_manual_review is True
    assert stringly is not None and stringly.needs_manual_review is False


def test_accepts_candidate_models() -> None:
    candidate = CandidateTransaction(
        description="  Coffee ",
        amount=Decimal("4.5"),
        category="Food & Dining",
        date="2024-05-12",
    )

    result = validate_transaction(candidate, today=TODAY)

    assert result is not None
    assert result.description == "Coffee"
    assert result.amount == Decimal("4.50")
    assert result.date == date(2024, 5, 12)


@pytest.mark.parametrize(
    "record",
    [
        {"description": "Dinner", "amount": "₹1,234.50", "category": "Food & Dining", "date": "2024-05-12"},
        {"description": "Taxi", "amount": "oops", "category": "Cabs", "type": "INCOME"},
        {"description": "Placeholder", "amount": None, "needsManualReview": True},
        {"description": "Gum", "amount": "0.004", "category": "Groceries"},
    ],
)
def test_validation_is_idempotent(record: dict) -> None:
    once = validate_transaction(record, today=TODAY)
    assert once is not None

    twice = validate_transaction(once, today=date(1999, 1, 1))

    assert twice == once


def test_validate_transactions_drops_rejects_and_keeps_order() -> None:
    records = [
        {"description": "Coffee", "amount": "4.50"},
        {"description": "", "amount": "9.99"},
        {"description": "Bagel", "amount": "3"},
    ]

    results = validate_transactions(records, today=TODAY)

    assert [r.description for r in results] == ["Coffee", "Bagel"]
    assert all(r.date == TODAY for r in results)
