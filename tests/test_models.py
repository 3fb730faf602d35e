"""Tests for the expense pydantic models."""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from models.expense import (
    CATEGORIES,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    format_expense_date,
    parse_expense_date,
)


def test_categories_are_the_fixed_set():
    assert CATEGORIES == [
        "Food & Dining",
        "Transportation",
        "Shopping",
        "Entertainment",
        "Bills & Utilities",
        "Healthcare",
        "Education",
        "Travel",
        "Other",
    ]


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-02-29", datetime(2024, 2, 29, tzinfo=timezone.utc)),
        ("2024-02-29T10:15:00Z", datetime(2024, 2, 29, 10, 15, tzinfo=timezone.utc)),
        ("2024-02-29T10:15:00+02:00", datetime(2024, 2, 29, 8, 15, tzinfo=timezone.utc)),
        ("2024-02-29T10:15:00.000Z", datetime(2024, 2, 29, 10, 15, tzinfo=timezone.utc)),
        (date(2024, 2, 29), datetime(2024, 2, 29, tzinfo=timezone.utc)),
        (datetime(2024, 2, 29, 23, 0), datetime(2024, 2, 29, 23, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_expense_date(value, expected):
    assert parse_expense_date(value) == expected


@pytest.mark.parametrize("value", ["", "2024-13-01", "yesterday", 20240101])
def test_parse_expense_date_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_expense_date(value)


def test_format_expense_date_matches_api_format():
    eastern = timezone(timedelta(hours=-5))

    assert format_expense_date(datetime(2024, 1, 5, 19, 0, tzinfo=eastern)) == "2024-01-06T00:00:00.000Z"
    assert format_expense_date(datetime(2024, 1, 5)) == "2024-01-05T00:00:00.000Z"


def test_create_strips_text_and_defaults_notes():
    expense = ExpenseCreate(title="  Taxi  ", amount="18.40", category="Transportation", date="2024-01-05", notes=None)

    assert expense.title == "Taxi"
    assert expense.amount == 18.4
    assert expense.notes == ""


@pytest.mark.parametrize("amount", [0, -0.01, float("inf"), "twelve", True, False])
def test_create_requires_positive_finite_amount(amount):
    with pytest.raises(ValidationError):
        ExpenseCreate(title="Taxi", amount=amount, category="Transportation", date="2024-01-05")


def test_update_tracks_only_sent_fields():
    update = ExpenseUpdate(amount=10)

    assert update.model_dump(exclude_unset=True) == {"amount": 10.0}


@pytest.mark.parametrize("field", ["title", "amount", "category", "date"])
def test_update_cannot_clear_required_field(field):
    with pytest.raises(ValidationError):
        ExpenseUpdate(**{field: None})


def test_update_allows_clearing_notes():
    assert ExpenseUpdate(notes=None).model_dump(exclude_unset=True) == {"notes": ""}


def test_expense_serializes_dates_as_iso_strings():
    expense = Expense(
        id="65a1b2c3d4e5f6a7b8c9d0e1",
        title="Cinema",
        amount=14,
        category="Entertainment",
        date=datetime(2024, 4, 2, tzinfo=timezone.utc),
    )

    dumped = expense.model_dump(mode="json")

    assert dumped["date"] == "2024-04-02T00:00:00.000Z"
    assert dumped["notes"] == ""
    assert dumped["created_at"] is None
