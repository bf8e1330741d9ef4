from datetime import date, timedelta
from decimal import Decimal

import pytest

from validation import (
    ValidationCode,
    ValidationResult,
    to_decimal,
    validate_budget,
    validate_budget_limit,
    validate_category,
    validate_email,
    validate_password,
    validate_transaction,
)

TODAY = date(2025, 3, 15)


def _txn(**overrides) -> dict:
    data = {
        "amount": 25.5,
        "type": "expense",
        "category_id": 3,
        "description": "Groceries",
        "date": TODAY.isoformat(),
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize("amount", [0, -1, -0.01, None, "abc", True])
def test_non_positive_or_non_numeric_amount_is_invalid(amount) -> None:
    result = validate_transaction(_txn(amount=amount), today=TODAY)
    assert not result.valid
    assert result.code == ValidationCode.invalid_amount


def test_amount_above_ceiling_is_rejected() -> None:
    result = validate_transaction(_txn(amount=1000000), today=TODAY)
    assert result.code == ValidationCode.amount_too_large
    assert validate_transaction(_txn(amount=999999.99), today=TODAY).valid


def test_amount_with_three_decimals_is_rejected() -> None:
    result = validate_transaction(_txn(amount=10.999), today=TODAY)
    assert not result.valid
    assert result.code == ValidationCode.too_many_decimals
    assert result.error == "Amount can have at most 2 decimal places"


def test_decimal_places_follow_the_submitted_value() -> None:
    assert validate_transaction(_txn(amount=10.1), today=TODAY).valid
    assert validate_transaction(_txn(amount="10.10"), today=TODAY).valid
    assert validate_transaction(_txn(amount="10.100"), today=TODAY).valid
    assert (
        validate_transaction(_txn(amount="10.101"), today=TODAY).code
        == ValidationCode.too_many_decimals
    )


def test_first_failure_wins() -> None:
    result = validate_transaction(
        {"amount": 5, "type": "transfer", "description": ""}, today=TODAY
    )
    assert result.code == ValidationCode.invalid_type


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({"type": "transfer"}, ValidationCode.invalid_type),
        ({"category_id": None}, ValidationCode.missing_category),
        ({"description": "   "}, ValidationCode.missing_description),
        ({"date": None}, ValidationCode.missing_date),
        ({"date": "15/03/2025"}, ValidationCode.invalid_date),
    ],
)
def test_transaction_field_checks(overrides, code) -> None:
    result = validate_transaction(_txn(**overrides), today=TODAY)
    assert not result.valid
    assert result.code == code


def test_future_date_is_rejected_but_today_is_accepted() -> None:
    tomorrow = (TODAY + timedelta(days=1)).isoformat()
    result = validate_transaction(_txn(date=tomorrow), today=TODAY)
    assert result.code == ValidationCode.future_date

    assert validate_transaction(_txn(date=TODAY.isoformat()), today=TODAY).valid


def test_budget_month_format() -> None:
    base = {"category_id": 1, "limit_amount": 200}
    assert validate_budget({**base, "month": "2024-01"}).valid

    result = validate_budget({**base, "month": "2024-13"})
    assert result.code == ValidationCode.invalid_month
    assert validate_budget({**base, "month": "2024-1"}).code == ValidationCode.invalid_month
    assert validate_budget({**base}).code == ValidationCode.missing_month


def test_budget_requires_category_and_positive_limit() -> None:
    assert (
        validate_budget({"limit_amount": 10, "month": "2024-01"}).code
        == ValidationCode.missing_category
    )
    assert (
        validate_budget({"category_id": 1, "limit_amount": 0, "month": "2024-01"}).code
        == ValidationCode.invalid_limit
    )


def test_budget_limit_follows_amount_rules() -> None:
    def limit(value) -> ValidationResult:
        return validate_budget_limit({"limit_amount": value})

    assert limit("0.01").valid
    assert limit(999999.99).valid
    assert limit(0.004).code == ValidationCode.too_many_decimals
    assert limit("0.005").error == "Budget limit can have at most 2 decimal places"
    assert limit(1e20).code == ValidationCode.amount_too_large
    assert limit(1000000).error == "Budget limit is too large"

    result = validate_budget({"category_id": 1, "limit_amount": 0.004, "month": "2024-01"})
    assert result.code == ValidationCode.too_many_decimals


def test_category_name_and_type() -> None:
    assert validate_category({"name": " Rent ", "type": "expense"}).valid
    assert validate_category({"name": "  ", "type": "expense"}).code == (
        ValidationCode.missing_name
    )
    assert validate_category({"name": "x" * 51, "type": "income"}).code == (
        ValidationCode.name_too_long
    )
    assert validate_category({"name": "Rent", "type": "other"}).code == (
        ValidationCode.invalid_type
    )


def test_email_and_password() -> None:
    assert validate_email("someone@example.com")
    assert not validate_email("someone@example")
    assert not validate_email("some one@example.com")
    assert not validate_email(None)

    assert validate_password("secret").valid
    assert validate_password("short").code == ValidationCode.too_short


def test_to_decimal_keeps_float_shortest_repr() -> None:
    assert to_decimal(10.1) == Decimal("10.1")
    assert to_decimal("7.25") == Decimal("7.25")
    assert to_decimal(float("nan")) is None
