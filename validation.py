"""Input checks for payloads before they reach the services.

Every validator is a pure function over a plain mapping and reports problems
through a ``ValidationResult`` instead of raising, so handlers can branch on
``result.valid`` and forward ``result.error`` to the client unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import TransactionType
from periods import MONTH_PATTERN

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
MAX_AMOUNT = Decimal("999999.99")
MAX_CATEGORY_NAME_LENGTH = 50
TRANSACTION_TYPES = {t.value for t in TransactionType}


class ValidationCode(str, Enum):
    too_short = "too_short"
    invalid_amount = "invalid_amount"
    amount_too_large = "amount_too_large"
    too_many_decimals = "too_many_decimals"
    invalid_type = "invalid_type"
    missing_category = "missing_category"
    missing_description = "missing_description"
    missing_date = "missing_date"
    invalid_date = "invalid_date"
    future_date = "future_date"
    invalid_limit = "invalid_limit"
    missing_month = "missing_month"
    invalid_month = "invalid_month"
    missing_name = "missing_name"
    name_too_long = "name_too_long"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    code: Optional[ValidationCode] = None


OK = ValidationResult(valid=True)


def _fail(code: ValidationCode, error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error, code=code)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a submitted amount to ``Decimal`` without losing its digits.

    Strings keep exactly what the client sent; floats go through their
    shortest ``repr`` so ``10.1`` stays ``10.1``. Returns ``None`` for anything
    that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not amount.is_finite():
        return None
    return amount


def _decimal_places(amount: Decimal) -> int:
    exponent = amount.normalize().as_tuple().exponent
    return max(0, -exponent)


def _check_money(amount: Decimal, label: str) -> ValidationResult:
    """Ceiling and cent precision shared by transaction amounts and budget limits."""
    if amount > MAX_AMOUNT:
        return _fail(ValidationCode.amount_too_large, f"{label} is too large")
    if _decimal_places(amount) > 2:
        return _fail(
            ValidationCode.too_many_decimals,
            f"{label} can have at most 2 decimal places",
        )
    return OK


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def local_today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def _is_transaction_type(value: Any) -> bool:
    return isinstance(value, str) and value in TRANSACTION_TYPES


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def validate_password(password: Any) -> ValidationResult:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return _fail(
            ValidationCode.too_short,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )
    return OK


def validate_transaction(
    data: Mapping[str, Any], *, today: Optional[date] = None
) -> ValidationResult:
    amount = to_decimal(data.get("amount"))
    if amount is None or amount <= 0:
        return _fail(ValidationCode.invalid_amount, "Amount must be a positive number")
    money_result = _check_money(amount, "Amount")
    if not money_result.valid:
        return money_result

    if not _is_transaction_type(data.get("type")):
        return _fail(ValidationCode.invalid_type, "Invalid transaction type")

    if data.get("category_id") in (None, ""):
        return _fail(ValidationCode.missing_category, "Category is required")

    if _is_blank(data.get("description")):
        return _fail(ValidationCode.missing_description, "Description is required")

    raw_date = data.get("date")
    if raw_date in (None, ""):
        return _fail(ValidationCode.missing_date, "Date is required")
    txn_date = parse_date(raw_date)
    if txn_date is None:
        return _fail(ValidationCode.invalid_date, "Invalid date (expected YYYY-MM-DD)")
    if txn_date > (today or local_today()):
        return _fail(
            ValidationCode.future_date, "Transaction date cannot be in the future"
        )

    return OK


def validate_budget_limit(data: Mapping[str, Any]) -> ValidationResult:
    limit_amount = to_decimal(data.get("limit_amount"))
    if limit_amount is None or limit_amount <= 0:
        return _fail(
            ValidationCode.invalid_limit, "Budget limit must be a positive number"
        )
    return _check_money(limit_amount, "Budget limit")


def validate_budget(data: Mapping[str, Any]) -> ValidationResult:
    if data.get("category_id") in (None, ""):
        return _fail(ValidationCode.missing_category, "Category is required")

    limit_result = validate_budget_limit(data)
    if not limit_result.valid:
        return limit_result

    month = data.get("month")
    if not month:
        return _fail(ValidationCode.missing_month, "Month is required")
    if not isinstance(month, str) or not MONTH_PATTERN.match(month):
        return _fail(
            ValidationCode.invalid_month, "Invalid month format (expected YYYY-MM)"
        )

    return OK


def validate_category_name(name: Any) -> ValidationResult:
    if _is_blank(name):
        return _fail(ValidationCode.missing_name, "Category name is required")
    if len(name.strip()) > MAX_CATEGORY_NAME_LENGTH:
        return _fail(
            ValidationCode.name_too_long,
            f"Category name is too long (max {MAX_CATEGORY_NAME_LENGTH} characters)",
        )
    return OK


def validate_category(data: Mapping[str, Any]) -> ValidationResult:
    name_result = validate_category_name(data.get("name"))
    if not name_result.valid:
        return name_result
    if not _is_transaction_type(data.get("type")):
        return _fail(ValidationCode.invalid_type, "Invalid category type")

    return OK
