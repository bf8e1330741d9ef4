from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from models import TransactionType

NEAR_LIMIT_PERCENT = Decimal("80")
OVER_BUDGET_PERCENT = Decimal("100")


class BudgetState(str, Enum):
    on_track = "on_track"
    near_limit = "near_limit"
    over_budget = "over_budget"


@dataclass(frozen=True)
class CategoryTotal:
    category_id: int
    category_name: str
    total: Decimal


@dataclass(frozen=True)
class Summary:
    balance: Decimal
    total_income: Decimal
    total_expenses: Decimal
    category_breakdown: list[CategoryTotal] = field(default_factory=list)


@dataclass(frozen=True)
class BudgetStatus:
    percentage: Decimal
    remaining: Decimal
    status: BudgetState


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _category_name(row: Any) -> str:
    name: Optional[str] = getattr(row, "category_name", None)
    return name or "Unknown"


def compute_summary(transactions: Iterable[Any]) -> Summary:
    """Aggregate transaction rows into balance, totals and expense breakdown.

    Rows only need ``amount``, ``type`` and ``category_id`` attributes;
    ``category_name`` is used for the breakdown labels when present. Only
    expense rows feed the breakdown and categories that sum to zero are left
    out.
    """
    total_income = Decimal("0")
    total_expenses = Decimal("0")
    per_category: dict[int, Decimal] = {}
    names: dict[int, str] = {}

    for row in transactions:
        amount = _as_decimal(row.amount)
        if row.type == TransactionType.income:
            total_income += amount
            continue
        if row.type != TransactionType.expense:
            continue
        total_expenses += amount
        per_category[row.category_id] = (
            per_category.get(row.category_id, Decimal("0")) + amount
        )
        names.setdefault(row.category_id, _category_name(row))

    breakdown = [
        CategoryTotal(category_id=cid, category_name=names[cid], total=total)
        for cid, total in per_category.items()
        if total > 0
    ]
    breakdown.sort(key=lambda item: (-item.total, item.category_name))

    return Summary(
        balance=total_income - total_expenses,
        total_income=total_income,
        total_expenses=total_expenses,
        category_breakdown=breakdown,
    )


def compute_budget_status(limit_amount: Any, spent: Any) -> BudgetStatus:
    limit = _as_decimal(limit_amount)
    used = _as_decimal(spent)
    percentage = used / limit * 100 if limit > 0 else Decimal("0")
    if percentage >= OVER_BUDGET_PERCENT:
        status = BudgetState.over_budget
    elif percentage >= NEAR_LIMIT_PERCENT:
        status = BudgetState.near_limit
    else:
        status = BudgetState.on_track
    return BudgetStatus(percentage=percentage, remaining=limit - used, status=status)
