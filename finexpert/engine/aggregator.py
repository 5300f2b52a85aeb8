from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from ..errors import ValidationError
from .money import ZERO, to_decimal

BUCKETINGS = ("day", "week")


@dataclass(frozen=True)
class CategorySummary:
    category: str
    total_spent: Decimal


@dataclass(frozen=True)
class PeriodSummary:
    bucket: date
    total: Decimal


def _field(expense: Any, name: str) -> Any:
    if isinstance(expense, dict):
        return expense.get(name)
    return getattr(expense, name, None)


def _amount(expense: Any) -> Decimal:
    raw = _field(expense, "amount")
    amount = to_decimal(raw)
    if amount is None:
        raise ValidationError(f"Invalid expense amount: {raw!r}")
    if amount <= 0:
        raise ValidationError(f"Expense amount must be positive, got {raw!r}")
    return amount


def _category(expense: Any) -> str:
    category = _field(expense, "category")
    if not isinstance(category, str) or not category.strip():
        raise ValidationError(f"Invalid expense category: {category!r}")
    return category


def _bucket(expense: Any, bucketing: str) -> date:
    raw = _field(expense, "date")
    if isinstance(raw, datetime):
        day = raw.date()
    elif isinstance(raw, date):
        day = raw
    else:
        raise ValidationError(f"Invalid expense date: {raw!r}")
    if bucketing == "week":
        return day - timedelta(days=day.weekday())
    return day


def summarize_by_category(expenses: Iterable[Any]) -> Dict[str, Decimal]:
    """Total spend per category label, in first-seen order.

    Labels are used verbatim, so "Food" and "food" are separate buckets.
    """
    totals: Dict[str, Decimal] = {}
    for expense in expenses:
        category = _category(expense)
        totals[category] = totals.get(category, ZERO) + _amount(expense)
    return totals


def category_summaries(expenses: Iterable[Any]) -> List[CategorySummary]:
    return [
        CategorySummary(category=category, total_spent=total)
        for category, total in summarize_by_category(expenses).items()
    ]


def summarize_by_period(expenses: Iterable[Any], bucketing: str = "day") -> List[PeriodSummary]:
    """Total spend per day, or per ISO week keyed by its Monday, oldest first."""
    if bucketing not in BUCKETINGS:
        raise ValidationError(f"Invalid bucketing {bucketing!r}. Use 'day' or 'week'.")

    totals: Dict[date, Decimal] = {}
    for expense in expenses:
        bucket = _bucket(expense, bucketing)
        totals[bucket] = totals.get(bucket, ZERO) + _amount(expense)
    return [PeriodSummary(bucket=bucket, total=totals[bucket]) for bucket in sorted(totals)]
