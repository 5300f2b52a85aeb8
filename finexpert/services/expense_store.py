import calendar
import logging
import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlmodel import Session, select

from ..engine.money import as_naive_utc, round_money, to_decimal, utcnow
from ..errors import NotFoundError, ValidationError
from ..models.expense import Expense

logger = logging.getLogger(__name__)


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock time ``months`` calendar months earlier, clamped to month end."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _validated_amount(amount: Any) -> float:
    value = to_decimal(amount)
    if value is None or value <= 0:
        raise ValidationError("Expense amount must be a positive number.")
    return float(round_money(value))


def _validated_category(category: Any) -> str:
    if not isinstance(category, str) or not category.strip():
        raise ValidationError("Expense category must not be empty.")
    return category.strip()


class ExpenseStore:
    """Owner-scoped expense records and the filtered queries that feed the aggregator."""

    def __init__(self, session: Session):
        self.session = session

    def _owned(self, owner_id: uuid.UUID, expense_id: uuid.UUID) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if expense is None or expense.owner_id != owner_id:
            raise NotFoundError("Expense not found.")
        return expense

    def add_expense(
        self,
        owner_id: uuid.UUID,
        amount: Any,
        category: Any,
        date: Optional[datetime] = None,
    ) -> Expense:
        now = utcnow()
        expense = Expense(
            id=uuid.uuid4(),
            owner_id=owner_id,
            amount=_validated_amount(amount),
            category=_validated_category(category),
            date=as_naive_utc(date) if date else now,
            created_at=now,
            updated_at=now,
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def get_expense(self, owner_id: uuid.UUID, expense_id: uuid.UUID) -> Expense:
        return self._owned(owner_id, expense_id)

    def list_expenses(
        self,
        owner_id: uuid.UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Expense]:
        stmt = select(Expense).where(Expense.owner_id == owner_id)
        if start is not None:
            stmt = stmt.where(Expense.date >= as_naive_utc(start))
        if end is not None:
            stmt = stmt.where(Expense.date <= as_naive_utc(end))
        stmt = stmt.order_by(Expense.date.asc())
        return list(self.session.exec(stmt).all())

    def spending_since(self, owner_id: uuid.UUID, months: int, now: Optional[datetime] = None) -> List[Expense]:
        return self.list_expenses(owner_id, start=months_before(now or utcnow(), months))

    def update_expense(
        self,
        owner_id: uuid.UUID,
        expense_id: uuid.UUID,
        amount: Any = None,
        category: Any = None,
    ) -> Expense:
        expense = self._owned(owner_id, expense_id)
        if amount is None and category is None:
            raise ValidationError("No fields to update")

        if amount is not None:
            expense.amount = _validated_amount(amount)
        if category is not None:
            expense.category = _validated_category(category)
        expense.updated_at = utcnow()

        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete_expense(self, owner_id: uuid.UUID, expense_id: uuid.UUID) -> None:
        expense = self._owned(owner_id, expense_id)
        self.session.delete(expense)
        self.session.commit()
        logger.info("Deleted expense %s for owner %s", expense_id, owner_id)
