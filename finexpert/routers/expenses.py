import uuid
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Field, Session, SQLModel

from ..core.owner import get_current_owner
from ..database import get_session
from ..engine.aggregator import category_summaries, summarize_by_period
from ..services.expense_store import ExpenseStore

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
)

# ─────────────────────────────
#   SCHEMAS
# ─────────────────────────────


class ExpenseCreate(SQLModel):
    amount: float = Field(gt=0)
    category: str = Field(min_length=1, max_length=100)
    date: Optional[datetime] = None


class ExpenseUpdate(SQLModel):
    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)


class ExpenseRead(SQLModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    amount: float
    category: str
    date: datetime
    created_at: datetime
    updated_at: datetime


class CategorySummaryRead(SQLModel):
    category: str
    total_spent: float


class PeriodSummaryRead(SQLModel):
    bucket: date
    total: float


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────


@router.post(
    "",
    response_model=ExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense_in: ExpenseCreate,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    return ExpenseStore(session).add_expense(
        owner_id, expense_in.amount, expense_in.category, expense_in.date
    )


@router.get(
    "",
    response_model=List[ExpenseRead],
)
def list_expenses(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    """List the owner's expenses, oldest first, optionally within [start, end]."""
    return ExpenseStore(session).list_expenses(owner_id, start=start, end=end)


@router.get(
    "/summary/categories",
    response_model=List[CategorySummaryRead],
)
def category_summary(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    expenses = ExpenseStore(session).list_expenses(owner_id, start=start, end=end)
    return [
        CategorySummaryRead(category=s.category, total_spent=float(s.total_spent))
        for s in category_summaries(expenses)
    ]


@router.get(
    "/summary/periods",
    response_model=List[PeriodSummaryRead],
)
def period_summary(
    bucketing: str = "day",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    expenses = ExpenseStore(session).list_expenses(owner_id, start=start, end=end)
    return [
        PeriodSummaryRead(bucket=s.bucket, total=float(s.total))
        for s in summarize_by_period(expenses, bucketing)
    ]


@router.get(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def get_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    return ExpenseStore(session).get_expense(owner_id, expense_id)


@router.patch(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def update_expense(
    expense_id: uuid.UUID,
    expense_in: ExpenseUpdate,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    """Change amount and/or category. Date and owner are fixed at creation."""
    return ExpenseStore(session).update_expense(
        owner_id, expense_id, amount=expense_in.amount, category=expense_in.category
    )


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_expense(
    expense_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    ExpenseStore(session).delete_expense(owner_id, expense_id)
    return None
