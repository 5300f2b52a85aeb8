import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from langchain_core.language_models import BaseChatModel
from sqlmodel import Field, Session, SQLModel

from ..core.owner import get_current_owner
from ..database import get_session
from ..engine.aggregator import summarize_by_category
from ..engine.ai_adapter import (
    ADVICE_PERIODS,
    AllocationAdvisor,
    LookbackPeriod,
    build_chat_model,
    clean_categories,
)
from ..engine.alerts import evaluate_alerts
from ..engine.allocator import allocate_proportional
from ..engine.money import ZERO, to_wire, utcnow
from ..errors import AIServiceUnavailableError, ValidationError
from ..services.budget_store import BudgetStore, allocation_of
from ..services.expense_store import ExpenseStore, months_before

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)

# Window of spending used for proportional allocation and alert checks.
CURRENT_PERIOD_MONTHS = 1


class BudgetSetIn(SQLModel):
    total_amount: float = Field(gt=0)
    budget_name: Optional[str] = Field(default=None, max_length=100)
    manual_allocations: Optional[Dict[str, float]] = None
    budget_id: Optional[uuid.UUID] = None
    replace_current: bool = False


class BudgetRead(SQLModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    total_amount: float
    allocation: Dict[str, float]
    created_at: datetime
    updated_at: datetime


class BudgetSetOut(SQLModel):
    message: str
    budget: BudgetRead


class BudgetsOut(SQLModel):
    data: Optional[BudgetRead] = None
    all_budgets: List[BudgetRead] = []


class AlertsOut(SQLModel):
    message: str
    alerts: Dict[str, str]
    is_empty: bool = False


class AIAllocationIn(SQLModel):
    total_budget: float = Field(gt=0)
    categories: List[str]
    period: str = LookbackPeriod.THREE_MONTHS.value


class AIAllocationOut(SQLModel):
    allocation: Dict[str, float]
    status: str
    expenses_reviewed: int


class AdviceOut(SQLModel):
    message: str
    advice: str


def get_chat_model_factory(request: Request) -> Callable[[], BaseChatModel]:
    settings = request.app.state.settings
    return lambda: build_chat_model(settings)


@router.post(
    "/set",
    response_model=BudgetSetOut,
    status_code=status.HTTP_201_CREATED,
)
def set_budget(
    payload: BudgetSetIn,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    """Store a budget, allocating it from last month's spending when no manual split is given."""
    if payload.manual_allocations is not None:
        allocation = payload.manual_allocations
    else:
        expenses = ExpenseStore(session).spending_since(owner_id, CURRENT_PERIOD_MONTHS)
        allocation = allocate_proportional(payload.total_amount, summarize_by_category(expenses))

    budget = BudgetStore(session).upsert_budget(
        owner_id,
        payload.total_amount,
        allocation,
        name=payload.budget_name,
        budget_id=payload.budget_id,
        replace_current=payload.replace_current,
    )
    return BudgetSetOut(message="Budget set successfully", budget=BudgetRead.model_validate(budget))


@router.get(
    "",
    response_model=BudgetsOut,
    status_code=status.HTTP_200_OK,
)
def get_budgets(
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    result = BudgetStore(session).get_budget(owner_id)
    return BudgetsOut(
        data=BudgetRead.model_validate(result.current) if result.current else None,
        all_budgets=[BudgetRead.model_validate(b) for b in result.budgets],
    )


@router.delete(
    "/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    BudgetStore(session).delete_budget(owner_id, budget_id)
    return None


@router.get(
    "/alerts",
    response_model=AlertsOut,
)
def check_budget_alerts(
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
):
    current = BudgetStore(session).get_budget(owner_id).current
    if current is None:
        return AlertsOut(message="No budget set yet", alerts={}, is_empty=True)

    expenses = ExpenseStore(session).spending_since(owner_id, CURRENT_PERIOD_MONTHS)
    alerts = evaluate_alerts(allocation_of(current), summarize_by_category(expenses))
    return AlertsOut(message="Budget alerts", alerts=alerts)


@router.post(
    "/ai-allocation",
    response_model=AIAllocationOut,
)
def ai_budget_allocation(
    payload: AIAllocationIn,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
    model_factory: Callable[[], BaseChatModel] = Depends(get_chat_model_factory),
):
    """Suggest an allocation. An unreachable AI service yields zeros and status "retrying"."""
    categories = clean_categories(payload.categories)
    lookback = LookbackPeriod.parse(payload.period)

    expenses = ExpenseStore(session).spending_since(owner_id, lookback.months)
    history = summarize_by_category(expenses)

    try:
        advisor = AllocationAdvisor(model_factory())
    except AIServiceUnavailableError as e:
        logger.warning("AI allocation unavailable: %s", e.detail)
        allocation, answered = {category: ZERO for category in categories}, False
    else:
        allocation, answered = advisor.request_allocation_or_zero(
            payload.total_budget, categories, lookback, history
        )

    return AIAllocationOut(
        allocation=to_wire(allocation),
        status="ok" if answered else "retrying",
        expenses_reviewed=len(expenses),
    )


@router.get(
    "/advice",
    response_model=AdviceOut,
)
def get_budget_advice(
    period: str,
    session: Session = Depends(get_session),
    owner_id: uuid.UUID = Depends(get_current_owner),
    model_factory: Callable[[], BaseChatModel] = Depends(get_chat_model_factory),
):
    if period not in ADVICE_PERIODS:
        raise ValidationError("Invalid period. Use 'week' or 'month'.")

    now = utcnow()
    start = now - timedelta(days=7) if period == "week" else months_before(now, 1)
    expenses = ExpenseStore(session).list_expenses(owner_id, start=start)

    advice = AllocationAdvisor(model_factory()).request_advice(summarize_by_category(expenses), period)
    return AdviceOut(message=f"AI Financial Advice for last {period}", advice=advice)
