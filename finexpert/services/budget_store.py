import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlmodel import Session, select

from ..engine.money import ZERO, round_money, to_decimal, to_wire, utcnow
from ..errors import NotFoundError, ValidationError
from ..models.budget import DEFAULT_BUDGET_NAME, Budget

logger = logging.getLogger(__name__)


@dataclass
class CurrentBudgets:
    current: Optional[Budget]
    budgets: List[Budget] = field(default_factory=list)


def _validated_total(total_amount: Any) -> Decimal:
    total = to_decimal(total_amount)
    if total is None or total <= 0:
        raise ValidationError("Invalid or missing budget amount.")
    return round_money(total)


def _validated_allocation(allocation: Optional[Mapping[str, Any]]) -> Dict[str, Decimal]:
    if allocation is None:
        raise ValidationError("An allocation is required; run an allocator first.")
    cleaned: Dict[str, Decimal] = {}
    for category, raw in allocation.items():
        if not isinstance(category, str) or not category.strip():
            raise ValidationError(f"Invalid category label: {category!r}")
        amount = to_decimal(raw)
        if amount is None or amount < 0:
            raise ValidationError(f"Invalid allocation for {category!r}: {raw!r}")
        cleaned[category] = round_money(amount)
    return cleaned


def _clean_name(name: Optional[str]) -> str:
    if isinstance(name, str) and name.strip():
        return name.strip()
    return DEFAULT_BUDGET_NAME


def allocation_of(budget: Budget) -> Dict[str, Decimal]:
    """Stored allocation as Decimals; malformed entries are dropped."""
    allocation: Dict[str, Decimal] = {}
    for category, raw in (budget.allocation or {}).items():
        amount = to_decimal(raw)
        if amount is None:
            logger.warning("Budget %s has non-numeric allocation for %r", budget.id, category)
            continue
        allocation[category] = round_money(amount)
    return allocation


class BudgetStore:
    """Owner-scoped persistence for budgets. Each write is a single commit."""

    def __init__(self, session: Session):
        self.session = session

    def _newest_first(self, owner_id: uuid.UUID):
        return (
            select(Budget)
            .where(Budget.owner_id == owner_id)
            .order_by(Budget.updated_at.desc(), Budget.created_at.desc(), Budget.id.desc())
        )

    def _owned(self, owner_id: uuid.UUID, budget_id: uuid.UUID, for_update: bool = False) -> Budget:
        stmt = select(Budget).where(Budget.id == budget_id, Budget.owner_id == owner_id)
        if for_update:
            stmt = stmt.with_for_update()
        budget = self.session.exec(stmt).first()
        if budget is None:
            raise NotFoundError("Budget not found.")
        return budget

    def upsert_budget(
        self,
        owner_id: uuid.UUID,
        total_amount: Any,
        allocation: Optional[Mapping[str, Any]],
        name: Optional[str] = None,
        budget_id: Optional[uuid.UUID] = None,
        replace_current: bool = False,
    ) -> Budget:
        """Create or overwrite a budget.

        - ``budget_id``: overwrite that budget (must belong to ``owner_id``).
        - ``replace_current``: overwrite the owner's current budget, creating
          one if there is none.
        - otherwise: create a new budget alongside the existing ones.

        Overwrites replace every field at once; allocations are never merged.
        """
        total = _validated_total(total_amount)
        cleaned = _validated_allocation(allocation)
        allocated = sum(cleaned.values(), ZERO)
        if allocated > total:
            raise ValidationError(
                f"Allocations add up to {allocated}, more than the budget total of {total}."
            )
        now = utcnow()

        if budget_id is not None:
            budget = self._owned(owner_id, budget_id, for_update=True)
        elif replace_current:
            budget = self.session.exec(self._newest_first(owner_id).limit(1).with_for_update()).first()
        else:
            budget = None

        if budget is None:
            budget = Budget(id=uuid.uuid4(), owner_id=owner_id, created_at=now)
            logger.info("Creating budget %s for owner %s", budget.id, owner_id)
        else:
            logger.info("Overwriting budget %s for owner %s", budget.id, owner_id)

        budget.name = _clean_name(name)
        budget.total_amount = float(total)
        budget.allocation = to_wire(cleaned)
        budget.updated_at = now

        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def list_budgets(self, owner_id: uuid.UUID) -> List[Budget]:
        return list(self.session.exec(self._newest_first(owner_id)).all())

    def get_budget(self, owner_id: uuid.UUID) -> CurrentBudgets:
        budgets = self.list_budgets(owner_id)
        return CurrentBudgets(current=budgets[0] if budgets else None, budgets=budgets)

    def delete_budget(self, owner_id: uuid.UUID, budget_id: uuid.UUID) -> None:
        budget = self._owned(owner_id, budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info("Deleted budget %s for owner %s", budget_id, owner_id)
