import logging
from decimal import Decimal
from typing import Any, Dict, Mapping

from ..errors import InsufficientHistoryError, ValidationError
from .money import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


def allocate_proportional(
    total_budget: Any,
    category_spend: Mapping[str, Any],
    reconcile: bool = True,
) -> Dict[str, Decimal]:
    """Split ``total_budget`` across categories by their share of past spend.

    Each share is rounded to cents. With ``reconcile`` the rounding
    remainder goes to the largest allocation so the result sums exactly to
    the total; categories that had no spend always stay at zero.
    """
    total = to_decimal(total_budget)
    if total is None or total <= 0:
        raise ValidationError("A valid total budget greater than zero is required.")
    total = round_money(total)

    if not category_spend:
        raise InsufficientHistoryError("No past expenses found. Cannot auto-allocate budget.")

    spend: Dict[str, Decimal] = {}
    for category, raw in category_spend.items():
        value = to_decimal(raw)
        if value is None or value < 0:
            raise ValidationError(f"Invalid spend for {category!r}: {raw!r}")
        spend[category] = value

    spent_total = sum(spend.values(), ZERO)
    if spent_total == 0:
        raise InsufficientHistoryError("Past expenses sum to zero. Cannot auto-allocate budget.")

    allocation = {
        category: round_money(value / spent_total * total)
        for category, value in spend.items()
    }

    if reconcile:
        drift = total - sum(allocation.values(), ZERO)
        if drift:
            # max() keeps the first of equal candidates, so ties resolve by insertion order.
            target = max(allocation, key=lambda category: allocation[category])
            allocation[target] += drift
            logger.debug("Assigned rounding drift %s to %r", drift, target)

    return allocation
