import logging
from decimal import Decimal
from typing import Any, Dict, Mapping

from .money import ZERO, format_amount, to_decimal

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = Decimal("0.8")


def alert_message(category: str, spent: Decimal, allocated: Decimal) -> str:
    return (
        f"Warning! You have spent {format_amount(spent)} "
        f"out of {format_amount(allocated)} in {category}."
    )


def evaluate_alerts(allocation: Mapping[str, Any], current_spend: Mapping[str, Any]) -> Dict[str, str]:
    """Warn for every allocated category whose spend is above 80% of its allocation."""
    alerts: Dict[str, str] = {}
    for category, raw_allocated in allocation.items():
        allocated = to_decimal(raw_allocated)
        if allocated is None:
            logger.warning("Skipping non-numeric allocation for %r: %r", category, raw_allocated)
            continue
        if allocated <= 0:
            continue

        spent = to_decimal(current_spend.get(category, ZERO))
        if spent is None:
            spent = ZERO

        if spent / allocated > ALERT_THRESHOLD:
            alerts[category] = alert_message(category, spent, allocated)
    return alerts
