"""Decimal helpers shared by the engine components.

Amounts travel as plain JSON numbers and are stored as floats, but every
calculation in the engine runs on ``Decimal`` rounded half-up to cents.
"""
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")
# Largest amount accepted anywhere; sums of many such amounts still round to cents.
MAX_AMOUNT = Decimal("999999999999.99")


def utcnow() -> datetime:
    # Naive UTC, matching what SQLite hands back.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(moment: datetime) -> datetime:
    """Convert an aware timestamp to naive UTC; naive ones are taken as UTC already."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert ``value`` to a finite Decimal within +/-MAX_AMOUNT, or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite() or abs(result) > MAX_AMOUNT:
        return None
    return result


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Render an amount the way users typed it: 250 stays 250, 12.5 becomes 12.50."""
    if value == value.to_integral_value():
        return str(int(value))
    return f"{round_money(value):.2f}"


def to_wire(allocation: Mapping[str, Decimal]) -> Dict[str, float]:
    return {category: float(round_money(amount)) for category, amount in allocation.items()}
