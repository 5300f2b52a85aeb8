"""AI-assisted budget allocation and spending advice.

The language model is an untrusted collaborator: its reply is mined for one
number per requested category and anything missing or malformed becomes 0,
so a bad reply never blocks the budgeting flow. Only a failure of the call
itself is reported, as a retryable ``AIServiceUnavailableError``.
"""
import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate

from ..config import Settings
from ..errors import AIServiceUnavailableError, ValidationError
from .money import ZERO, format_amount, round_money, to_decimal

logger = logging.getLogger(__name__)


class LookbackPeriod(str, Enum):
    ONE_MONTH = "1month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    ONE_YEAR = "1year"

    @property
    def months(self) -> int:
        return {"1month": 1, "3months": 3, "6months": 6, "1year": 12}[self.value]

    @property
    def label(self) -> str:
        return {
            "1month": "last month",
            "3months": "last 3 months",
            "6months": "last 6 months",
            "1year": "last year",
        }[self.value]

    @classmethod
    def parse(cls, value: Optional[str]) -> "LookbackPeriod":
        try:
            return cls(value)
        except ValueError:
            return cls.THREE_MONTHS


ADVICE_PERIODS = ("week", "month")


# Outcome of reading one category out of the model reply.
@dataclass(frozen=True)
class Parsed:
    amount: Decimal


@dataclass(frozen=True)
class Missing:
    pass


@dataclass(frozen=True)
class Unparsable:
    raw: Any


ParseResult = Union[Parsed, Missing, Unparsable]


ALLOCATION_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a sharp financial planning assistant. "
            "Return only valid JSON. Do not include markdown.",
        ),
        (
            "human",
            "Allocate a budget of {total_budget} across these categories: {categories_json}.\n"
            "User's {period_label} spending summary: {history_json}.\n"
            'Return only valid JSON in the format {{"allocation": {{"Category": amount}}}} '
            "with amounts summing exactly to {total_budget} and each amount having two decimals. "
            "No additional text.",
        ),
    ]
)

ADVICE_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a financial advisor. Be direct and professional, avoid emojis, "
            "and focus on actionable insights.",
        ),
        (
            "human",
            "Analyze the following spending data and provide structured financial advice "
            "using markdown formatting.\n\n"
            "Spending data for the last {period}:\n{spending_json}\n\n"
            "Use exactly these sections, each as a '## ' heading:\n"
            "## Analysis\n"
            "## Areas of Potential Overspending\n"
            "## Practical Ways to Save\n"
            "## Recommendations\n\n"
            "List savings tips as bullet points, one per line. "
            'Do not start with "Okay", "Here\'s", or similar phrases.',
        ),
    ]
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_NUMBER_NOISE_RE = re.compile(r"[,\s₹$€£]")


def _normalize_key(key: str) -> str:
    return re.sub(r"\s+", "", key).lower()


def _json_payload(text: str) -> Optional[dict]:
    """Find the JSON object in a model reply, tolerating fences and prose."""
    candidates = [text, _FENCE_RE.sub("", text.strip())]
    match = _OBJECT_RE.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (TypeError, ValueError):
            continue
        if isinstance(data, dict):
            return data
    return None


def parse_amount(raw: Any) -> ParseResult:
    if raw is None:
        return Missing()
    if isinstance(raw, str):
        raw_text = _NUMBER_NOISE_RE.sub("", raw)
        amount = to_decimal(raw_text) if raw_text else None
    else:
        amount = to_decimal(raw)
    if amount is None:
        return Unparsable(raw)
    return Parsed(round_money(amount))


def _lookup(payload: Mapping[str, Any], category: str) -> ParseResult:
    if category in payload:
        return parse_amount(payload[category])
    wanted = _normalize_key(category)
    for key, value in payload.items():
        if isinstance(key, str) and _normalize_key(key) == wanted:
            return parse_amount(value)
    return Missing()


def _as_amount(result: ParseResult) -> Decimal:
    if isinstance(result, Parsed):
        return max(result.amount, ZERO)
    return ZERO


def parse_allocation_response(text: Any, categories: Iterable[str]) -> Dict[str, Decimal]:
    """Pull one amount per requested category out of a model reply.

    Missing, unparsable and negative values all become 0. Keys the model
    invented for categories nobody asked for are ignored.
    """
    payload = _json_payload(text) if isinstance(text, str) else None
    if payload is None:
        logger.warning("AI reply contained no JSON object; using zero allocation")
        payload = {}
    nested = payload.get("allocation")
    if isinstance(nested, dict):
        payload = nested

    allocation: Dict[str, Decimal] = {}
    for category in categories:
        result = _lookup(payload, category)
        if not isinstance(result, Parsed):
            logger.info("AI allocation for %r: %s, using 0", category, type(result).__name__)
        allocation[category] = _as_amount(result)
    return allocation


def clean_categories(categories: Iterable[Any]) -> List[str]:
    cleaned: List[str] = []
    for category in categories:
        if not isinstance(category, str):
            continue
        label = category.strip()
        if label and label not in cleaned:
            cleaned.append(label)
    if not cleaned:
        raise ValidationError("At least one category is required for AI allocation.")
    return cleaned


def _message_text(message: Any) -> str:
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
        return "\n".join(parts)
    return ""


class AllocationAdvisor:
    """Asks a chat model for budget allocations and spending advice."""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    def _invoke(self, messages) -> str:
        try:
            result = self.llm.invoke(messages)
        except Exception as e:
            logger.error("LLM call failed: %s", e)
            raise AIServiceUnavailableError(f"AI service is currently unavailable: {e}") from e
        return _message_text(result)

    def request_allocation(
        self,
        total_budget: Any,
        categories: Iterable[Any],
        lookback: LookbackPeriod = LookbackPeriod.THREE_MONTHS,
        history: Optional[Mapping[str, Decimal]] = None,
    ) -> Dict[str, Decimal]:
        total = to_decimal(total_budget)
        if total is None or total <= 0:
            raise ValidationError("A valid total budget greater than zero is required.")
        total = round_money(total)
        labels = clean_categories(categories)

        history_json = json.dumps(
            {category: float(amount) for category, amount in (history or {}).items()},
            ensure_ascii=False,
        )
        messages = ALLOCATION_PROMPT.format_messages(
            total_budget=f"{total:.2f}",
            categories_json=json.dumps(labels, ensure_ascii=False),
            period_label=lookback.label,
            history_json=history_json,
        )

        reply = self._invoke(messages)
        allocation = parse_allocation_response(reply, labels)

        allocated = sum(allocation.values(), ZERO)
        if allocated != total:
            logger.warning(
                "AI allocation sums to %s, requested %s", format_amount(allocated), format_amount(total)
            )
        return allocation

    def request_allocation_or_zero(
        self,
        total_budget: Any,
        categories: Iterable[Any],
        lookback: LookbackPeriod = LookbackPeriod.THREE_MONTHS,
        history: Optional[Mapping[str, Decimal]] = None,
    ) -> Tuple[Dict[str, Decimal], bool]:
        """Like request_allocation, but an unavailable service yields zeros.

        Returns the allocation and whether the service actually answered.
        """
        labels = clean_categories(categories)
        try:
            return self.request_allocation(total_budget, labels, lookback, history), True
        except AIServiceUnavailableError:
            return {category: ZERO for category in labels}, False

    def request_advice(self, category_spend: Mapping[str, Decimal], period: str) -> str:
        if period not in ADVICE_PERIODS:
            raise ValidationError("Invalid period. Use 'week' or 'month'.")

        spending_json = json.dumps(
            {category: float(amount) for category, amount in category_spend.items()},
            indent=2,
            ensure_ascii=False,
        )
        advice = self._invoke(ADVICE_PROMPT.format_messages(period=period, spending_json=spending_json))
        return advice.strip() or "No AI insights available."


def build_chat_model(settings: Settings) -> BaseChatModel:
    if not settings.openai_api_key:
        raise AIServiceUnavailableError("Missing OPENAI_API_KEY")

    # Local import so the engine loads without the OpenAI client configured.
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.openai_model,
        temperature=0,
        api_key=settings.openai_api_key,
        timeout=settings.ai_timeout_seconds,
        max_retries=0,
    )
