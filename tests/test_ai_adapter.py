from decimal import Decimal

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage

from finexpert.config import Settings
from finexpert.engine.ai_adapter import (
    AllocationAdvisor,
    LookbackPeriod,
    Missing,
    Parsed,
    Unparsable,
    build_chat_model,
    parse_allocation_response,
    parse_amount,
)
from finexpert.errors import AIServiceUnavailableError, ValidationError

from conftest import UnreachableModel


class RecordingModel:
    def __init__(self, reply):
        self.reply = reply
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        return AIMessage(content=self.reply)


def test_missing_category_is_filled_with_zero():
    advisor = AllocationAdvisor(FakeListChatModel(responses=['{"allocation": {"Food": 500}}']))
    allocation = advisor.request_allocation(1000, ["Food", "Travel"], LookbackPeriod.ONE_MONTH)
    assert allocation == {"Food": Decimal("500"), "Travel": Decimal("0")}


def test_prompt_embeds_budget_categories_and_history():
    model = RecordingModel('{"Food": 60, "Rent": 40}')
    AllocationAdvisor(model).request_allocation(
        100, ["Food", "Rent"], LookbackPeriod.SIX_MONTHS, {"Food": Decimal("12.5")}
    )
    prompt = model.messages[-1].content
    assert "100.00" in prompt
    assert '["Food", "Rent"]' in prompt
    assert "last 6 months" in prompt
    assert '{"Food": 12.5}' in prompt


def test_service_failure_raises_retryable_error():
    advisor = AllocationAdvisor(UnreachableModel())
    with pytest.raises(AIServiceUnavailableError) as excinfo:
        advisor.request_allocation(100, ["Food"])
    assert excinfo.value.retryable is True


def test_service_failure_can_fall_back_to_zeros():
    allocation, answered = AllocationAdvisor(UnreachableModel()).request_allocation_or_zero(
        100, ["Food", "Rent"]
    )
    assert answered is False
    assert allocation == {"Food": Decimal("0"), "Rent": Decimal("0")}


def test_fallback_reports_success_when_service_answers():
    advisor = AllocationAdvisor(FakeListChatModel(responses=['{"Food": "100.00"}']))
    allocation, answered = advisor.request_allocation_or_zero(100, ["Food"])
    assert answered is True
    assert allocation == {"Food": Decimal("100.00")}


@pytest.mark.parametrize("total", [0, -1, "x"])
def test_request_allocation_rejects_bad_total(total):
    with pytest.raises(ValidationError):
        AllocationAdvisor(UnreachableModel()).request_allocation(total, ["Food"])


def test_request_allocation_rejects_empty_categories():
    with pytest.raises(ValidationError):
        AllocationAdvisor(UnreachableModel()).request_allocation(100, ["  ", ""])


def test_parse_handles_markdown_fences():
    text = '```json\n{"allocation": {"Food": 70.5, "Fun": 29.5}}\n```'
    assert parse_allocation_response(text, ["Food", "Fun"]) == {
        "Food": Decimal("70.50"),
        "Fun": Decimal("29.50"),
    }


def test_parse_handles_prose_around_json():
    text = 'Sure! Here it is: {"Food": 10} Hope that helps.'
    assert parse_allocation_response(text, ["Food"]) == {"Food": Decimal("10.00")}


def test_parse_matches_keys_ignoring_case_and_spaces():
    text = '{"eating out": 40, "GROCERIES": 60}'
    allocation = parse_allocation_response(text, ["Eating Out", "Groceries"])
    assert allocation == {"Eating Out": Decimal("40.00"), "Groceries": Decimal("60.00")}


def test_parse_folds_bad_values_to_zero():
    text = '{"Food": "lots", "Fun": -20, "Rent": null, "Gym": "$1,200.50"}'
    allocation = parse_allocation_response(text, ["Food", "Fun", "Rent", "Gym", "Travel"])
    assert allocation == {
        "Food": Decimal("0"),
        "Fun": Decimal("0"),
        "Rent": Decimal("0"),
        "Gym": Decimal("1200.50"),
        "Travel": Decimal("0"),
    }


def test_parse_ignores_unrequested_categories():
    assert parse_allocation_response('{"Food": 5, "Casino": 95}', ["Food"]) == {"Food": Decimal("5.00")}


def test_parse_without_json_gives_zeros():
    assert parse_allocation_response("I cannot help with that.", ["Food"]) == {"Food": Decimal("0")}


def test_parse_amount_tags():
    assert parse_amount(None) == Missing()
    assert parse_amount("abc") == Unparsable("abc")
    assert parse_amount("12.345") == Parsed(Decimal("12.35"))


def test_lookback_period_parse_defaults_to_three_months():
    assert LookbackPeriod.parse("1year").months == 12
    assert LookbackPeriod.parse("2weeks") is LookbackPeriod.THREE_MONTHS
    assert LookbackPeriod.parse(None) is LookbackPeriod.THREE_MONTHS


def test_request_advice_returns_model_text():
    advisor = AllocationAdvisor(FakeListChatModel(responses=["## Analysis\nSpend less on Fun."]))
    advice = advisor.request_advice({"Fun": Decimal("300")}, "week")
    assert advice.startswith("## Analysis")


def test_request_advice_rejects_unknown_period():
    with pytest.raises(ValidationError):
        AllocationAdvisor(UnreachableModel()).request_advice({}, "year")


def test_build_chat_model_requires_api_key():
    with pytest.raises(AIServiceUnavailableError):
        build_chat_model(Settings(openai_api_key=None))


def test_parse_treats_out_of_range_values_as_zero():
    allocation = parse_allocation_response('{"Food": 1e30, "Rent": 50}', ["Food", "Rent"])
    assert allocation == {"Food": Decimal("0"), "Rent": Decimal("50.00")}
    assert parse_amount("1e40") == Unparsable("1e40")


def test_out_of_range_reply_does_not_abort_allocation():
    advisor = AllocationAdvisor(FakeListChatModel(responses=['{"Food": "1e40"}']))
    allocation, answered = advisor.request_allocation_or_zero(100, ["Food"])
    assert answered is True
    assert allocation == {"Food": Decimal("0")}


def test_request_allocation_rejects_huge_total():
    with pytest.raises(ValidationError):
        AllocationAdvisor(UnreachableModel()).request_allocation(1e30, ["Food"])
