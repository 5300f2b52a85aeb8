import uuid
from decimal import Decimal

import pytest

from finexpert.errors import NotFoundError, ValidationError
from finexpert.services.budget_store import BudgetStore, allocation_of


def test_upsert_creates_budget_with_default_name(session, owner_id):
    budget = BudgetStore(session).upsert_budget(owner_id, 400, {"Food": Decimal("300"), "Transport": 100})
    assert budget.name == "Budget"
    assert budget.total_amount == 400.0
    assert budget.allocation == {"Food": 300.0, "Transport": 100.0}
    assert allocation_of(budget) == {"Food": Decimal("300.00"), "Transport": Decimal("100.00")}


@pytest.mark.parametrize("total", [0, -5, None, "abc"])
def test_upsert_rejects_bad_total(session, owner_id, total):
    with pytest.raises(ValidationError):
        BudgetStore(session).upsert_budget(owner_id, total, {"Food": 1})


def test_upsert_rejects_negative_allocation(session, owner_id):
    with pytest.raises(ValidationError):
        BudgetStore(session).upsert_budget(owner_id, 100, {"Food": -1})


def test_upsert_requires_allocation(session, owner_id):
    with pytest.raises(ValidationError):
        BudgetStore(session).upsert_budget(owner_id, 100, None)


def test_multiple_budgets_and_current(session, owner_id):
    store = BudgetStore(session)
    first = store.upsert_budget(owner_id, 100, {"Food": 100}, name="March")
    second = store.upsert_budget(owner_id, 200, {"Fun": 200}, name="April")

    result = store.get_budget(owner_id)
    assert result.current.id == second.id
    assert [b.id for b in result.budgets] == [second.id, first.id]


def test_get_budget_without_budgets(session, owner_id):
    result = BudgetStore(session).get_budget(owner_id)
    assert result.current is None
    assert result.budgets == []


def test_upsert_by_id_overwrites_without_merging(session, owner_id):
    store = BudgetStore(session)
    budget = store.upsert_budget(owner_id, 100, {"Food": 60, "Fun": 40}, name="Plan")
    updated = store.upsert_budget(owner_id, 50, {"Rent": 50}, name="Plan", budget_id=budget.id)

    assert updated.id == budget.id
    assert updated.allocation == {"Rent": 50.0}
    assert len(store.list_budgets(owner_id)) == 1


def test_upsert_by_id_of_other_owner_fails(session, owner_id):
    store = BudgetStore(session)
    budget = store.upsert_budget(owner_id, 100, {"Food": 100})
    with pytest.raises(NotFoundError):
        store.upsert_budget(uuid.uuid4(), 100, {"Food": 100}, budget_id=budget.id)


def test_replace_current_keeps_single_budget(session, owner_id):
    store = BudgetStore(session)
    store.upsert_budget(owner_id, 100, {"Food": 100}, replace_current=True)
    store.upsert_budget(owner_id, 300, {"Fun": 300}, replace_current=True)

    budgets = store.list_budgets(owner_id)
    assert len(budgets) == 1
    assert budgets[0].total_amount == 300.0
    assert budgets[0].allocation == {"Fun": 300.0}


def test_blank_name_falls_back_to_default(session, owner_id):
    budget = BudgetStore(session).upsert_budget(owner_id, 10, {"A": 10}, name="   ")
    assert budget.name == "Budget"


def test_delete_budget(session, owner_id):
    store = BudgetStore(session)
    budget = store.upsert_budget(owner_id, 100, {"Food": 100})
    store.delete_budget(owner_id, budget.id)
    assert store.list_budgets(owner_id) == []


def test_delete_budget_of_other_owner_fails(session, owner_id):
    store = BudgetStore(session)
    budget = store.upsert_budget(owner_id, 100, {"Food": 100})
    with pytest.raises(NotFoundError):
        store.delete_budget(uuid.uuid4(), budget.id)
    assert len(store.list_budgets(owner_id)) == 1


def test_budgets_are_owner_scoped(session, owner_id):
    store = BudgetStore(session)
    store.upsert_budget(owner_id, 100, {"Food": 100})
    assert store.list_budgets(uuid.uuid4()) == []


def test_upsert_rejects_allocation_above_total(session, owner_id):
    store = BudgetStore(session)
    with pytest.raises(ValidationError):
        store.upsert_budget(owner_id, 100, {"Food": 5000})
    with pytest.raises(ValidationError):
        store.upsert_budget(owner_id, 100, {"Food": 60, "Fun": "40.01"})
    assert store.list_budgets(owner_id) == []


def test_upsert_accepts_allocation_below_total(session, owner_id):
    budget = BudgetStore(session).upsert_budget(owner_id, 100, {"Food": 60})
    assert budget.allocation == {"Food": 60.0}


def test_upsert_rejects_huge_total(session, owner_id):
    with pytest.raises(ValidationError):
        BudgetStore(session).upsert_budget(owner_id, 1e30, {"Food": 1})


def test_timestamps_are_stored_as_naive_utc(session, owner_id):
    budget = BudgetStore(session).upsert_budget(owner_id, 10, {"A": 10})
    assert budget.created_at.tzinfo is None
    assert budget.updated_at.tzinfo is None


def test_current_budget_is_deterministic_on_equal_timestamps(session, owner_id):
    store = BudgetStore(session)
    first = store.upsert_budget(owner_id, 10, {"A": 10})
    second = store.upsert_budget(owner_id, 20, {"B": 20})
    second.created_at, second.updated_at = first.created_at, first.updated_at
    session.add(second)
    session.commit()

    expected = max([first.id, second.id], key=lambda budget_id: budget_id.hex)
    assert store.get_budget(owner_id).current.id == expected
    assert [b.id for b in store.list_budgets(owner_id)][0] == expected
