from pathlib import Path

import pytest

from budget_core.domain import AccountType, BudgetSnapshot, MonthlyBudgetEntry, Transaction
from budget_core.errors import InvalidDateFormat, MalformedRecord
from budget_core.memo import MonthlyBudgetCache
from budget_core.transforms import (
    account_balance,
    add_transaction,
    apply_budget_values,
    load_snapshot,
    remove_transaction,
    set_budgeted,
    snapshot_from_records,
    transaction_from_record,
)

SEED = Path(__file__).resolve().parent.parent / "data" / "seed.json"


def test_load_seed_snapshot():
    snapshot = load_snapshot(SEED)
    assert len(snapshot.accounts) == 4
    assert len(snapshot.master_categories) == 3
    assert [c.id for c in snapshot.categories] == ["groceries", "rent", "vacation"]
    assert len(snapshot.transactions) == 11
    assert len(snapshot.budget_entries) == 4
    assert snapshot.account_types()["C"] is AccountType.CREDIT_CARD


def test_nested_categories_inherit_master():
    snapshot = load_snapshot(SEED)
    vacation = next(c for c in snapshot.categories if c.id == "vacation")
    assert vacation.master_category_id == "MC2"
    assert vacation.full_name == "Savings Goals: Vacation"


def test_monthly_budgets_are_flattened():
    snapshot = load_snapshot(SEED)
    march = [e for e in snapshot.budget_entries if e.month == "2024-03"]
    assert {e.category_id for e in march} == {"groceries", "vacation"}
    groceries = next(e for e in march if e.category_id == "groceries")
    assert groceries.overspending_handling == "Confined"


def test_split_transactions_are_parsed():
    snapshot = load_snapshot(SEED)
    split = next(t for t in snapshot.transactions if t.id == "t8")
    assert split.is_split
    assert [s.category_id for s in split.sub_transactions] == ["groceries", "vacation"]


def test_snake_and_camel_case_records_agree():
    camel = transaction_from_record({
        "entityId": "t1", "date": "2024-03-05T00:00:00", "accountId": "A", "amount": -5,
        "categoryId": "food", "transferAccountId": None,
    })
    snake = transaction_from_record({
        "id": "t1", "date": "2024-03-05", "account_id": "A", "amount": -5.0, "category_id": "food",
    })
    assert camel == snake


def test_missing_required_id_fails_fast():
    with pytest.raises(MalformedRecord) as exc:
        snapshot_from_records({"transactions": [{"id": "t1", "date": "2024-03-01", "amount": 1}]})
    assert exc.value.kind == "transaction"
    assert exc.value.field == "account_id"

    with pytest.raises(MalformedRecord):
        snapshot_from_records({"accounts": [{"name": "No id"}]})
    with pytest.raises(MalformedRecord):
        snapshot_from_records({"accounts": ["not a record"]})


def test_malformed_dates_are_rejected():
    with pytest.raises(InvalidDateFormat):
        transaction_from_record({"id": "t1", "date": "03/05/2024", "account_id": "A", "amount": 1})
    with pytest.raises(InvalidDateFormat):
        snapshot_from_records({"budget_entries": [{"month": "2024-3", "category_id": "c"}]})


def test_unknown_account_type_is_not_fatal():
    snapshot = snapshot_from_records({"accounts": [{"id": "X", "name": "Gold", "type": "Bullion vault"}]})
    assert snapshot.accounts[0].type is AccountType.OTHER_ASSET


def test_edits_return_new_snapshots():
    snapshot = BudgetSnapshot(budget_entries=(
        MonthlyBudgetEntry("2024-03", "food", 10.0, "Confined"),
        MonthlyBudgetEntry("2024-03", "food", 20.0),
        MonthlyBudgetEntry("2024-04", "food", 30.0),
    ))
    edited = set_budgeted(snapshot, "2024-03", "food", 99.0)
    march = [e for e in edited.budget_entries if e.month == "2024-03"]
    assert [e.budgeted for e in march] == [99.0]
    assert len(snapshot.budget_entries) == 3

    both = apply_budget_values(snapshot, "2024-05", {"food": 1.0, "rent": 2.0})
    may = {e.category_id: e.budgeted for e in both.budget_entries if e.month == "2024-05"}
    assert may == {"food": 1.0, "rent": 2.0}


def test_add_and_remove_transaction():
    snapshot = add_transaction(BudgetSnapshot(), Transaction("t1", "2024-03-01", "A", 100.0))
    snapshot = add_transaction(snapshot, Transaction("t2", "2024-03-02", "A", -40.0))
    assert account_balance(snapshot.transactions, "A") == 60.0

    removed = remove_transaction(snapshot, "t2")
    assert len(removed.transactions) == 2
    assert account_balance(removed.transactions, "A") == 100.0


def test_deleted_budget_entries_do_not_count():
    snapshot = snapshot_from_records({
        "masterCategories": [{
            "entityId": "MC1", "name": "Everyday",
            "subCategories": [{"entityId": "groceries", "name": "Groceries"}, {"entityId": "rent", "name": "Rent"}],
        }],
        "monthlyBudgets": [{
            "month": "2024-01-01",
            "monthlySubCategoryBudgets": [
                {"categoryId": "groceries", "budgeted": 50.0},
                {"categoryId": "rent", "budgeted": 1000.0, "isTombstone": True},
            ],
        }],
    })
    rent = next(e for e in snapshot.budget_entries if e.category_id == "rent")
    assert rent.is_tombstone

    cache = MonthlyBudgetCache(snapshot)
    assert cache.month("2024-01").category("rent").budgeted == 0.0
    assert cache.available("rent", "2024-02") == 0.0
    assert cache.month("2024-01").total.budgeted == 50.0

    restored = MonthlyBudgetCache(set_budgeted(snapshot, "2024-01", "rent", 200.0))
    assert restored.month("2024-01").category("rent").budgeted == 200.0
