from pathlib import Path

import pytest

from budget_core.config import DEFAULT_CONFIG
from budget_core.pools import OnBudgetOnly, Pool, classify_pool
from budget_core.reports import (
    DEFAULT_AGGREGATORS,
    ReportService,
    income_vs_expense,
    net_worth_by_month,
    spending_by_category,
    spending_by_payee,
    uncategorized_transactions,
)
from budget_core.transforms import load_snapshot

SEED = Path(__file__).resolve().parent.parent / "data" / "seed.json"


@pytest.fixture
def snapshot():
    return load_snapshot(SEED)


def test_spending_by_category_counts_split_lines(snapshot):
    rows = spending_by_category(snapshot, "2024-03-01", "2024-03-31")
    assert [(r["category_id"], r["amount"]) for r in rows] == [("groceries", 130.0), ("vacation", 40.0)]
    assert rows[0]["master"] == "Everyday"


def test_spending_by_category_whole_ledger_skips_tombstones(snapshot):
    rows = {r["category_id"]: r["amount"] for r in spending_by_category(snapshot)}
    assert rows == {"groceries": 330.0, "vacation": 40.0}


def test_spending_by_category_limited_to_pool(snapshot):
    rows = spending_by_category(snapshot, pool=Pool.of({"A"}))
    assert rows == [{"category_id": "groceries", "name": "Groceries", "master": "Everyday", "amount": 250.0}]


def test_spending_by_payee(snapshot):
    rows = spending_by_payee(snapshot, "2024-03-01", "2024-03-31")
    assert rows == [
        {"payee": "Supermarket", "amount": 120.0, "count": 2},
        {"payee": "Market", "amount": 50.0, "count": 1},
    ]


def test_uncategorized_transactions(snapshot):
    assert [t.id for t in uncategorized_transactions(snapshot)] == ["t4", "t7"]
    assert uncategorized_transactions(snapshot, "2024-02-01", "2024-02-29") == []


def test_income_vs_expense(snapshot):
    pool = classify_pool(snapshot.accounts, OnBudgetOnly())
    feb, mar = income_vs_expense(snapshot, pool, ["2024-02", "2024-03"])
    assert (feb["income"], feb["expense"], feb["net"]) == (1000.0, 200.0, 800.0)
    # the card's receiving leg falls through to the sign rule
    assert (mar["income"], mar["expense"], mar["net"]) == (1621.25, 170.0, 1451.25)
    assert mar["interest"] == 1.25
    assert mar["ccPayment"] == -120.0
    assert mar["transferToSavings"] == -300.0
    assert mar["transferFromSavings"] == 300.0
    assert mar["other"] == 0.0


def test_income_vs_expense_with_internal_transfers_as_other(snapshot):
    pool = classify_pool(snapshot.accounts, OnBudgetOnly())
    labelled = DEFAULT_CONFIG.with_overrides(other_for_internal_transfers=True)
    (mar,) = income_vs_expense(snapshot, pool, ["2024-03"], config=labelled)
    assert mar["other"] == 120.0
    assert (mar["income"], mar["expense"], mar["net"]) == (1501.25, 170.0, 1331.25)


def test_net_worth_by_month(snapshot):
    feb, mar = net_worth_by_month(snapshot, ["2024-02", "2024-03"])
    assert feb == {"month": "2024-02", "assets": 800.0, "liabilities": 0.0, "net_worth": 800.0}
    assert mar["net_worth"] == 2131.25


def test_report_service_runs_aggregators_in_sequence(snapshot):
    svc = ReportService(DEFAULT_AGGREGATORS)
    rpt = svc.report("spending", snapshot, start="2024-03-01", end="2024-03-31")
    assert rpt["report"] == "spending"
    assert [s["aggregator"] for s in rpt["steps"]] == [
        "spending_by_category_step", "spending_by_payee_step", "total_spending_step", "uncategorized_step",
    ]
    assert rpt["result"]["total_spending"] == 170.0
    assert rpt["result"]["uncategorized_ids"] == ["t4", "t7"]


def test_report_service_accepts_custom_aggregators(snapshot):
    def count_accounts(snapshot, params):
        return {"accounts": len(snapshot.accounts)}

    def double(snapshot, params, acc):
        return {"double": acc["accounts"] * 2}

    rpt = ReportService([count_accounts, double]).report("custom", snapshot)
    assert rpt["result"] == {"accounts": 4, "double": 8}
