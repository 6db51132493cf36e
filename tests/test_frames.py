from pathlib import Path

import pytest

from budget_core.frames import (
    CASH_FLOW_COLUMNS,
    GRID_COLUMNS,
    available_pivot,
    budget_grid_frame,
    cash_flow_frame,
    flow_totals_frame,
    transactions_frame,
)
from budget_core.ledger import LedgerIndex
from budget_core.memo import MonthlyBudgetCache
from budget_core.periods import cash_flow_by_month
from budget_core.pools import OnBudgetOnly, classify_pool
from budget_core.transforms import load_snapshot

SEED = Path(__file__).resolve().parent.parent / "data" / "seed.json"


@pytest.fixture
def snapshot():
    return load_snapshot(SEED)


def test_budget_grid_frame(snapshot):
    cache = MonthlyBudgetCache(snapshot)
    grid = budget_grid_frame(cache.grid(["2024-02", "2024-03"]), snapshot)
    assert list(grid.columns) == GRID_COLUMNS
    assert len(grid) == 6
    march = grid[grid["month"] == "2024-03"].set_index("category_id")
    assert march.loc["groceries", "available"] == 20.0
    assert march.loc["vacation", "master"] == "Savings Goals"


def test_available_pivot(snapshot):
    cache = MonthlyBudgetCache(snapshot)
    pivot = available_pivot(budget_grid_frame(cache.grid(["2024-02", "2024-03"]), snapshot))
    assert list(pivot.columns) == ["2024-02", "2024-03"]
    assert pivot.loc[("Everyday", "Groceries"), "2024-02"] == 50.0
    assert pivot.loc[("Everyday", "Groceries"), "2024-03"] == 20.0


def test_empty_grid(snapshot):
    grid = budget_grid_frame([], snapshot)
    assert grid.empty
    assert available_pivot(grid).empty


def test_cash_flow_frame(snapshot):
    pool = classify_pool(snapshot.accounts, OnBudgetOnly())
    periods = cash_flow_by_month(pool, LedgerIndex.build(snapshot.transactions), ["2024-02", "2024-03"])
    df = cash_flow_frame(periods)
    assert list(df.columns) == CASH_FLOW_COLUMNS
    assert df["closing_balance"].tolist() == [800.0, 2131.25]
    assert df["net_flow"].tolist() == [800.0, 1331.25]


def test_flow_totals_frame(snapshot):
    pool = classify_pool(snapshot.accounts, OnBudgetOnly())
    df = transactions_frame(snapshot.transactions, pool, snapshot=snapshot)
    assert "t11" not in df["id"].tolist()
    totals = flow_totals_frame(df)
    assert totals.loc["2024-02", "income"] == 1000.0
    assert totals.loc["2024-03", "ccPayment"] == -120.0
    assert totals.loc["2024-03", "interest"] == 1.25


def test_transactions_frame_without_pool(snapshot):
    df = transactions_frame(snapshot.transactions)
    assert "flow" not in df.columns
    assert flow_totals_frame(df).empty
