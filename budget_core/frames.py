"""pandas views of engine results, shaped for grid and chart consumers."""
from typing import Iterable, Optional, Sequence

import pandas as pd

from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.domain import BudgetSnapshot, MonthSummary, PoolPeriodSummary, Transaction
from budget_core.flows import FlowKind, classify_all
from budget_core.ledger import LedgerIndex
from budget_core.pools import Pool

GRID_COLUMNS = ["month", "master_category_id", "master", "category_id", "category", "budgeted", "activity", "available"]
CASH_FLOW_COLUMNS = ["start", "end", "opening_balance", "inflows", "outflows", "net_flow", "closing_balance", "transaction_count"]


def budget_grid_frame(summaries: Iterable[MonthSummary], snapshot: BudgetSnapshot) -> pd.DataFrame:
    """Long-format budget grid: one row per (month, rolled-up category)."""
    names = snapshot.category_names()
    rows = []
    for summary in summaries:
        for master in summary.masters:
            for cat in master.categories:
                rows.append({
                    "month": summary.month,
                    "master_category_id": master.master_category_id,
                    "master": master.name,
                    "category_id": cat.category_id,
                    "category": names.get(cat.category_id, cat.category_id),
                    "budgeted": cat.budgeted,
                    "activity": cat.activity,
                    "available": cat.available,
                })
    return pd.DataFrame(rows, columns=GRID_COLUMNS)


def available_pivot(grid: pd.DataFrame, value: str = "available") -> pd.DataFrame:
    """Categories down, months across, as the budget screen lays them out."""
    if grid.empty:
        return pd.DataFrame()
    return grid.pivot_table(
        index=["master", "category"], columns="month", values=value, aggfunc="sum", fill_value=0.0, sort=False
    )


def cash_flow_frame(periods: Sequence[PoolPeriodSummary]) -> pd.DataFrame:
    rows = [
        {
            "start": p.start,
            "end": p.end,
            "opening_balance": p.opening_balance,
            "inflows": p.inflows,
            "outflows": p.outflows,
            "net_flow": p.net_flow,
            "closing_balance": p.closing_balance,
            "transaction_count": p.transaction_count,
        }
        for p in periods
    ]
    return pd.DataFrame(rows, columns=CASH_FLOW_COLUMNS)


def transactions_frame(
    transactions: Iterable[Transaction],
    pool: Optional[Pool] = None,
    index: Optional[LedgerIndex] = None,
    snapshot: Optional[BudgetSnapshot] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> pd.DataFrame:
    """Live transactions as rows; a ``flow`` column is added when a pool is given."""
    transactions = [t for t in transactions if not t.is_tombstone]
    df = pd.DataFrame(
        [
            {
                "id": t.id,
                "date": t.date,
                "month": t.month,
                "account_id": t.account_id,
                "amount": t.amount,
                "category_id": t.category_id,
                "payee": t.payee_name or t.payee_id,
            }
            for t in transactions
        ],
        columns=["id", "date", "month", "account_id", "amount", "category_id", "payee"],
    )
    if pool is not None and snapshot is not None:
        index = index or LedgerIndex.build(snapshot.transactions, config)
        kinds = classify_all(
            transactions, pool, index, snapshot.account_types(), snapshot.category_names(), config=config
        )
        df = df[df["account_id"].isin(pool.account_ids)].copy()
        df["flow"] = df["id"].map(lambda tx_id: kinds[tx_id].value)
    return df


def flow_totals_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Signed totals per month and flow kind from :func:`transactions_frame` output."""
    kinds = [k.value for k in FlowKind]
    if df.empty or "flow" not in df.columns:
        return pd.DataFrame(columns=kinds)
    totals = df.groupby(["month", "flow"])["amount"].sum().unstack(fill_value=0.0)
    return totals.reindex(columns=kinds, fill_value=0.0).round(2)
