import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.dates import month_bounds
from budget_core.domain import BudgetSnapshot, Transaction, round_money
from budget_core.flows import FlowKind, summarize_flows
from budget_core.functional import compose
from budget_core.lazy import LedgerLine, by_date_range, iter_lines, iter_transactions
from budget_core.ledger import LedgerIndex
from budget_core.periods import net_worth
from budget_core.pools import Pool

logger = logging.getLogger(__name__)

Aggregator = Callable[..., Dict[str, Any]]


def _in_period(snapshot: BudgetSnapshot, start: Optional[str], end: Optional[str], pool: Optional[Pool]) -> Iterator[Transaction]:
    rows: Iterable[Transaction] = snapshot.transactions
    if start is not None or end is not None:
        rows = iter_transactions(rows, by_date_range(start or "0000-00-00", end or "9999-99-99"))
    if pool is not None:
        rows = (t for t in rows if t.account_id in pool)
    return iter(rows)


def _spending(lines: Iterable[LedgerLine]) -> Iterator[LedgerLine]:
    return (line for line in lines if line.transfer_target is None and line.amount < 0)


spending_lines = compose(_spending, iter_lines)


def spending_by_category(
    snapshot: BudgetSnapshot,
    start: Optional[str] = None,
    end: Optional[str] = None,
    pool: Optional[Pool] = None,
) -> List[Dict[str, Any]]:
    """Outflow per category, largest first. Transfers and uncategorized rows are left out."""
    categories = {c.id: c for c in snapshot.categories}
    totals: Dict[str, float] = defaultdict(float)
    for line in spending_lines(_in_period(snapshot, start, end, pool)):
        if line.category_id:
            totals[line.category_id] += -line.amount

    rows = []
    for category_id, total in totals.items():
        category = categories.get(category_id)
        rows.append({
            "category_id": category_id,
            "name": category.name if category else category_id,
            "master": category.master_category_name if category else "",
            "amount": round_money(total),
        })
    return sorted(rows, key=lambda r: r["amount"], reverse=True)


def spending_by_payee(
    snapshot: BudgetSnapshot,
    start: Optional[str] = None,
    end: Optional[str] = None,
    pool: Optional[Pool] = None,
) -> List[Dict[str, Any]]:
    totals: Dict[str, float] = defaultdict(float)
    counts: Dict[str, int] = defaultdict(int)
    for line in spending_lines(_in_period(snapshot, start, end, pool)):
        tx = line.transaction
        payee = tx.payee_name or tx.payee_id or "(no payee)"
        totals[payee] += -line.amount
        counts[payee] += 1
    rows = [
        {"payee": payee, "amount": round_money(total), "count": counts[payee]}
        for payee, total in totals.items()
    ]
    return sorted(rows, key=lambda r: r["amount"], reverse=True)


def income_vs_expense(
    snapshot: BudgetSnapshot,
    pool: Pool,
    months: Sequence[str],
    index: Optional[LedgerIndex] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Dict[str, Any]]:
    """Per-month totals by flow kind, plus ``income``, ``expense`` and ``net``.

    Interest counts as income. Savings transfers, card payments and
    ``other`` are reported under their own kinds and stay out of ``net``;
    a card's receiving leg is ``other`` only when
    ``config.other_for_internal_transfers`` is set.
    """
    index = index or LedgerIndex.build(snapshot.transactions, config)
    account_types = snapshot.account_types()
    names = snapshot.category_names()
    rows = []
    for month in months:
        flows = summarize_flows(index.by_month(month), pool, index, account_types, names, config=config)
        income = flows[FlowKind.INCOME] + flows[FlowKind.INTEREST]
        expense = -flows[FlowKind.EXPENSE]
        row: Dict[str, Any] = {"month": month}
        row.update({kind.value: amount for kind, amount in flows.items()})
        row["income"] = round_money(income)
        row["expense"] = round_money(expense)
        row["net"] = round_money(income - expense)
        rows.append(row)
    return rows


def uncategorized_transactions(
    snapshot: BudgetSnapshot,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> List[Transaction]:
    """Live rows with at least one line that has neither category nor transfer target."""
    found = []
    seen = set()
    for line in iter_lines(_in_period(snapshot, start, end, None)):
        if line.category_id or line.transfer_target is not None:
            continue
        if line.transaction.id not in seen:
            seen.add(line.transaction.id)
            found.append(line.transaction)
    return found


def net_worth_by_month(
    snapshot: BudgetSnapshot,
    months: Sequence[str],
    index: Optional[LedgerIndex] = None,
) -> List[Dict[str, Any]]:
    index = index or LedgerIndex.build(snapshot.transactions)
    rows = []
    for month in months:
        _, last_day = month_bounds(month)
        rows.append({"month": month, **net_worth(snapshot.accounts, index, last_day)})
    return rows


class ReportService:
    """Runs injected aggregators over a snapshot and records every step.

    An aggregator takes ``(snapshot, params, acc)`` and returns a dict that is
    merged into the accumulated result; two-argument aggregators that ignore
    ``acc`` are also accepted.
    """

    def __init__(self, aggregators: Sequence[Aggregator]):
        self.aggregators = aggregators

    def report(self, name: str, snapshot: BudgetSnapshot, **params: Any) -> Dict[str, Any]:
        report: Dict[str, Any] = {"report": name, "params": params, "steps": [], "result": {}}
        acc: Dict[str, Any] = {}
        for agg in self.aggregators:
            if len(inspect.signature(agg).parameters) >= 3:
                out = agg(snapshot, params, acc)
            else:
                out = agg(snapshot, params)
            report["steps"].append({"aggregator": getattr(agg, "__name__", str(agg)), "output": out})
            if isinstance(out, dict):
                acc.update(out)
        logger.debug("Report %s ran %d aggregators", name, len(self.aggregators))
        report["result"] = acc
        return report


def spending_by_category_step(snapshot: BudgetSnapshot, params: Dict[str, Any]) -> Dict[str, Any]:
    return {"by_category": spending_by_category(snapshot, params.get("start"), params.get("end"), params.get("pool"))}


def spending_by_payee_step(snapshot: BudgetSnapshot, params: Dict[str, Any]) -> Dict[str, Any]:
    return {"by_payee": spending_by_payee(snapshot, params.get("start"), params.get("end"), params.get("pool"))}


def total_spending_step(snapshot: BudgetSnapshot, params: Dict[str, Any], acc: Dict[str, Any]) -> Dict[str, Any]:
    rows = acc.get("by_category")
    if rows is None:
        rows = spending_by_category(snapshot, params.get("start"), params.get("end"), params.get("pool"))
    return {"total_spending": round_money(sum(r["amount"] for r in rows))}


def uncategorized_step(snapshot: BudgetSnapshot, params: Dict[str, Any]) -> Dict[str, Any]:
    rows = uncategorized_transactions(snapshot, params.get("start"), params.get("end"))
    return {"uncategorized_count": len(rows), "uncategorized_ids": [t.id for t in rows]}


DEFAULT_AGGREGATORS = (
    spending_by_category_step,
    spending_by_payee_step,
    total_spending_step,
    uncategorized_step,
)
