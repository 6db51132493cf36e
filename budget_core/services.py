import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from budget_core import transforms
from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.dates import ensure_date, month_bounds, month_range
from budget_core.domain import BudgetSnapshot, MonthSummary, PoolPeriodSummary, Transaction
from budget_core.errors import EngineError
from budget_core.events import BUDGET_CHANGED, LEDGER_CHANGED, OVERSPENT, EventBus
from budget_core.flows import FlowKind, classify_flow, summarize_flows
from budget_core.functional import safe_account, safe_category
from budget_core.ledger import LedgerIndex
from budget_core.memo import MonthlyBudgetCache
from budget_core.periods import cash_flow_by_month, compute_period
from budget_core.pools import OnBudgetOnly, Pool, PoolSelector, classify_pool
from budget_core.quick_budget import QuickBudgetOption, apply_quick_budget

logger = logging.getLogger(__name__)

Validator = Callable[["BudgetService", str], Sequence[str]]
Calculator = Callable[["BudgetService", str, Dict[str, Any]], Dict[str, Any]]


class BudgetService:
    """Facade over one snapshot: pools, periods, months, flows and edits.

    validators: functions taking (service, month) -> Sequence[str]
    calculators: functions taking (service, month, acc) -> dict (partial results)

    Edits go through the service so that the month cache, which listens on
    ``bus``, drops exactly the months the edit can affect.
    """

    def __init__(
        self,
        snapshot: BudgetSnapshot,
        config: EngineConfig = DEFAULT_CONFIG,
        validators: Optional[Sequence[Validator]] = None,
        calculators: Optional[Sequence[Calculator]] = None,
        bus: Optional[EventBus] = None,
    ):
        self.config = config
        self.validators = DEFAULT_VALIDATORS if validators is None else validators
        self.calculators = DEFAULT_CALCULATORS if calculators is None else calculators
        self.bus = bus or EventBus()
        self.cache = MonthlyBudgetCache(snapshot, config)
        self.cache.subscribe(self.bus)

    @property
    def snapshot(self) -> BudgetSnapshot:
        return self.cache.snapshot

    @property
    def index(self) -> LedgerIndex:
        return self.cache.index

    def pool(self, selector: PoolSelector, include_closed: bool = True) -> Pool:
        return classify_pool(self.snapshot.accounts, selector, include_closed)

    def _as_pool(self, pool: Union[Pool, PoolSelector]) -> Pool:
        return pool if isinstance(pool, Pool) else self.pool(pool)

    def period(self, pool: Union[Pool, PoolSelector], start: str, end: str) -> PoolPeriodSummary:
        return compute_period(self._as_pool(pool), self.index, None, start, end, self.config)

    def cash_flow(self, pool: Union[Pool, PoolSelector], start_month: str, end_month: str) -> List[PoolPeriodSummary]:
        return cash_flow_by_month(self._as_pool(pool), self.index, month_range(start_month, end_month), self.config)

    def month(self, month: str) -> MonthSummary:
        return self.cache.month(month)

    def grid(self, start_month: str, end_month: str) -> List[MonthSummary]:
        return self.cache.grid(month_range(start_month, end_month))

    def classify(self, tx: Transaction, pool: Union[Pool, PoolSelector]) -> FlowKind:
        snapshot = self.snapshot
        return classify_flow(
            tx, self._as_pool(pool), self.index, snapshot.account_types(), snapshot.category_names(),
            config=self.config,
        )

    def flows(self, pool: Union[Pool, PoolSelector], start: str, end: str) -> Dict[FlowKind, float]:
        ensure_date(start)
        ensure_date(end)
        if start > end:
            raise ValueError(f"Period start {start} is after end {end}")
        snapshot = self.snapshot
        rows = [t for t in self.index.transactions if start <= t.date <= end]
        return summarize_flows(
            rows, self._as_pool(pool), self.index, snapshot.account_types(), snapshot.category_names(),
            config=self.config,
        )

    def add_transaction(self, tx: Transaction) -> BudgetSnapshot:
        snapshot = transforms.add_transaction(self.snapshot, tx)
        self.bus.publish(LEDGER_CHANGED, {"snapshot": snapshot, "month": tx.month})
        return snapshot

    def remove_transaction(self, transaction_id: str) -> BudgetSnapshot:
        tx = self.index.by_id(transaction_id)
        snapshot = transforms.remove_transaction(self.snapshot, transaction_id)
        self.bus.publish(LEDGER_CHANGED, {"snapshot": snapshot, "month": tx.month if tx else None})
        return snapshot

    def set_budgeted(self, month: str, category_id: str, amount: float) -> BudgetSnapshot:
        snapshot = transforms.set_budgeted(self.snapshot, month, category_id, amount)
        self.bus.publish(BUDGET_CHANGED, {"snapshot": snapshot, "month": month, "category_id": category_id})
        return snapshot

    def quick_budget(self, category_id: str, option: QuickBudgetOption, month: str, apply: bool = False) -> float:
        value = apply_quick_budget(self.cache, category_id, option, month)
        if apply:
            self.set_budgeted(month, category_id, value)
        return value

    def monthly_report(self, month: str) -> Dict[str, Any]:
        """Run validators and calculators and return an aggregated report with intermediate steps."""
        report: Dict[str, Any] = {
            "month": month,
            "validation": [],
            "steps": [],
            "result": {}
        }

        for v in self.validators:
            try:
                msgs = v(self, month)
            except EngineError as e:
                msgs = [f"validator_error: {e}"]
            report["validation"].append({"validator": getattr(v, "__name__", str(v)), "messages": list(msgs)})

        acc: Dict[str, Any] = {}
        for calc in self.calculators:
            out = calc(self, month, acc)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            if isinstance(out, dict):
                acc.update(out)

        for category_id, available in acc.get("overspent", {}).items():
            self.bus.publish(OVERSPENT, {"month": month, "category_id": category_id, "available": available})

        report["result"] = acc
        return report


def overspent_categories(service: BudgetService, month: str) -> List[str]:
    summary = service.month(month)
    categories = service.snapshot.categories

    def label(category_id: str) -> str:
        return safe_category(categories, category_id).map(lambda c: c.name).get_or_else(category_id)

    return [
        f"{label(cat.category_id)} is overspent by {-cat.available:.2f}"
        for master in summary.masters
        for cat in master.categories
        if cat.available <= -service.config.epsilon
    ]


def orphan_transfers(service: BudgetService, month: str) -> List[str]:
    accounts = service.snapshot.accounts

    def label(account_id: str) -> str:
        return safe_account(accounts, account_id).map(lambda a: a.name).get_or_else(account_id)

    return [
        f"transfer {tx.id} on {tx.date} in {label(tx.account_id)} has no matching leg"
        for tx in service.index.orphan_transfers()
        if tx.month == month
    ]


def unassigned_activity(service: BudgetService, month: str) -> List[str]:
    summary = service.month(month)
    msgs = []
    if summary.unassigned:
        msgs.append(f"{summary.unassigned:.2f} of activity on unknown categories")
    if summary.uncategorized:
        msgs.append(f"{summary.uncategorized:.2f} of activity without a category")
    return msgs


def month_totals(service: BudgetService, month: str, acc: Dict[str, Any]) -> Dict[str, Any]:
    summary = service.month(month)
    return {
        "budgeted": summary.total.budgeted,
        "activity": summary.total.activity,
        "available": summary.total.available,
        "overspent": {
            cat.category_id: cat.available
            for master in summary.masters
            for cat in master.categories
            if cat.available <= -service.config.epsilon
        },
    }


def on_budget_cash_flow(service: BudgetService, month: str, acc: Dict[str, Any]) -> Dict[str, Any]:
    start, end = month_bounds(month)
    period = service.period(OnBudgetOnly(), start, end)
    return {
        "opening_balance": period.opening_balance,
        "inflows": period.inflows,
        "outflows": period.outflows,
        "closing_balance": period.closing_balance,
    }


def on_budget_flows(service: BudgetService, month: str, acc: Dict[str, Any]) -> Dict[str, Any]:
    start, end = month_bounds(month)
    flows = service.flows(OnBudgetOnly(), start, end)
    return {"flows": {kind.value: amount for kind, amount in flows.items()}}


DEFAULT_VALIDATORS = (overspent_categories, orphan_transfers, unassigned_activity)
DEFAULT_CALCULATORS = (month_totals, on_budget_cash_flow, on_budget_flows)
