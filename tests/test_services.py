from pathlib import Path

import pytest

from budget_core.domain import Transaction
from budget_core.errors import EngineError, InvalidDateFormat
from budget_core.events import OVERSPENT
from budget_core.flows import FlowKind
from budget_core.pools import OnBudgetOnly, SingleAccount
from budget_core.quick_budget import QuickBudgetOption
from budget_core.services import BudgetService
from budget_core.transforms import load_snapshot

SEED = Path(__file__).resolve().parent.parent / "data" / "seed.json"


@pytest.fixture
def service():
    return BudgetService(load_snapshot(SEED))


def test_period_for_on_budget_pool(service):
    summary = service.period(OnBudgetOnly(), "2024-03-01", "2024-03-31")
    assert summary.opening_balance == 800.0
    assert summary.inflows == 1501.25
    assert summary.outflows == 170.0
    assert summary.closing_balance == 2131.25
    assert summary.transaction_count == 8


def test_single_account_period(service):
    summary = service.period(SingleAccount("A"), "2024-03-01", "2024-03-31")
    assert summary.outflows == 470.0
    assert summary.closing_balance == 1830.0


def test_month_and_grid(service):
    march = service.month("2024-03")
    assert march.category("groceries").available == 20.0
    assert march.category("vacation").available == 10.0
    assert march.uncategorized == 1501.25
    assert (march.total.budgeted, march.total.activity, march.total.available) == (150.0, -170.0, 30.0)
    assert service.month("2024-02").system == {"Category/__ImmediateIncome__": 1000.0}
    assert [m.month for m in service.grid("2024-01", "2024-04")] == ["2024-01", "2024-02", "2024-03", "2024-04"]


def test_classify_and_flows(service):
    tx = service.index.by_id("t9")
    assert service.classify(tx, OnBudgetOnly()) is FlowKind.CC_PAYMENT
    flows = service.flows(OnBudgetOnly(), "2024-03-01", "2024-03-31")
    assert flows[FlowKind.INTEREST] == 1.25


def test_monthly_report(service):
    rpt = service.monthly_report("2024-03")
    assert rpt["month"] == "2024-03"
    messages = {v["validator"]: v["messages"] for v in rpt["validation"]}
    assert messages["overspent_categories"] == []
    assert messages["orphan_transfers"] == []
    assert messages["unassigned_activity"] == ["1501.25 of activity without a category"]
    assert [s["calculator"] for s in rpt["steps"]] == ["month_totals", "on_budget_cash_flow", "on_budget_flows"]
    assert rpt["result"]["available"] == 30.0
    assert rpt["result"]["inflows"] == 1501.25
    assert rpt["result"]["flows"]["ccPayment"] == -120.0


def test_edits_refresh_months_and_publish_overspending(service):
    alerts = []
    service.bus.subscribe(OVERSPENT, lambda event, payload: alerts.append(payload) or {})

    service.add_transaction(Transaction("v1", "2024-03-29", "A", -100.0, category_id="vacation"))
    assert service.month("2024-03").category("vacation").available == -90.0

    rpt = service.monthly_report("2024-03")
    assert rpt["result"]["overspent"] == {"vacation": -90.0}
    assert alerts == [{"month": "2024-03", "category_id": "vacation", "available": -90.0}]
    overspent = next(v for v in rpt["validation"] if v["validator"] == "overspent_categories")
    assert overspent["messages"] == ["Vacation is overspent by 90.00"]


def test_quick_budget_apply_covers_overspending(service):
    service.add_transaction(Transaction("v1", "2024-03-29", "A", -100.0, category_id="vacation"))
    value = service.quick_budget("vacation", QuickBudgetOption.UNDERFUNDED, "2024-03", apply=True)
    assert value == 140.0
    assert service.month("2024-03").category("vacation").available == 0.0
    assert service.month("2024-04").category("vacation").available == 0.0


def test_remove_transaction(service):
    service.remove_transaction("t3")
    assert service.month("2024-03").category("groceries").available == 70.0
    assert service.index.by_id("t3") is None


def test_validator_engine_errors_are_reported():
    def broken(service, month):
        raise InvalidDateFormat("nope")

    svc = BudgetService(load_snapshot(SEED), validators=[broken], calculators=[])
    rpt = svc.monthly_report("2024-03")
    assert rpt["validation"][0]["messages"][0].startswith("validator_error:")
    assert rpt["result"] == {}


def test_other_validator_errors_propagate():
    def buggy(service, month):
        raise KeyError("boom")

    svc = BudgetService(load_snapshot(SEED), validators=[buggy], calculators=[])
    with pytest.raises(KeyError):
        svc.monthly_report("2024-03")
    assert not issubclass(KeyError, EngineError)


def test_orphan_transfer_is_reported_with_account_name(service):
    service.add_transaction(Transaction("o1", "2024-03-12", "A", -25.0, transfer_account_id="B"))
    rpt = service.monthly_report("2024-03")
    orphans = next(v for v in rpt["validation"] if v["validator"] == "orphan_transfers")
    assert orphans["messages"] == ["transfer o1 on 2024-03-12 in Checking has no matching leg"]


def test_flows_rejects_malformed_and_reversed_ranges(service):
    with pytest.raises(InvalidDateFormat):
        service.flows(OnBudgetOnly(), "2024-3-1", "2024-03-31")
    with pytest.raises(ValueError):
        service.flows(OnBudgetOnly(), "2024-03-31", "2024-03-01")
