"""QuickBudget fills: suggested ``budgeted`` values for a category and month.

Fills never mutate anything; :func:`budget_core.transforms.set_budgeted`
applies a chosen value to a snapshot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from budget_core.dates import ensure_month, months_before, previous_month
from budget_core.domain import round_money
from budget_core.lazy import iter_lines
from budget_core.memo import MonthlyBudgetCache
from budget_core.monthly import budget_lookup

logger = logging.getLogger(__name__)

DEFAULT_AVERAGE_MONTHS = 3


class QuickBudgetOption(str, Enum):
    BUDGETED_LAST_MONTH = "budgetedLastMonth"
    SPENT_LAST_MONTH = "spentLastMonth"
    AVERAGE_SPENT = "averageSpent"
    AVERAGE_BUDGETED = "averageBudgeted"
    UNDERFUNDED = "underfunded"
    ZERO = "zero"


@dataclass(frozen=True)
class QuickBudgetResult:
    category_id: str
    category_name: str
    previous_value: float
    new_value: float
    option: QuickBudgetOption

    @property
    def changed(self) -> bool:
        return round_money(self.previous_value) != round_money(self.new_value)


def _round_half_up(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def spent_in_month(cache: MonthlyBudgetCache, category_id: str, month: str) -> float:
    """Outflows of a category in ``month`` as a positive number; transfers excluded."""
    total = 0.0
    for line in iter_lines(cache.index.by_month(month)):
        if line.category_id == category_id and line.amount < 0 and line.transfer_target is None:
            total += -line.amount
    return round_money(total)


def budgeted_in_month(cache: MonthlyBudgetCache, category_id: str, month: str) -> float:
    entry = budget_lookup(cache.snapshot.budget_entries, month).get(category_id)
    return entry.budgeted if entry is not None else 0.0


def fill_budgeted_last_month(cache: MonthlyBudgetCache, category_id: str, month: str) -> float:
    return budgeted_in_month(cache, category_id, previous_month(month))


def fill_spent_last_month(cache: MonthlyBudgetCache, category_id: str, month: str) -> float:
    return spent_in_month(cache, category_id, previous_month(month))


def fill_average_spent(
    cache: MonthlyBudgetCache, category_id: str, month: str, months: int = DEFAULT_AVERAGE_MONTHS
) -> float:
    """Whole-unit average over the preceding months that had any spending."""
    values = [spent_in_month(cache, category_id, m) for m in months_before(month, months)]
    values = [v for v in values if v > 0]
    if not values:
        return 0.0
    return _round_half_up(sum(values) / len(values))


def fill_average_budgeted(
    cache: MonthlyBudgetCache, category_id: str, month: str, months: int = DEFAULT_AVERAGE_MONTHS
) -> float:
    values = [budgeted_in_month(cache, category_id, m) for m in months_before(month, months)]
    values = [v for v in values if v > 0]
    if not values:
        return 0.0
    return _round_half_up(sum(values) / len(values))


def fill_underfunded(cache: MonthlyBudgetCache, category_id: str, month: str) -> float:
    """Amount that brings a negative ``available`` back to zero.

    The current budgeted value is already part of ``available``, so the fill
    is the new total to budget, not an increment.
    """
    available = cache.available(category_id, month)
    if available >= 0:
        return budgeted_in_month(cache, category_id, month)
    return round_money(budgeted_in_month(cache, category_id, month) - available)


def apply_quick_budget(
    cache: MonthlyBudgetCache,
    category_id: str,
    option: QuickBudgetOption,
    month: str,
    average_months: int = DEFAULT_AVERAGE_MONTHS,
) -> float:
    ensure_month(month)
    option = QuickBudgetOption(option)
    if option is QuickBudgetOption.BUDGETED_LAST_MONTH:
        return fill_budgeted_last_month(cache, category_id, month)
    if option is QuickBudgetOption.SPENT_LAST_MONTH:
        return fill_spent_last_month(cache, category_id, month)
    if option is QuickBudgetOption.AVERAGE_SPENT:
        return fill_average_spent(cache, category_id, month, average_months)
    if option is QuickBudgetOption.AVERAGE_BUDGETED:
        return fill_average_budgeted(cache, category_id, month, average_months)
    if option is QuickBudgetOption.UNDERFUNDED:
        return fill_underfunded(cache, category_id, month)
    return 0.0


def apply_quick_budget_batch(
    cache: MonthlyBudgetCache,
    category_ids: Iterable[str],
    option: QuickBudgetOption,
    month: str,
    average_months: int = DEFAULT_AVERAGE_MONTHS,
) -> List[QuickBudgetResult]:
    """Fill several categories at once; unknown category ids are skipped."""
    names = cache.snapshot.category_names()
    results = []
    for category_id in category_ids:
        if category_id not in names:
            logger.debug("Quick budget skips unknown category %s", category_id)
            continue
        results.append(QuickBudgetResult(
            category_id=category_id,
            category_name=names[category_id] or "Unknown",
            previous_value=budgeted_in_month(cache, category_id, month),
            new_value=apply_quick_budget(cache, category_id, option, month, average_months),
            option=QuickBudgetOption(option),
        ))
    return results


def _live_category_ids(cache: MonthlyBudgetCache) -> List[str]:
    return [c.id for c in cache.snapshot.categories if not c.is_tombstone]


def fill_all_underfunded(cache: MonthlyBudgetCache, month: str) -> List[QuickBudgetResult]:
    return apply_quick_budget_batch(cache, _live_category_ids(cache), QuickBudgetOption.UNDERFUNDED, month)


def fill_all_from_last_month(cache: MonthlyBudgetCache, month: str) -> List[QuickBudgetResult]:
    return apply_quick_budget_batch(cache, _live_category_ids(cache), QuickBudgetOption.BUDGETED_LAST_MONTH, month)


def quick_budget_preview(
    cache: MonthlyBudgetCache,
    category_id: str,
    month: str,
    average_months: Optional[int] = None,
) -> Dict[QuickBudgetOption, float]:
    """Every fill for one category, without applying any of them."""
    months = average_months or DEFAULT_AVERAGE_MONTHS
    return {
        option: apply_quick_budget(cache, category_id, option, month, months)
        for option in QuickBudgetOption
    }
