"""Budgeted / activity / available for every category of one month.

``calculate_month`` is stateless: the balance a category brings in from the
previous month comes from the caller through ``prior_month_available``.
Chaining months together (and memoizing them) is the job of
:class:`budget_core.memo.MonthlyBudgetCache`.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from budget_core.config import DEFAULT_CONFIG, CarryOverPolicy, EngineConfig
from budget_core.dates import ensure_month
from budget_core.domain import (
    Category,
    CategoryMonthSummary,
    MasterCategory,
    MasterCategorySummary,
    MonthlyBudgetEntry,
    MonthSummary,
    Transaction,
    round_money,
)
from budget_core.lazy import iter_lines

logger = logging.getLogger(__name__)

PriorAvailable = Callable[[str], float]

UNKNOWN_MASTER_ID = "unknown"
TOTAL_ID = "total"
CONFINED = "confined"


def no_prior(category_id: str) -> float:
    return 0.0


def budget_lookup(entries: Iterable[MonthlyBudgetEntry], month: str) -> Dict[str, MonthlyBudgetEntry]:
    """Live entries of ``month`` keyed by category id; a later duplicate wins."""
    lookup: Dict[str, MonthlyBudgetEntry] = {}
    for entry in entries:
        if entry.month != month or entry.is_tombstone:
            continue
        if entry.category_id in lookup:
            logger.debug("Duplicate budget entry for %s in %s, keeping the last one", entry.category_id, month)
        lookup[entry.category_id] = entry
    return lookup


def is_excluded_master(master: MasterCategory, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    return (
        master.is_tombstone
        or master.hidden
        or master.name in config.hidden_master_names
        or config.is_reserved(master.name)
        or config.is_reserved(master.id)
    )


def is_excluded_category(
    category: Category,
    masters_by_id: Mapping[str, MasterCategory],
    config: EngineConfig = DEFAULT_CONFIG,
) -> bool:
    if category.is_tombstone or category.hidden:
        return True
    if config.is_reserved(category.name) or config.is_reserved(category.id):
        return True
    master = masters_by_id.get(category.master_category_id)
    return master is not None and is_excluded_master(master, config)


def carry_forward(
    available: float,
    into_month: str,
    entry: Optional[MonthlyBudgetEntry] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> float:
    """Balance a category brings into ``into_month``.

    Positive balances always carry. A negative balance follows the
    configured :class:`CarryOverPolicy`; ``entry`` is the previous month's
    budget entry, whose ``overspending_handling`` decides under
    ``PER_ENTRY``. Negative balances never cross the fiscal-year start.
    """
    if available > -config.epsilon:
        return available
    if config.fiscal_year_start_month is not None and int(into_month[5:7]) == config.fiscal_year_start_month:
        return 0.0
    if config.carry_over is CarryOverPolicy.RESET_NEGATIVE:
        return 0.0
    if config.carry_over is CarryOverPolicy.PER_ENTRY:
        handling = (entry.overspending_handling or "") if entry is not None else ""
        return available if handling.lower() == CONFINED else 0.0
    return available


def _sum_summaries(
    summaries: Iterable[CategoryMonthSummary],
) -> Tuple[float, float, float]:
    budgeted = activity = available = 0.0
    for s in summaries:
        budgeted += s.budgeted
        activity += s.activity
        available += s.available
    return round_money(budgeted), round_money(activity), round_money(available)


def calculate_month(
    month: str,
    transactions: Iterable[Transaction],
    budget_entries: Iterable[MonthlyBudgetEntry],
    categories: Iterable[Category],
    master_categories: Iterable[MasterCategory],
    prior_month_available: Optional[PriorAvailable] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> MonthSummary:
    """Compute every category of ``month`` and roll them up.

    Transactions outside ``month`` are ignored, so the full ledger may be
    passed in. Every known category appears in ``MonthSummary.categories``;
    only the ones not excluded by :func:`is_excluded_category` count toward
    master and grand totals.
    """
    ensure_month(month)
    categories = tuple(categories)
    masters = tuple(master_categories)
    known = {c.id for c in categories}
    prior = prior_month_available or no_prior

    activity: Dict[str, float] = defaultdict(float)
    system: Dict[str, float] = defaultdict(float)
    unassigned = 0.0
    uncategorized = 0.0
    for line in iter_lines(transactions):
        if line.date[:7] != month:
            continue
        category_id = line.category_id
        if not category_id:
            if line.transfer_target is None:
                uncategorized += line.amount
        elif category_id in known:
            activity[category_id] += line.amount
        elif config.is_reserved(category_id):
            system[category_id] += line.amount
        else:
            unassigned += line.amount

    if unassigned:
        logger.debug("%s: %.2f of activity on unknown categories", month, unassigned)

    entries = budget_lookup(budget_entries, month)
    for category_id in set(entries) - known:
        logger.debug("%s: budget entry for unknown category %s ignored", month, category_id)

    summaries: Dict[str, CategoryMonthSummary] = {}
    for category in categories:
        entry = entries.get(category.id)
        budgeted = entry.budgeted if entry is not None else 0.0
        spent = activity.get(category.id, 0.0)
        summaries[category.id] = CategoryMonthSummary(
            category_id=category.id,
            month=month,
            budgeted=round_money(budgeted),
            activity=round_money(spent),
            available=round_money(prior(category.id) + budgeted + spent),
        )

    masters_by_id = {m.id: m for m in masters}
    grouped: Dict[str, List[CategoryMonthSummary]] = defaultdict(list)
    for category in sorted(categories, key=lambda c: c.sortable_index):
        if is_excluded_category(category, masters_by_id, config):
            continue
        master_id = category.master_category_id
        if master_id not in masters_by_id:
            master_id = UNKNOWN_MASTER_ID
        grouped[master_id].append(summaries[category.id])

    rollups: List[MasterCategorySummary] = []
    for master in sorted(masters, key=lambda m: (m.sortable_index, m.name)):
        if master.id not in grouped:
            continue
        budgeted, spent, available = _sum_summaries(grouped[master.id])
        rollups.append(MasterCategorySummary(
            master.id, master.name, month, budgeted, spent, available, tuple(grouped[master.id])
        ))
    if UNKNOWN_MASTER_ID in grouped:
        budgeted, spent, available = _sum_summaries(grouped[UNKNOWN_MASTER_ID])
        rollups.append(MasterCategorySummary(
            UNKNOWN_MASTER_ID, "Unknown", month, budgeted, spent, available, tuple(grouped[UNKNOWN_MASTER_ID])
        ))

    total = CategoryMonthSummary(
        TOTAL_ID,
        month,
        round_money(sum(m.budgeted for m in rollups)),
        round_money(sum(m.activity for m in rollups)),
        round_money(sum(m.available for m in rollups)),
    )

    return MonthSummary(
        month=month,
        categories=summaries,
        masters=tuple(rollups),
        total=total,
        unassigned=round_money(unassigned),
        uncategorized=round_money(uncategorized),
        system={k: round_money(v) for k, v in system.items()},
    )
