"""Memoized month-over-month chaining of :func:`calculate_month`.

Every month's full category set is computed at most once per cache version.
Months are walked forward from the earliest month the snapshot touches (or
from the latest already-cached month), so rendering an N-month grid costs N
month computations instead of N².
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.dates import ensure_month, next_month, previous_month
from budget_core.domain import BudgetSnapshot, MonthlyBudgetEntry, MonthSummary
from budget_core.events import BUDGET_CHANGED, LEDGER_CHANGED, Event, EventBus
from budget_core.ledger import LedgerIndex
from budget_core.monthly import budget_lookup, calculate_month, carry_forward

logger = logging.getLogger(__name__)


class MonthlyBudgetCache:
    """Month summaries of one snapshot, keyed by ``(version, month)``."""

    def __init__(self, snapshot: BudgetSnapshot, config: EngineConfig = DEFAULT_CONFIG):
        self._config = config
        self._version = 0
        self._months: Dict[Tuple[int, str], MonthSummary] = {}
        self.hits = 0
        self.misses = 0
        self._load(snapshot)

    def _load(self, snapshot: BudgetSnapshot) -> None:
        self._snapshot = snapshot
        self._index = LedgerIndex.build(snapshot.transactions, self._config)
        entries: Dict[str, List[MonthlyBudgetEntry]] = defaultdict(list)
        for entry in snapshot.budget_entries:
            if not entry.is_tombstone:
                entries[entry.month].append(entry)
        self._entries = dict(entries)
        months = set(self._index.months()) | set(self._entries)
        self._first_month: Optional[str] = min(months) if months else None

    @property
    def version(self) -> int:
        return self._version

    @property
    def snapshot(self) -> BudgetSnapshot:
        return self._snapshot

    @property
    def index(self) -> LedgerIndex:
        return self._index

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def first_month(self) -> Optional[str]:
        return self._first_month

    def cached_months(self) -> Tuple[str, ...]:
        return tuple(sorted(m for v, m in self._months if v == self._version))

    def month(self, month: str) -> MonthSummary:
        ensure_month(month)
        cached = self._months.get((self._version, month))
        if cached is not None:
            self.hits += 1
            return cached

        first = self._first_month
        if first is None or month <= first:
            return self._compute(month, None)

        # walk back to the first month whose predecessor is known
        start = month
        while start > first and (self._version, previous_month(start)) not in self._months:
            start = previous_month(start)

        current = start
        while True:
            prev = self._months.get((self._version, previous_month(current))) if current > first else None
            summary = self._compute(current, prev)
            if current == month:
                return summary
            current = next_month(current)

    def _compute(self, month: str, prev: Optional[MonthSummary]) -> MonthSummary:
        before = previous_month(month)
        prev_entries = budget_lookup(self._entries.get(before, ()), before)
        config = self._config

        def prior(category_id: str) -> float:
            if prev is None:
                return 0.0
            summary = prev.categories.get(category_id)
            if summary is None:
                return 0.0
            return carry_forward(summary.available, month, prev_entries.get(category_id), config)

        result = calculate_month(
            month,
            self._index.by_month(month),
            self._entries.get(month, ()),
            self._snapshot.categories,
            self._snapshot.master_categories,
            prior,
            config,
        )
        self.misses += 1
        self._months[(self._version, month)] = result
        logger.debug("Computed %s (version %d)", month, self._version)
        return result

    def available(self, category_id: str, month: str) -> float:
        summary = self.month(month).category(category_id)
        return summary.available if summary is not None else 0.0

    def grid(self, months: Iterable[str]) -> List[MonthSummary]:
        return [self.month(m) for m in months]

    def invalidate(self, from_month: Optional[str] = None) -> None:
        """Forget cached months.

        With ``from_month`` only that month and later ones are dropped, since
        a change in one month only flows forward through carry-over.
        Otherwise the version is bumped and everything is recomputed.
        """
        if from_month is None:
            self._version += 1
            self._months.clear()
            logger.debug("Cache invalidated, now at version %d", self._version)
            return
        ensure_month(from_month)
        stale = [key for key in self._months if key[1] >= from_month]
        for key in stale:
            del self._months[key]
        logger.debug("Dropped %d cached months from %s", len(stale), from_month)

    def replace(self, snapshot: BudgetSnapshot, from_month: Optional[str] = None) -> None:
        """Swap in a new snapshot; ``from_month`` keeps months before it."""
        old_first = self._first_month
        self._load(snapshot)
        if from_month is None or (self._first_month is not None and old_first is not None and self._first_month < old_first):
            self.invalidate()
        else:
            self.invalidate(from_month)

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(LEDGER_CHANGED, self._on_change)
        bus.subscribe(BUDGET_CHANGED, self._on_change)

    def unsubscribe(self, bus: EventBus) -> None:
        bus.unsubscribe(LEDGER_CHANGED, self._on_change)
        bus.unsubscribe(BUDGET_CHANGED, self._on_change)

    def _on_change(self, event: Event, payload: dict) -> dict:
        snapshot = payload.get("snapshot")
        from_month = payload.get("month")
        if snapshot is not None:
            self.replace(snapshot, from_month)
        else:
            self.invalidate(from_month)
        return {"version": self._version, "from_month": from_month}
