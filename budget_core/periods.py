"""Opening/closing balances and in-range flows for a pool of accounts.

Balances always include every leg that belongs to a pool member. Inflows and
outflows leave out transfers that stay inside the pool, so moving money
between two pooled accounts never looks like income or spending.

Sums are accumulated as decimals so that splitting a range in two gives a
closing balance that matches the next opening balance to the cent.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.dates import ensure_date, month_bounds
from budget_core.domain import Account, PoolPeriodSummary, Transaction
from budget_core.ledger import LedgerIndex
from budget_core.pools import Pool, is_internal_line

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _dec(amount: float) -> Decimal:
    return Decimal(str(amount))


def _money(value: Decimal) -> float:
    return float(value.quantize(_CENT)) + 0.0


def compute_period(
    pool: Pool,
    index: LedgerIndex,
    transactions: Optional[Iterable[Transaction]],
    start: str,
    end: str,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PoolPeriodSummary:
    """Summarize the pool over the inclusive range ``start..end``.

    Args:
        pool: Accounts treated as one unit.
        index: Ledger index used to resolve transfer targets.
        transactions: Rows to aggregate; ``None`` means every indexed row.
        start: First day of the range, ``YYYY-MM-DD``.
        end: Last day of the range, ``YYYY-MM-DD``.
        config: Supplies the epsilon below which an amount is dust.

    Returns:
        A :class:`PoolPeriodSummary`. ``transaction_count`` counts every
        in-range row of the pool, internal transfers included.

    Raises:
        InvalidDateFormat: If ``start`` or ``end`` is not a zero-padded date.
        ValueError: If ``start`` is after ``end``.
    """
    ensure_date(start)
    ensure_date(end)
    if start > end:
        raise ValueError(f"Period start {start} is after end {end}")

    rows = index.transactions if transactions is None else transactions
    epsilon = _dec(config.epsilon)
    opening = Decimal(0)
    in_range = Decimal(0)
    inflows = Decimal(0)
    outflows = Decimal(0)
    count = 0

    for tx in rows:
        if tx.is_tombstone or tx.account_id not in pool:
            continue
        if tx.date < start:
            opening += _dec(tx.amount)
            continue
        if tx.date > end:
            continue

        count += 1
        in_range += _dec(tx.amount)
        for line in tx.lines():
            if is_internal_line(tx.account_id, index.transfer_target_of(line), pool):
                continue
            amount = _dec(line.amount)
            if abs(amount) < epsilon:
                continue
            if amount > 0:
                inflows += amount
            else:
                outflows -= amount

    return PoolPeriodSummary(
        start=start,
        end=end,
        opening_balance=_money(opening),
        inflows=_money(inflows),
        outflows=_money(outflows),
        closing_balance=_money(opening + in_range),
        transaction_count=count,
    )


def month_period(
    pool: Pool,
    index: LedgerIndex,
    month: str,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PoolPeriodSummary:
    start, end = month_bounds(month)
    return compute_period(pool, index, None, start, end, config)


def cash_flow_by_month(
    pool: Pool,
    index: LedgerIndex,
    months: Sequence[str],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[PoolPeriodSummary]:
    """One period summary per month, in the order given."""
    pooled = [tx for account_id in pool.account_ids for tx in index.by_account(account_id)]
    summaries = []
    for month in months:
        start, end = month_bounds(month)
        summaries.append(compute_period(pool, index, pooled, start, end, config))
    return summaries


def account_balances(
    accounts: Iterable[Account],
    index: LedgerIndex,
    as_of: Optional[str] = None,
) -> Dict[str, float]:
    """Balance of every account, counting rows dated on or before ``as_of``."""
    if as_of is not None:
        ensure_date(as_of)
    balances = {}
    for account in accounts:
        total = sum(
            (_dec(tx.amount) for tx in index.by_account(account.id) if as_of is None or tx.date <= as_of),
            Decimal(0),
        )
        balances[account.id] = _money(total)
    return balances


def net_worth(
    accounts: Iterable[Account],
    index: LedgerIndex,
    as_of: Optional[str] = None,
) -> Dict[str, float]:
    """Assets, liabilities (conventionally non-positive) and their sum."""
    accounts = tuple(accounts)
    balances = account_balances(accounts, index, as_of)
    assets = Decimal(0)
    liabilities = Decimal(0)
    for account in accounts:
        if account.is_liability:
            liabilities += _dec(balances[account.id])
        else:
            assets += _dec(balances[account.id])
    return {
        "assets": _money(assets),
        "liabilities": _money(liabilities),
        "net_worth": _money(assets + liabilities),
    }


def safe_divide(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def average_per_transaction(summary: PoolPeriodSummary) -> float:
    """Average absolute flow per transaction; 0.0 for an empty period."""
    return round(safe_divide(summary.inflows + summary.outflows, summary.transaction_count), 2)
