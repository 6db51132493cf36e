"""Flow-kind labels for cash-flow reporting.

The decision order in :func:`classify_flow` is significant: an interest
payment that is nominally a transfer is still interest, and a transfer into a
credit account is a card payment before it is anything else.
"""
from __future__ import annotations

import logging
import unicodedata
from collections import defaultdict
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterable, Mapping, Optional, Tuple

from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.domain import (
    CHECKING_LIKE,
    CREDIT_TYPES,
    SAVINGS_LIKE,
    AccountType,
    Transaction,
    round_money,
)
from budget_core.ledger import LedgerIndex
from budget_core.pools import Pool

logger = logging.getLogger(__name__)


class FlowKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    CC_PAYMENT = "ccPayment"
    TRANSFER_TO_SAVINGS = "transferToSavings"
    TRANSFER_FROM_SAVINGS = "transferFromSavings"
    INTEREST = "interest"
    OTHER = "other"


@lru_cache(maxsize=4096)
def fold_text(text: str) -> str:
    """Lowercase ``text`` and strip accents so "Interés" matches "interes"."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def has_interest_marker(names: Iterable[Optional[str]], keywords: Tuple[str, ...]) -> bool:
    folded = [fold_text(k) for k in keywords if k]
    for name in names:
        if not name:
            continue
        text = fold_text(name)
        if any(k in text for k in folded):
            return True
    return False


def _names_of(
    tx: Transaction,
    category_names: Mapping[str, str],
    payee_names: Mapping[str, str],
) -> Iterable[Optional[str]]:
    yield tx.payee_name
    if tx.payee_id:
        yield payee_names.get(tx.payee_id)
    for line in tx.lines():
        if line.category_id:
            yield category_names.get(line.category_id)


def classify_flow(
    tx: Transaction,
    pool: Pool,
    index: LedgerIndex,
    account_types: Mapping[str, AccountType],
    category_names: Optional[Mapping[str, str]] = None,
    payee_names: Optional[Mapping[str, str]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FlowKind:
    """Label one transaction; first matching rule wins.

    1. interest keyword in the payee or category name
    2. transfer into a credit-type account
    3. checking-like source, savings-like target
    4. savings-like source, checking-like target
    5. income when the amount is positive, expense otherwise

    With ``config.other_for_internal_transfers`` set, a transfer that stays
    inside the pool, or a dust amount, is labelled ``other`` before step 5.

    Pure: the same arguments always give the same kind.
    """
    names = _names_of(tx, category_names or {}, payee_names or {})
    if has_interest_marker(names, config.active_interest_keywords()):
        return FlowKind.INTEREST

    target = index.transfer_target_of(tx)
    source_type = account_types.get(tx.account_id)
    target_type = account_types.get(target) if target is not None else None

    if target_type in CREDIT_TYPES:
        return FlowKind.CC_PAYMENT
    if source_type in CHECKING_LIKE and target_type in SAVINGS_LIKE:
        return FlowKind.TRANSFER_TO_SAVINGS
    if source_type in SAVINGS_LIKE and target_type in CHECKING_LIKE:
        return FlowKind.TRANSFER_FROM_SAVINGS
    if config.other_for_internal_transfers:
        if target is not None and target in pool:
            return FlowKind.OTHER
        if abs(tx.amount) < config.epsilon:
            return FlowKind.OTHER
    return FlowKind.INCOME if tx.amount > 0 else FlowKind.EXPENSE


def classify_all(
    transactions: Iterable[Transaction],
    pool: Pool,
    index: LedgerIndex,
    account_types: Mapping[str, AccountType],
    category_names: Optional[Mapping[str, str]] = None,
    payee_names: Optional[Mapping[str, str]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, FlowKind]:
    """Flow kind of every live pool transaction, keyed by transaction id."""
    return {
        tx.id: classify_flow(tx, pool, index, account_types, category_names, payee_names, config)
        for tx in transactions
        if not tx.is_tombstone and tx.account_id in pool
    }


def summarize_flows(
    transactions: Iterable[Transaction],
    pool: Pool,
    index: LedgerIndex,
    account_types: Mapping[str, AccountType],
    category_names: Optional[Mapping[str, str]] = None,
    payee_names: Optional[Mapping[str, str]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[FlowKind, float]:
    """Signed total per flow kind over the pool's transactions.

    Every kind is present in the result, zero when unused.
    """
    totals: Dict[FlowKind, float] = defaultdict(float)
    counted = 0
    for tx in transactions:
        if tx.is_tombstone or tx.account_id not in pool:
            continue
        kind = classify_flow(tx, pool, index, account_types, category_names, payee_names, config)
        totals[kind] += tx.amount
        counted += 1
    logger.debug("Classified %d transactions into %d flow kinds", counted, len(totals))
    return {kind: round_money(totals.get(kind, 0.0)) for kind in FlowKind}
