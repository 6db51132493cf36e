"""Lookup structures over a flat transaction list.

The index is built once per snapshot and answers the questions every other
calculator asks: which rows belong to an account or a month, and which
account (if any) is on the other side of a transfer.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple, Union

from budget_core.config import DEFAULT_CONFIG, EngineConfig
from budget_core.domain import SubTransaction, Transaction

logger = logging.getLogger(__name__)

TRANSFER_PAYEE_PREFIX = "Payee/Transfer:"

Line = Union[Transaction, SubTransaction]


def _payee_transfer_target(payee_id: Optional[str]) -> Optional[str]:
    if not isinstance(payee_id, str) or not payee_id.startswith(TRANSFER_PAYEE_PREFIX):
        return None
    target = payee_id[len(TRANSFER_PAYEE_PREFIX):].strip()
    return target or None


def line_transfer_target(line: Line) -> Optional[str]:
    """Resolve the transfer target of a transaction or a split line.

    The explicit ``transfer_account_id`` wins; the ``"Payee/Transfer:<id>"``
    payee sentinel is the fallback. Anything else means "not a transfer".
    """
    explicit = getattr(line, "transfer_account_id", None)
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    return _payee_transfer_target(getattr(line, "payee_id", None))


def transfer_target_of(tx: Transaction) -> Optional[str]:
    return line_transfer_target(tx)


class LedgerIndex:
    """Per-account, per-month and per-id views of a transaction list.

    Transfer legs pair up when their amounts cancel to within
    ``config.epsilon``.
    """

    def __init__(self, transactions: Iterable[Transaction], config: EngineConfig = DEFAULT_CONFIG):
        self._epsilon = config.epsilon
        live: List[Transaction] = []
        skipped = 0
        for tx in transactions:
            if tx.is_tombstone:
                skipped += 1
                continue
            live.append(tx)
        if skipped:
            logger.debug("Skipped %d tombstoned transactions", skipped)

        # sorted() is stable, so same-date rows keep insertion order
        self._transactions: Tuple[Transaction, ...] = tuple(live)
        by_account: Dict[str, List[Transaction]] = defaultdict(list)
        by_month: Dict[str, List[Transaction]] = defaultdict(list)
        for tx in sorted(live, key=lambda t: t.date):
            by_account[tx.account_id].append(tx)
            by_month[tx.month].append(tx)

        self._by_account = {k: tuple(v) for k, v in by_account.items()}
        self._by_month = {k: tuple(v) for k, v in by_month.items()}
        self._by_id = {tx.id: tx for tx in live}

    @classmethod
    def build(cls, transactions: Iterable[Transaction], config: EngineConfig = DEFAULT_CONFIG) -> "LedgerIndex":
        return cls(transactions, config)

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return self._transactions

    def by_account(self, account_id: str) -> Tuple[Transaction, ...]:
        return self._by_account.get(account_id, ())

    def by_month(self, month: str) -> Tuple[Transaction, ...]:
        return self._by_month.get(month, ())

    def by_id(self, transaction_id: str) -> Optional[Transaction]:
        return self._by_id.get(transaction_id)

    def months(self) -> Tuple[str, ...]:
        return tuple(sorted(self._by_month))

    def account_ids(self) -> Tuple[str, ...]:
        return tuple(self._by_account)

    def transfer_target_of(self, tx: Line) -> Optional[str]:
        return line_transfer_target(tx)

    def counterpart_of(self, tx: Transaction) -> Optional[Transaction]:
        """Find the other leg of a transfer, or ``None`` for an orphan leg.

        A matching leg lives in the target account, points back at this
        transaction's account and carries the inverse amount. A same-date
        match is preferred over one on another date.
        """
        target = self.transfer_target_of(tx)
        if target is None or target == tx.account_id:
            return None

        candidates = [
            other for other in self.by_account(target)
            if other.id != tx.id
            and self.transfer_target_of(other) == tx.account_id
            and abs(other.amount + tx.amount) < self._epsilon
        ]
        if not candidates:
            return None
        same_day = [c for c in candidates if c.date == tx.date]
        return (same_day or candidates)[0]

    def orphan_transfers(self) -> Tuple[Transaction, ...]:
        orphans = tuple(
            tx for tx in self._transactions
            if self.transfer_target_of(tx) is not None and self.counterpart_of(tx) is None
        )
        if orphans:
            logger.debug("Found %d transfer legs without a counterpart", len(orphans))
        return orphans

    def __len__(self) -> int:
        return len(self._transactions)
