"""Account pools and the internal-transfer rule.

A pool is the set of accounts a view treats as one unit. A transfer whose two
legs both sit inside the pool only moves money around inside it, so it must
not show up as an inflow or outflow of that pool. Every calculator asks
:func:`is_internal_transfer` (or :func:`is_internal_line` for split lines)
instead of filtering on its own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, Optional, Union

from budget_core.domain import Account, AccountType, normalize_account_type
from budget_core.ledger import Line, LedgerIndex, line_transfer_target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllAccounts:
    pass


@dataclass(frozen=True)
class OnBudgetOnly:
    pass


@dataclass(frozen=True)
class ByType:
    types: FrozenSet[AccountType]

    def __post_init__(self) -> None:
        # accepts any iterable of types or raw spellings
        object.__setattr__(self, "types", frozenset(normalize_account_type(t) for t in self.types))


@dataclass(frozen=True)
class SingleAccount:
    account_id: str


PoolSelector = Union[AllAccounts, OnBudgetOnly, ByType, SingleAccount]


@dataclass(frozen=True)
class Pool:
    account_ids: FrozenSet[str]

    def __contains__(self, account_id: object) -> bool:
        return account_id in self.account_ids

    def __len__(self) -> int:
        return len(self.account_ids)

    @classmethod
    def of(cls, account_ids: Iterable[str]) -> "Pool":
        return cls(frozenset(account_ids))


def _selected(account: Account, selector: PoolSelector) -> bool:
    if isinstance(selector, AllAccounts):
        return True
    if isinstance(selector, OnBudgetOnly):
        return account.on_budget
    if isinstance(selector, ByType):
        return account.type in selector.types
    if isinstance(selector, SingleAccount):
        return account.id == selector.account_id
    raise TypeError(f"Unsupported pool selector: {selector!r}")


def classify_pool(
    accounts: Iterable[Account],
    selector: PoolSelector,
    include_closed: bool = True,
) -> Pool:
    """Resolve a selector against the account list.

    Closed accounts are members by default so that historical balances stay
    continuous; ``include_closed=False`` drops them. A single-account
    selector naming an unknown account still yields a pool with that id, so
    rows referencing it keep aggregating.
    """
    accounts = tuple(accounts)
    ids = {
        a.id for a in accounts
        if _selected(a, selector) and (include_closed or not a.closed)
    }
    if isinstance(selector, SingleAccount) and not ids:
        known = any(a.id == selector.account_id for a in accounts)
        if not known:
            logger.debug("Pool selects unknown account %s", selector.account_id)
            ids.add(selector.account_id)
    return Pool(frozenset(ids))


def is_internal_line(account_id: str, target: Optional[str], pool: Union[Pool, AbstractSet[str]]) -> bool:
    if target is None:
        return False
    return account_id in pool and target in pool


def is_internal_transfer(tx: Line, pool: Pool, index: Optional[LedgerIndex] = None, account_id: Optional[str] = None) -> bool:
    """True iff both legs of the transfer belong to ``pool``.

    ``account_id`` is needed for split lines, which do not carry their own
    account. A dangling target is not a pool member, so it never makes a
    transfer internal.
    """
    owner = account_id if account_id is not None else getattr(tx, "account_id", None)
    target = index.transfer_target_of(tx) if index is not None else line_transfer_target(tx)
    return is_internal_line(owner, target, pool)
