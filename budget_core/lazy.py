from collections import defaultdict
from typing import Callable, Iterable, Iterator, NamedTuple, Optional, Tuple

from budget_core.domain import Category, Transaction
from budget_core.ledger import line_transfer_target


class LedgerLine(NamedTuple):
    """One activity-bearing row: a plain transaction or one split line."""

    transaction: Transaction
    account_id: str
    date: str
    amount: float
    category_id: Optional[str]
    transfer_target: Optional[str]


def by_account(account_id: str):
    def _filter(t: Transaction) -> bool:
        return t.account_id == account_id

    return _filter


def by_category(category_id: str):
    def _filter(t: Transaction) -> bool:
        return any(getattr(line, "category_id", None) == category_id for line in t.lines())

    return _filter


def by_date_range(start: str, end: str):
    def _filter(t: Transaction) -> bool:
        return start <= t.date <= end

    return _filter


def by_month(month: str):
    def _filter(t: Transaction) -> bool:
        return t.month == month

    return _filter


def iter_transactions(
    trans: Iterable[Transaction], pred: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def iter_lines(trans: Iterable[Transaction]) -> Iterator[LedgerLine]:
    for t in trans:
        if t.is_tombstone:
            continue
        for line in t.lines():
            yield LedgerLine(
                transaction=t,
                account_id=t.account_id,
                date=t.date,
                amount=line.amount,
                category_id=line.category_id,
                transfer_target=line_transfer_target(line),
            )


def lazy_top_categories(
    trans: Iterable[Transaction], cats: Iterable[Category], k: int
) -> Iterator[Tuple[str, float]]:
    """Yield the ``k`` categories with the largest outflow, biggest first.

    Transfers and uncategorized lines are skipped; split lines count toward
    their own categories.
    """
    category_name_by_id: dict[str, str] = {c.id: c.name for c in cats}
    totals_by_category: dict[str, float] = defaultdict(float)

    for line in iter_lines(trans):
        if line.amount < 0 and line.category_id and line.transfer_target is None:
            totals_by_category[line.category_id] += -line.amount

    ordered = sorted(
        ((category_name_by_id.get(cid, cid), round(total, 2)) for cid, total in totals_by_category.items()),
        key=lambda item: item[1],
        reverse=True,
    )

    for name, total in ordered[: max(0, k)]:
        yield name, total
