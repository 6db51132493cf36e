"""Snapshot ingestion and immutable edits.

Raw records may use snake_case keys or the camelCase keys of a YNAB4 budget
file (``entityId``, ``accountId``, ``masterCategoryId`` ...). Account types
are normalized here, once, and every date is checked before it enters the
engine.
"""
import json
import logging
from dataclasses import replace
from functools import reduce
from typing import Any, Iterable, Mapping, Optional, Tuple

from budget_core.dates import ensure_date, ensure_month
from budget_core.domain import (
    Account,
    BudgetSnapshot,
    Category,
    MasterCategory,
    MonthlyBudgetEntry,
    SubTransaction,
    Transaction,
    normalize_account_type,
)
from budget_core.errors import MalformedRecord
from budget_core.functional import pipe, validate_record

logger = logging.getLogger(__name__)


def _get(record: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        value = record.get(name)
        if value is not None:
            return value
    return default


def _checked(kind: str, record: Any) -> Mapping[str, Any]:
    result = validate_record(kind, record)
    if result.is_left():
        error = result.get_error()
        raise MalformedRecord(kind, error["field"], record)
    return result.get_or_else(record)


def account_from_record(record: Mapping[str, Any]) -> Account:
    record = _checked("account", record)
    return Account(
        id=_get(record, "id", "entityId"),
        name=_get(record, "name", "accountName", default=""),
        type=normalize_account_type(_get(record, "type", "accountType", default="")),
        on_budget=bool(_get(record, "on_budget", "onBudget", default=True)),
        closed=bool(_get(record, "closed", "isTombstone", default=False)),
        hidden=bool(_get(record, "hidden", default=False)),
    )


def sub_transaction_from_record(record: Mapping[str, Any]) -> SubTransaction:
    record = _checked("sub_transaction", record)
    return SubTransaction(
        id=_get(record, "id", "entityId"),
        amount=float(_get(record, "amount", default=0.0)),
        category_id=_get(record, "category_id", "categoryId"),
        payee_id=_get(record, "payee_id", "payeeId"),
        transfer_account_id=_get(record, "transfer_account_id", "transferAccountId"),
        memo=_get(record, "memo", default=""),
        is_tombstone=bool(_get(record, "is_tombstone", "isTombstone", default=False)),
    )


def transaction_from_record(record: Mapping[str, Any]) -> Transaction:
    record = _checked("transaction", record)
    subs = _get(record, "sub_transactions", "subTransactions", default=())
    return Transaction(
        id=_get(record, "id", "entityId"),
        date=ensure_date(str(record["date"])[:10]),
        account_id=_get(record, "account_id", "accountId"),
        amount=float(_get(record, "amount", default=0.0)),
        category_id=_get(record, "category_id", "categoryId"),
        payee_id=_get(record, "payee_id", "payeeId"),
        transfer_account_id=_get(record, "transfer_account_id", "transferAccountId"),
        payee_name=_get(record, "payee_name", "payeeName", default=""),
        memo=_get(record, "memo", default=""),
        cleared=_get(record, "cleared", default="Uncleared"),
        flag=_get(record, "flag"),
        is_tombstone=bool(_get(record, "is_tombstone", "isTombstone", default=False)),
        sub_transactions=tuple(sub_transaction_from_record(s) for s in subs),
    )


def master_category_from_record(record: Mapping[str, Any]) -> MasterCategory:
    record = _checked("master_category", record)
    return MasterCategory(
        id=_get(record, "id", "entityId"),
        name=_get(record, "name", default=""),
        sortable_index=_get(record, "sortable_index", "sortableIndex", default=0),
        is_tombstone=bool(_get(record, "is_tombstone", "isTombstone", default=False)),
        hidden=bool(_get(record, "hidden", default=False)),
    )


def category_from_record(record: Mapping[str, Any], master: Optional[MasterCategory] = None) -> Category:
    record = _checked("category", record)
    master_id = _get(record, "master_category_id", "masterCategoryId")
    if master_id is None and master is not None:
        master_id = master.id
    master_name = _get(record, "master_category_name", "masterCategoryName")
    if master_name is None:
        master_name = master.name if master is not None else ""
    return Category(
        id=_get(record, "id", "entityId"),
        name=_get(record, "name", default=""),
        master_category_id=master_id,
        master_category_name=master_name,
        is_tombstone=bool(_get(record, "is_tombstone", "isTombstone", default=False)),
        hidden=bool(_get(record, "hidden", default=False)),
        sortable_index=_get(record, "sortable_index", "sortableIndex", default=0),
    )


def budget_entry_from_record(record: Mapping[str, Any], month: Optional[str] = None) -> MonthlyBudgetEntry:
    if month is not None and isinstance(record, Mapping) and "month" not in record:
        record = {**record, "month": month}
    record = _checked("budget_entry", record)
    return MonthlyBudgetEntry(
        month=ensure_month(str(record["month"])[:7]),
        category_id=_get(record, "category_id", "categoryId"),
        budgeted=float(_get(record, "budgeted", default=0.0)),
        overspending_handling=_get(record, "overspending_handling", "overspendingHandling"),
        is_tombstone=bool(_get(record, "is_tombstone", "isTombstone", default=False)),
    )


def _masters_and_categories(data: Mapping[str, Any]) -> Tuple[Tuple[MasterCategory, ...], Tuple[Category, ...]]:
    masters = []
    categories = []
    for raw in _get(data, "master_categories", "masterCategories", default=()):
        master = master_category_from_record(raw)
        masters.append(master)
        # YNAB4 nests sub-categories under their master
        for sub in _get(raw, "sub_categories", "subCategories", default=()) or ():
            categories.append(category_from_record(sub, master))
    masters_by_id = {m.id: m for m in masters}
    for raw in _get(data, "categories", default=()):
        master_id = _get(raw, "master_category_id", "masterCategoryId") if isinstance(raw, Mapping) else None
        categories.append(category_from_record(raw, masters_by_id.get(master_id)))
    return tuple(masters), tuple(categories)


def _budget_entries(data: Mapping[str, Any]) -> Tuple[MonthlyBudgetEntry, ...]:
    entries = [budget_entry_from_record(r) for r in _get(data, "budget_entries", "budgetEntries", default=())]
    # YNAB4 groups entries per month
    for monthly in _get(data, "monthly_budgets", "monthlyBudgets", default=()):
        month = str(monthly.get("month", ""))[:7]
        for raw in _get(monthly, "monthly_sub_category_budgets", "monthlySubCategoryBudgets", default=()):
            entries.append(budget_entry_from_record(raw, month))
    return tuple(entries)


def snapshot_from_records(data: Mapping[str, Any]) -> BudgetSnapshot:
    """Build a :class:`BudgetSnapshot` from plain dict records.

    Raises:
        MalformedRecord: If a record lacks a required id field.
        InvalidDateFormat: If a transaction date or a month key is malformed.
    """
    accounts = tuple(account_from_record(r) for r in _get(data, "accounts", default=()))
    transactions = tuple(transaction_from_record(r) for r in _get(data, "transactions", default=()))
    masters, categories = _masters_and_categories(data)
    entries = _budget_entries(data)
    logger.info(
        "Loaded snapshot: %d accounts, %d transactions, %d categories, %d budget entries",
        len(accounts), len(transactions), len(categories), len(entries),
    )
    return BudgetSnapshot(
        accounts=accounts,
        transactions=transactions,
        categories=categories,
        master_categories=masters,
        budget_entries=entries,
    )


def load_snapshot(path: str) -> BudgetSnapshot:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return snapshot_from_records(data)


def add_transaction(snapshot: BudgetSnapshot, t: Transaction) -> BudgetSnapshot:
    return replace(snapshot, transactions=snapshot.transactions + (t,))


def remove_transaction(snapshot: BudgetSnapshot, transaction_id: str) -> BudgetSnapshot:
    """Tombstone a transaction; rows are never physically deleted."""
    return replace(snapshot, transactions=tuple(
        replace(t, is_tombstone=True) if t.id == transaction_id else t
        for t in snapshot.transactions
    ))


def set_budgeted(snapshot: BudgetSnapshot, month: str, category_id: str, amount: float) -> BudgetSnapshot:
    """Return a snapshot whose (month, category) entry budgets ``amount``.

    Duplicate entries for the same pair collapse into one.
    """
    ensure_month(month)
    kept = []
    handling = None
    for entry in snapshot.budget_entries:
        if entry.month == month and entry.category_id == category_id:
            handling = entry.overspending_handling
            continue
        kept.append(entry)
    kept.append(MonthlyBudgetEntry(month, category_id, float(amount), handling))
    return replace(snapshot, budget_entries=tuple(kept))


def apply_budget_values(snapshot: BudgetSnapshot, month: str, values: Mapping[str, float]) -> BudgetSnapshot:
    """Apply several ``category_id -> budgeted`` values to one month."""
    return pipe(snapshot, *(
        (lambda s, cid=cid, amount=amount: set_budgeted(s, month, cid, amount))
        for cid, amount in values.items()
    ))


def account_balance(trans: Iterable[Transaction], acc_id: str) -> float:
    return round(reduce(
        lambda acc, t: acc + t.amount if t.account_id == acc_id and not t.is_tombstone else acc, trans, 0.0
    ), 2)
