import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


class AccountType(str, Enum):
    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT_CARD = "CreditCard"
    LINE_OF_CREDIT = "LineOfCredit"
    CASH = "Cash"
    PAYPAL = "Paypal"
    MERCHANT_ACCOUNT = "MerchantAccount"
    INVESTMENT_ACCOUNT = "InvestmentAccount"
    MORTGAGE = "Mortgage"
    OTHER_ASSET = "OtherAsset"
    OTHER_LIABILITY = "OtherLiability"


LIABILITY_TYPES = frozenset({
    AccountType.CREDIT_CARD,
    AccountType.LINE_OF_CREDIT,
    AccountType.MORTGAGE,
    AccountType.OTHER_LIABILITY,
    AccountType.MERCHANT_ACCOUNT,
})

# transfers into these are credit payments
CREDIT_TYPES = frozenset({
    AccountType.CREDIT_CARD,
    AccountType.LINE_OF_CREDIT,
    AccountType.MERCHANT_ACCOUNT,
})

CHECKING_LIKE = frozenset({AccountType.CHECKING, AccountType.CASH, AccountType.PAYPAL})
SAVINGS_LIKE = frozenset({AccountType.SAVINGS})

# squashed spelling (lowercase, no separators) -> canonical type
_TYPE_SPELLINGS: Dict[str, AccountType] = {
    "checking": AccountType.CHECKING,
    "chequing": AccountType.CHECKING,
    "savings": AccountType.SAVINGS,
    "saving": AccountType.SAVINGS,
    "creditcard": AccountType.CREDIT_CARD,
    "credit": AccountType.CREDIT_CARD,
    "lineofcredit": AccountType.LINE_OF_CREDIT,
    "loc": AccountType.LINE_OF_CREDIT,
    "creditline": AccountType.LINE_OF_CREDIT,
    "personalloan": AccountType.OTHER_LIABILITY,
    "loan": AccountType.OTHER_LIABILITY,
    "studentloan": AccountType.OTHER_LIABILITY,
    "autoloan": AccountType.OTHER_LIABILITY,
    "debt": AccountType.OTHER_LIABILITY,
    "homeloan": AccountType.MORTGAGE,
    "cash": AccountType.CASH,
    "paypal": AccountType.PAYPAL,
    "merchantaccount": AccountType.MERCHANT_ACCOUNT,
    "merchant": AccountType.MERCHANT_ACCOUNT,
    "investmentaccount": AccountType.INVESTMENT_ACCOUNT,
    "investment": AccountType.INVESTMENT_ACCOUNT,
    "mortgage": AccountType.MORTGAGE,
    "otherasset": AccountType.OTHER_ASSET,
    "asset": AccountType.OTHER_ASSET,
    "otherliability": AccountType.OTHER_LIABILITY,
    "liability": AccountType.OTHER_LIABILITY,
}

_SEPARATORS = re.compile(r"[\s_\-/]+")


@lru_cache(maxsize=None)
def normalize_account_type(raw: Optional[str]) -> AccountType:
    """Map any known source spelling of an account type to its canonical variant.

    ``"LineofCredit"``, ``"line of credit"`` and ``"LINE_OF_CREDIT"`` all
    become :attr:`AccountType.LINE_OF_CREDIT`. Unknown spellings degrade to
    :attr:`AccountType.OTHER_ASSET`.
    """
    if isinstance(raw, AccountType):
        return raw
    key = _SEPARATORS.sub("", raw or "").lower()
    if key.endswith("account") and key not in _TYPE_SPELLINGS:
        key = key[: -len("account")]
    kind = _TYPE_SPELLINGS.get(key)
    if kind is None:
        logger.warning("Unknown account type %r, treating it as %s", raw, AccountType.OTHER_ASSET.value)
        return AccountType.OTHER_ASSET
    return kind


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    type: AccountType
    on_budget: bool = True
    closed: bool = False      # soft delete
    hidden: bool = False

    @property
    def is_liability(self) -> bool:
        return self.type in LIABILITY_TYPES


@dataclass(frozen=True)
class SubTransaction:
    """One line of a split transaction."""

    id: str
    amount: float
    category_id: Optional[str] = None
    payee_id: Optional[str] = None
    transfer_account_id: Optional[str] = None
    memo: str = ""
    is_tombstone: bool = False


@dataclass(frozen=True)
class Transaction:
    id: str
    date: str          # "YYYY-MM-DD", no time component
    account_id: str
    amount: float      # + inflow to the account, - outflow
    category_id: Optional[str] = None
    payee_id: Optional[str] = None
    transfer_account_id: Optional[str] = None
    payee_name: str = ""
    memo: str = ""
    cleared: str = "Uncleared"
    flag: Optional[str] = None
    is_tombstone: bool = False
    sub_transactions: Tuple[SubTransaction, ...] = ()

    @property
    def month(self) -> str:
        return self.date[:7]

    @property
    def is_split(self) -> bool:
        return any(not s.is_tombstone for s in self.sub_transactions)

    def lines(self) -> Iterator["Transaction | SubTransaction"]:
        """Yield the rows that carry category activity.

        A split transaction contributes through its live split lines only, so
        the parent amount is never counted twice.
        """
        if self.is_split:
            for sub in self.sub_transactions:
                if not sub.is_tombstone:
                    yield sub
        else:
            yield self


@dataclass(frozen=True)
class MasterCategory:
    id: str
    name: str
    sortable_index: float = 0
    is_tombstone: bool = False
    hidden: bool = False


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    master_category_id: Optional[str]
    master_category_name: str = ""   # denormalized for display
    is_tombstone: bool = False
    hidden: bool = False
    sortable_index: float = 0

    @property
    def full_name(self) -> str:
        if self.master_category_name:
            return f"{self.master_category_name}: {self.name}"
        return self.name


# One budgeted amount for (month, category); absence means zero
@dataclass(frozen=True)
class MonthlyBudgetEntry:
    month: str         # "YYYY-MM"
    category_id: str
    budgeted: float
    overspending_handling: Optional[str] = None
    is_tombstone: bool = False


@dataclass(frozen=True)
class BudgetSnapshot:
    """Immutable input bundle every calculation runs over."""

    accounts: Tuple[Account, ...] = ()
    transactions: Tuple[Transaction, ...] = ()
    categories: Tuple[Category, ...] = ()
    master_categories: Tuple[MasterCategory, ...] = ()
    budget_entries: Tuple[MonthlyBudgetEntry, ...] = ()

    def account_types(self) -> Dict[str, AccountType]:
        return {a.id: a.type for a in self.accounts}

    def category_names(self) -> Dict[str, str]:
        return {c.id: c.name for c in self.categories}

    def months(self) -> Tuple[str, ...]:
        months = {t.month for t in self.transactions if not t.is_tombstone}
        months.update(e.month for e in self.budget_entries if not e.is_tombstone)
        return tuple(sorted(months))


@dataclass(frozen=True)
class CategoryMonthSummary:
    category_id: str
    month: str
    budgeted: float
    activity: float
    available: float


@dataclass(frozen=True)
class MasterCategorySummary:
    master_category_id: str
    name: str
    month: str
    budgeted: float
    activity: float
    available: float
    categories: Tuple[CategoryMonthSummary, ...] = ()


@dataclass(frozen=True)
class MonthSummary:
    month: str
    categories: Dict[str, CategoryMonthSummary]
    masters: Tuple[MasterCategorySummary, ...]
    total: CategoryMonthSummary
    unassigned: float = 0.0     # activity on unknown category ids
    uncategorized: float = 0.0  # activity with no category and no transfer target
    system: Dict[str, float] = field(default_factory=dict)  # reserved ids, e.g. income to be budgeted

    def category(self, category_id: str) -> Optional[CategoryMonthSummary]:
        return self.categories.get(category_id)

    def master(self, master_category_id: str) -> Optional[MasterCategorySummary]:
        return next((m for m in self.masters if m.master_category_id == master_category_id), None)


@dataclass(frozen=True)
class PoolPeriodSummary:
    start: str
    end: str
    opening_balance: float
    inflows: float
    outflows: float
    closing_balance: float
    transaction_count: int

    @property
    def net_flow(self) -> float:
        return round(self.inflows - self.outflows, 2)


def round_money(amount: float) -> float:
    # + 0.0 folds -0.0 into 0.0
    return round(amount, 2) + 0.0
