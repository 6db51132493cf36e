"""Small functional helpers: optional values, validated values, composition.

``Maybe`` wraps lookups that may miss, ``Either`` wraps record checks that
may fail with an error dict. Both are immutable and compare by value.
"""
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, TypeVar

from budget_core.domain import Account, Category

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T]):

    def is_some(self) -> bool:
        return isinstance(self, Some)

    def is_none(self) -> bool:
        return not self.is_some()

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self.value)) if isinstance(self, Some) else Nothing()

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return f(self.value) if isinstance(self, Some) else Nothing()

    def get_or_else(self, default: T) -> T:
        return self.value if isinstance(self, Some) else default


@dataclass(frozen=True)
class Some(Maybe[T]):
    value: T


@dataclass(frozen=True)
class Nothing(Maybe[T]):
    pass


def maybe(value: Optional[T]) -> Maybe[T]:
    return Nothing() if value is None else Some(value)


class Either(Generic[E, T]):

    def is_right(self) -> bool:
        return isinstance(self, Right)

    def is_left(self) -> bool:
        return not self.is_right()

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self.value)) if isinstance(self, Right) else self

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self.value) if isinstance(self, Right) else self

    def get_or_else(self, default: T) -> T:
        return self.value if isinstance(self, Right) else default

    def get_error(self) -> E:
        if isinstance(self, Right):
            raise ValueError("Cannot get error from Right")
        return self.error


@dataclass(frozen=True)
class Right(Either[E, T]):
    value: T


@dataclass(frozen=True)
class Left(Either[E, T]):
    error: E


def safe_account(accounts: Iterable[Account], account_id: Optional[str]) -> Maybe[Account]:
    return maybe(next((a for a in accounts if a.id == account_id), None))


def safe_category(categories: Iterable[Category], category_id: Optional[str]) -> Maybe[Category]:
    return maybe(next((c for c in categories if c.id == category_id), None))


# Required id fields per record kind, each listed with its accepted aliases
REQUIRED_FIELDS = {
    "account": (("id", "entityId"),),
    "transaction": (("id", "entityId"), ("account_id", "accountId"), ("date",)),
    "sub_transaction": (("id", "entityId"),),
    "category": (("id", "entityId"),),
    "master_category": (("id", "entityId"),),
    "budget_entry": (("month",), ("category_id", "categoryId")),
}


def validate_record(kind: str, record: Any) -> Either[dict, Mapping[str, Any]]:
    """Check that a raw record carries every required id field.

    Returns ``Right(record)`` or ``Left`` with an error dict naming the
    record kind and the first missing field.
    """
    if not isinstance(record, Mapping):
        return Left({
            "error": "malformed_record",
            "message": f"{kind} record must be a mapping, got {type(record).__name__}",
            "kind": kind,
            "field": "*",
        })

    for aliases in REQUIRED_FIELDS.get(kind, ()):
        value = next((record.get(name) for name in aliases if record.get(name) not in (None, "")), None)
        if value is None:
            return Left({
                "error": "malformed_record",
                "message": f"{kind} record is missing '{aliases[0]}'",
                "kind": kind,
                "field": aliases[0],
            })

    return Right(record)


def compose(*funcs):
    """Return a function that's the composition of the given functions.

    compose(f, g, h)(x) == f(g(h(x)))
    """
    def _composed(x):
        res = x
        for f in reversed(funcs):
            res = f(res)
        return res
    return _composed


def pipe(x, *funcs):
    """Pipe a value through a series of functions.

    pipe(x, f, g, h) == h(g(f(x)))
    """
    res = x
    for f in funcs:
        res = f(res)
    return res
