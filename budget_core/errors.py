from typing import Any, Optional


class EngineError(Exception):
    """Base class for every error raised by the budget engine."""


class MalformedRecord(EngineError, ValueError):
    """A plain input record is missing a required id field.

    Raised at ingestion so that a broken record never turns into a silently
    wrong aggregate.
    """

    def __init__(self, kind: str, field: str, record: Optional[Any] = None):
        self.kind = kind
        self.field = field
        self.record = record
        super().__init__(f"Malformed {kind} record: missing required field '{field}'")


class InvalidDateFormat(EngineError, ValueError):
    """A date or month key is not in zero-padded lexicographic form."""

    def __init__(self, value: Any, expected: str = "YYYY-MM-DD"):
        self.value = value
        self.expected = expected
        super().__init__(f"Invalid date {value!r}: expected {expected}")
