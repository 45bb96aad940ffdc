"""
Query parsing and execution over the record store.

Raw query parameters are parsed once into one of three query shapes;
execution then dispatches on that shape only.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from ledger_aggregator.transactions.models import TransactionDetail, parse_signature
from ledger_aggregator.transactions.store import RecordStore

DAY_FORMAT = "%d/%m/%Y"
INVALID_QUERY_MESSAGE = "Invalid query parameters"


class InvalidQueryError(ValueError):
    """Raised when a query parameter cannot be parsed."""

    def __init__(self, parameter: str, message: str):
        super().__init__(f"{parameter}: {message}")
        self.parameter = parameter
        self.message = message


@dataclass(frozen=True)
class ById:
    signature: str


@dataclass(frozen=True)
class ByDay:
    day: date


@dataclass(frozen=True)
class Unrecognized:
    pass


Query = Union[ById, ByDay, Unrecognized]
QueryResult = Union[Optional[TransactionDetail], List[TransactionDetail], str]


def parse_day(value: str) -> date:
    """Parse a DD/MM/YYYY day string."""
    try:
        return datetime.strptime(value, DAY_FORMAT).date()
    except ValueError as e:
        raise InvalidQueryError("day", f"expected DD/MM/YYYY, got {value!r}") from e


def parse_query(id: Optional[str] = None, day: Optional[str] = None) -> Query:
    """
    Turn raw query parameters into a Query.

    An id takes precedence over a day when both are given.

    Raises:
        InvalidQueryError: If the selected parameter is malformed
    """
    if id is not None:
        try:
            return ById(parse_signature(id))
        except ValueError as e:
            raise InvalidQueryError("id", str(e)) from e
    if day is not None:
        return ByDay(parse_day(day))
    return Unrecognized()


class QueryService:
    """Read-only access to the record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def execute(self, query: Query) -> QueryResult:
        """
        Run a parsed query.

        Returns:
            The detail or None for ById, a list for ByDay, and the
            invalid-parameters message for Unrecognized
        """
        if isinstance(query, ById):
            return self.store.get(query.signature)
        if isinstance(query, ByDay):
            return self.store.scan_by_day(query.day)
        if isinstance(query, Unrecognized):
            return INVALID_QUERY_MESSAGE
        raise TypeError(f"Unsupported query: {query!r}")
