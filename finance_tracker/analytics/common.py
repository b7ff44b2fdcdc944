"""Shared arithmetic and name-matching helpers for the aggregation engine."""

from decimal import Decimal
from typing import Any, Iterable, Optional, Protocol, Union


ZERO = Decimal("0")

Number = Union[Decimal, int, float]


class HasAmount(Protocol):
    amount: Number


def as_decimal(value: Number) -> Decimal:
    """Exact Decimal for ints and Decimals; floats go through their repr."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def sum_amounts(records: Iterable[HasAmount]) -> Decimal:
    return sum((as_decimal(record.amount) for record in records), ZERO)


def normalize_key(name: Optional[str]) -> str:
    """Grouping key: trimmed and case-insensitive. Nothing more."""
    return (name or "").strip().casefold()


def names_match(left: Optional[str], right: Optional[str]) -> bool:
    key = normalize_key(left)
    return bool(key) and key == normalize_key(right)


def percent_of(part: Any, whole: Any) -> float:
    """part / whole * 100, or 0.0 when whole is zero."""
    whole = as_decimal(whole)
    if whole == 0:
        return 0.0
    return float(as_decimal(part) / whole * 100)


def ratio_of(part: Any, whole: Any) -> float:
    """part / whole, or 0.0 when whole is zero."""
    whole = as_decimal(whole)
    if whole == 0:
        return 0.0
    return float(as_decimal(part) / whole)
