"""Remittances grouped by calendar year."""

from datetime import date
from typing import Iterable, Optional

from finance_tracker.analytics.common import ZERO, as_decimal
from finance_tracker.models.records import Remittance
from finance_tracker.models.reports import RemittanceSummary, RemittanceYear


def _year_bucket(year: int, items: list[Remittance]) -> RemittanceYear:
    items = sorted(items, key=lambda item: item.remittance_date)
    return RemittanceYear(
        year=year,
        total=sum((as_decimal(item.amount) for item in items), ZERO),
        items=items,
    )


def summarize_by_year(
    remittances: Iterable[Remittance],
    today: Optional[date] = None,
) -> RemittanceSummary:
    """
    Current year as the live view, earlier years as history.

    A year becomes historical as soon as the calendar moves past it.
    Future-dated remittances are kept apart in `upcoming`.
    """
    current_year = (today or date.today()).year

    by_year: dict[int, list[Remittance]] = {}
    for remittance in remittances:
        by_year.setdefault(remittance.remittance_date.year, []).append(remittance)

    historical = [
        _year_bucket(year, by_year[year])
        for year in sorted((y for y in by_year if y < current_year), reverse=True)
    ]
    upcoming = [
        _year_bucket(year, by_year[year])
        for year in sorted(y for y in by_year if y > current_year)
    ]

    return RemittanceSummary(
        current_year=current_year,
        current=_year_bucket(current_year, by_year.get(current_year, [])),
        historical=historical,
        upcoming=upcoming,
    )
