from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, Optional, TypeVar

from recurrence import ScheduledItem, days_in_month, local_today, occurs_on

T = TypeVar("T")


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {month}")
    start = date(year, month, 1)
    end = date(year, month, days_in_month(year, month))
    return Period(f"{year:04d}-{month:02d}", start, end)


def resolve_month(month: Optional[str], *, today: Optional[date] = None) -> Period:
    if not month:
        today = today or local_today()
        return month_period(today.year, today.month)
    try:
        year_part, month_part = month.split("-")
        return month_period(int(year_part), int(month_part))
    except ValueError as exc:
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM") from exc


def budget_period(duration: str, *, today: Optional[date] = None) -> Period:
    """Window of the budget cycle ("Weekly", "Monthly", "Yearly") containing today."""
    today = today or local_today()
    kind = duration.lower()
    if kind == "weekly":
        start = today - timedelta(days=today.weekday())
        return Period("weekly", start, start + timedelta(days=6))
    if kind == "monthly":
        return month_period(today.year, today.month)
    if kind == "yearly":
        return Period("yearly", date(today.year, 1, 1), date(today.year, 12, 31))
    raise ValueError(f"Unknown budget duration: {duration}")


def iter_days(period: Period) -> list[date]:
    return [
        period.start + timedelta(days=offset)
        for offset in range((period.end - period.start).days + 1)
    ]


def _as_item(obj) -> ScheduledItem:
    if isinstance(obj, ScheduledItem):
        return obj
    return obj.as_scheduled_item()


def build_occurrence_index(
    items: Iterable[T],
    period: Period,
    *,
    to_item: Callable[[T], ScheduledItem] = _as_item,
) -> dict[date, list[T]]:
    """Map every day of ``period`` to the items occurring on it."""
    scheduled = [(item, to_item(item)) for item in items]
    index: dict[date, list[T]] = {}
    for day in iter_days(period):
        index[day] = [item for item, sched in scheduled if occurs_on(sched, day)]
    return index
