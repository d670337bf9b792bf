from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings


DateInput = Union[datetime, date, str, int, float, None]


class Frequency(str, Enum):
    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class InvalidRecurrenceRule(ValueError):
    """Unknown frequency or a non-positive interval."""


def local_zone(tz: Optional[ZoneInfo] = None) -> ZoneInfo:
    if tz is not None:
        return tz
    return ZoneInfo(get_settings().timezone)


def local_now(tz: Optional[ZoneInfo] = None) -> datetime:
    return datetime.now(local_zone(tz)).replace(tzinfo=None)


def local_today(tz: Optional[ZoneInfo] = None) -> date:
    return local_now(tz).date()


def to_local_datetime(value: DateInput, tz: Optional[ZoneInfo] = None) -> Optional[datetime]:
    """Canonicalize a loosely typed date value to a naive local datetime.

    Date-only values (``date`` objects and ``YYYY-MM-DD`` strings) become
    local midnight rather than UTC midnight, so they never shift to the
    previous day. Aware datetimes and epoch-millisecond numbers are
    converted to the local zone and returned naive.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Unsupported date value: {value!r}")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return value.astimezone(local_zone(tz)).replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, (int, float)):
        instant = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return instant.astimezone(local_zone(tz)).replace(tzinfo=None)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) == 10 and "T" not in text:
            return datetime.combine(date.fromisoformat(text), time.min)
        return to_local_datetime(datetime.fromisoformat(text), tz)
    raise ValueError(f"Unsupported date value: {value!r}")


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    interval: int = 1
    end_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        try:
            frequency = Frequency(self.frequency)
        except ValueError as exc:
            raise InvalidRecurrenceRule(
                f"Unknown frequency: {self.frequency!r}"
            ) from exc
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidRecurrenceRule(f"Interval must be an integer: {self.interval!r}")
        if self.interval < 1:
            raise InvalidRecurrenceRule(f"Interval must be positive: {self.interval}")
        object.__setattr__(self, "frequency", frequency)
        object.__setattr__(self, "end_date", to_local_datetime(self.end_date))

    @property
    def is_recurring(self) -> bool:
        return self.frequency != Frequency.none

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> Optional["RecurrenceRule"]:
        if not config:
            return None
        interval = config.get("interval")
        end_date = config.get("endDate", config.get("end_date"))
        return cls(
            frequency=config.get("frequency"),
            interval=1 if interval is None else interval,
            end_date=end_date,
        )

    def to_config(self) -> dict[str, Any]:
        return {
            "frequency": self.frequency.value,
            "interval": self.interval,
            "endDate": self.end_date.date().isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class ScheduledItem:
    anchor_date: Optional[datetime] = None
    recurrence: Optional[RecurrenceRule] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "anchor_date", to_local_datetime(self.anchor_date))


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: datetime, months: int, *, desired_day: Optional[int] = None) -> datetime:
    """Shift ``base`` by whole months, snapping overflow to the month's last day."""
    if desired_day is not None and not 1 <= desired_day <= 31:
        raise ValueError(f"Day of month out of range: {desired_day}")
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(desired_day or base.day, days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def _months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def _matches_frequency(rule: RecurrenceRule, anchor: date, day: date) -> bool:
    elapsed = (day - anchor).days
    if rule.frequency == Frequency.daily:
        return elapsed % rule.interval == 0
    if rule.frequency == Frequency.weekly:
        if day.weekday() != anchor.weekday():
            return False
        return (elapsed // 7) % rule.interval == 0
    if rule.frequency == Frequency.monthly:
        if day.day != anchor.day:
            return False
        months = _months_between(anchor, day)
        return months > 0 and months % rule.interval == 0
    if rule.frequency == Frequency.yearly:
        if (day.month, day.day) != (anchor.month, anchor.day):
            return False
        return (day.year - anchor.year) % rule.interval == 0
    return False


def occurs_on(item: ScheduledItem, on: DateInput) -> bool:
    anchor = item.anchor_date
    if anchor is None:
        return False
    target = to_local_datetime(on)
    if target is None:
        raise ValueError("A calendar date is required")

    anchor_day = anchor.date()
    day = target.date()
    if day == anchor_day:
        return True

    rule = item.recurrence
    if rule is None or not rule.is_recurring:
        return False
    if day < anchor_day:
        return False
    if rule.end_date is not None and day > rule.end_date.date():
        return False
    return _matches_frequency(rule, anchor_day, day)


def compute_next(
    rule: RecurrenceRule,
    from_date: DateInput,
    *,
    anchor_day: Optional[int] = None,
) -> Optional[datetime]:
    """Return the occurrence one rule step after ``from_date``.

    ``anchor_day`` restores a template's original day of month after a
    month-end snap (Jan 31 -> Feb 29 -> Mar 31). Returns ``None`` for
    non-recurring rules.
    """
    if not isinstance(rule, RecurrenceRule):
        raise InvalidRecurrenceRule(f"Not a recurrence rule: {rule!r}")
    start = to_local_datetime(from_date)
    if start is None:
        raise ValueError("A starting date is required")

    if rule.frequency == Frequency.none:
        return None
    if rule.frequency == Frequency.daily:
        return start + timedelta(days=rule.interval)
    if rule.frequency == Frequency.weekly:
        return start + timedelta(weeks=rule.interval)
    if rule.frequency == Frequency.monthly:
        return add_months(start, rule.interval, desired_day=anchor_day)
    if rule.frequency == Frequency.yearly:
        return add_months(start, 12 * rule.interval, desired_day=anchor_day)
    raise InvalidRecurrenceRule(f"Unknown frequency: {rule.frequency!r}")


def iter_occurrences(item: ScheduledItem, start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        if occurs_on(item, day):
            yield day
        day += timedelta(days=1)
