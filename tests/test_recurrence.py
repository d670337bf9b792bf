from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from recurrence import (
    Frequency,
    InvalidRecurrenceRule,
    RecurrenceRule,
    ScheduledItem,
    add_months,
    compute_next,
    iter_occurrences,
    occurs_on,
    to_local_datetime,
)


def _item(anchor, frequency=Frequency.none, interval=1, end_date=None) -> ScheduledItem:
    return ScheduledItem(
        anchor_date=anchor,
        recurrence=RecurrenceRule(frequency, interval=interval, end_date=end_date),
    )


def test_missing_anchor_never_occurs():
    item = ScheduledItem(anchor_date=None, recurrence=RecurrenceRule(Frequency.daily))
    for offset in range(-3, 10):
        assert occurs_on(item, date(2024, 1, 1) + timedelta(days=offset)) is False


def test_non_recurring_only_matches_anchor_day():
    item = _item(datetime(2024, 5, 10, 14, 30))
    assert occurs_on(item, date(2024, 5, 10))
    assert not occurs_on(item, date(2024, 5, 11))
    assert not occurs_on(item, date(2024, 5, 9))
    assert not occurs_on(item, date(2025, 5, 10))

    bare = ScheduledItem(anchor_date=date(2024, 5, 10))
    assert occurs_on(bare, date(2024, 5, 10))
    assert not occurs_on(bare, date(2024, 5, 17))


@pytest.mark.parametrize("interval", [1, 2, 3, 5])
def test_daily_matches_every_interval_days(interval):
    anchor = date(2024, 1, 1)
    item = _item(anchor, Frequency.daily, interval)
    for n in range(-5, 40):
        expected = n >= 0 and n % interval == 0
        assert occurs_on(item, anchor + timedelta(days=n)) is expected


def test_weekly_every_other_week():
    # 2024-03-04 is a Monday.
    item = _item(date(2024, 3, 4), Frequency.weekly, 2)
    assert occurs_on(item, date(2024, 3, 18))
    assert not occurs_on(item, date(2024, 3, 11))
    assert occurs_on(item, date(2024, 4, 1))
    assert not occurs_on(item, date(2024, 3, 19))


def test_weekly_requires_same_weekday():
    item = _item(date(2024, 3, 4), Frequency.weekly, 1)
    assert not occurs_on(item, date(2024, 3, 7))
    assert occurs_on(item, date(2024, 3, 25))


def test_monthly_matches_day_and_interval():
    item = _item(date(2024, 1, 15), Frequency.monthly, 2)
    assert occurs_on(item, date(2024, 3, 15))
    assert occurs_on(item, date(2025, 1, 15))
    assert not occurs_on(item, date(2024, 2, 15))
    assert not occurs_on(item, date(2024, 3, 16))
    # Same month as the anchor only matches through the anchor day itself.
    assert not occurs_on(item, date(2024, 1, 20))


def test_monthly_on_31st_skips_short_months_in_predicate():
    item = _item(date(2024, 1, 31), Frequency.monthly, 1)
    assert not occurs_on(item, date(2024, 2, 29))
    assert occurs_on(item, date(2024, 3, 31))


def test_yearly_matches_month_and_day():
    item = _item(date(2024, 6, 15), Frequency.yearly)
    assert occurs_on(item, date(2025, 6, 15))
    assert not occurs_on(item, date(2025, 6, 16))
    assert not occurs_on(item, date(2023, 6, 15))


def test_yearly_honors_interval():
    item = _item(date(2024, 6, 15), Frequency.yearly, 2)
    assert not occurs_on(item, date(2025, 6, 15))
    assert occurs_on(item, date(2026, 6, 15))


def test_end_date_stops_occurrences():
    item = _item(date(2024, 1, 1), Frequency.daily, 3, end_date=date(2024, 1, 10))
    assert occurs_on(item, date(2024, 1, 10))
    assert not occurs_on(item, date(2024, 1, 13))
    assert not occurs_on(item, date(2024, 2, 9))


def test_date_only_strings_are_local_midnight():
    item = ScheduledItem(
        anchor_date="2024-03-04",
        recurrence=RecurrenceRule.from_config({"frequency": "weekly", "interval": 1}),
    )
    assert item.anchor_date == datetime(2024, 3, 4, 0, 0)
    assert occurs_on(item, "2024-03-04")
    assert occurs_on(item, "2024-03-11")
    assert not occurs_on(item, "2024-03-10")


def test_late_evening_anchor_judged_by_calendar_day():
    item = _item(datetime(2024, 1, 1, 23, 0), Frequency.daily, 1)
    assert occurs_on(item, date(2024, 1, 2))
    assert occurs_on(item, datetime(2024, 1, 1, 0, 5))
    assert not occurs_on(item, date(2023, 12, 31))


def test_to_local_datetime_converts_instants_to_local_zone():
    berlin = ZoneInfo("Europe/Berlin")
    assert to_local_datetime("2024-01-01T23:30:00Z", tz=berlin) == datetime(2024, 1, 2, 0, 30)
    assert to_local_datetime(1704067200000, tz=ZoneInfo("UTC")) == datetime(2024, 1, 1)
    assert to_local_datetime("2024-07-01T08:15:00") == datetime(2024, 7, 1, 8, 15)
    assert to_local_datetime("") is None
    assert to_local_datetime(None) is None
    with pytest.raises(ValueError):
        to_local_datetime("not a date")


def test_occurs_on_is_deterministic():
    item = _item(date(2024, 1, 1), Frequency.weekly, 3)
    answers = {occurs_on(item, date(2024, 1, 22)) for _ in range(5)}
    assert answers == {True}


@pytest.mark.parametrize(
    "config",
    [
        {"frequency": "hourly", "interval": 1},
        {"frequency": "daily", "interval": 0},
        {"frequency": "weekly", "interval": -2},
        {"frequency": "monthly", "interval": "2"},
        {"frequency": None},
    ],
)
def test_invalid_rules_are_rejected(config):
    with pytest.raises(InvalidRecurrenceRule):
        RecurrenceRule.from_config(config)


def test_rule_from_config_defaults_interval_and_reads_end_date():
    rule = RecurrenceRule.from_config({"frequency": "daily", "endDate": "2024-02-01"})
    assert rule.interval == 1
    assert rule.end_date == datetime(2024, 2, 1)
    assert rule.to_config() == {
        "frequency": "daily",
        "interval": 1,
        "endDate": "2024-02-01",
    }
    assert RecurrenceRule.from_config(None) is None


def test_compute_next_monthly_snaps_to_month_end():
    rule = RecurrenceRule(Frequency.monthly)
    assert compute_next(rule, date(2024, 1, 31)) == datetime(2024, 2, 29)
    assert compute_next(rule, datetime(2024, 2, 29)) == datetime(2024, 3, 29)
    assert compute_next(rule, datetime(2024, 2, 29), anchor_day=31) == datetime(2024, 3, 31)
    assert compute_next(rule, date(2023, 1, 31)) == datetime(2023, 2, 28)


def test_compute_next_steps_by_interval():
    start = datetime(2024, 11, 30, 9, 30)
    assert compute_next(RecurrenceRule(Frequency.daily, 2), start) == datetime(2024, 12, 2, 9, 30)
    assert compute_next(RecurrenceRule(Frequency.weekly, 3), start) == datetime(2024, 12, 21, 9, 30)
    assert compute_next(RecurrenceRule(Frequency.monthly, 3), start) == datetime(2025, 2, 28, 9, 30)
    assert compute_next(RecurrenceRule(Frequency.yearly, 2), start) == datetime(2026, 11, 30, 9, 30)


def test_compute_next_yearly_leap_day():
    rule = RecurrenceRule(Frequency.yearly)
    assert compute_next(rule, date(2024, 2, 29)) == datetime(2025, 2, 28)
    assert compute_next(rule, date(2027, 2, 28), anchor_day=29) == datetime(2028, 2, 29)


def test_compute_next_none_frequency_returns_none():
    assert compute_next(RecurrenceRule(Frequency.none), date(2024, 1, 1)) is None


def test_compute_next_rejects_non_rules():
    with pytest.raises(InvalidRecurrenceRule):
        compute_next({"frequency": "daily", "interval": 1}, date(2024, 1, 1))


def test_compute_next_always_moves_forward():
    starts = [
        datetime(2024, 1, 31),
        datetime(2024, 2, 29, 23, 59),
        datetime(2023, 12, 31, 12, 0),
        datetime(2024, 8, 15, 6, 0),
    ]
    for frequency in (Frequency.daily, Frequency.weekly, Frequency.monthly, Frequency.yearly):
        for interval in (1, 2, 7):
            rule = RecurrenceRule(frequency, interval)
            for start in starts:
                result = compute_next(rule, start)
                assert result > start
                assert compute_next(rule, start) == result


def test_add_months_crosses_year_boundary():
    assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
    assert add_months(date(2024, 10, 31), 4) == date(2025, 2, 28)
    with pytest.raises(ValueError):
        add_months(date(2024, 1, 1), 1, desired_day=32)


def test_iter_occurrences_lists_matching_days():
    item = _item(date(2024, 3, 4), Frequency.weekly, 1, end_date=date(2024, 3, 20))
    days = list(iter_occurrences(item, date(2024, 3, 1), date(2024, 3, 31)))
    assert days == [date(2024, 3, 4), date(2024, 3, 11), date(2024, 3, 18)]
