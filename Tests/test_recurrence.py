from datetime import date, datetime, timedelta

import pytest

from Services.errors import InvalidInterval, InvalidRecurrenceRule
from Services.recurrence import (
    EndType,
    Frequency,
    RecurrenceRule,
    days_spanned,
    expand,
    normalize_whole_day,
    parse_rule,
)


def weekly(days, **fields):
    return RecurrenceRule(frequency="weekly", daysOfWeek=days, **fields)


def monthly(day, **fields):
    return RecurrenceRule(frequency="monthly", dayOfMonth=day, **fields)


def test_weekly_monday_wednesday_after_four():
    rule = weekly([1, 3], interval=1, endType="after_count", count=4)

    occurrences = expand(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), rule)

    assert [o.start for o in occurrences] == [
        datetime(2030, 1, 7, 9),
        datetime(2030, 1, 9, 9),
        datetime(2030, 1, 14, 9),
        datetime(2030, 1, 16, 9),
    ]
    assert all(o.end - o.start == timedelta(hours=1) for o in occurrences)


def test_weekly_skips_weekdays_before_anchor_and_steps_by_interval():
    # Anchor on a Wednesday: the Monday of the first week is already past
    rule = weekly([1, 3], interval=2, endType="after_count", count=5)

    occurrences = expand(datetime(2030, 1, 9, 8), datetime(2030, 1, 9, 9), rule)

    assert [o.start.date() for o in occurrences] == [
        date(2030, 1, 9),
        date(2030, 1, 21),
        date(2030, 1, 23),
        date(2030, 2, 4),
        date(2030, 2, 6),
    ]


def test_weekly_sunday_is_index_zero():
    rule = weekly([0], endType="after_count", count=2)

    occurrences = expand(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), rule)

    assert [o.start.date() for o in occurrences] == [date(2030, 1, 13), date(2030, 1, 20)]


def test_weekly_on_date_is_inclusive():
    rule = weekly([1], endType="on_date", endDate="2030-01-28")

    occurrences = expand(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), rule)

    assert [o.start.day for o in occurrences] == [7, 14, 21, 28]


def test_never_is_capped_by_hard_cap():
    rule = weekly([1, 3, 5])

    occurrences = expand(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), rule)

    assert len(occurrences) == 52


def test_never_stops_one_year_after_anchor():
    rule = monthly(15)

    occurrences = expand(datetime(2030, 1, 15, 9), datetime(2030, 1, 15, 10), rule)

    assert len(occurrences) == 13
    assert occurrences[-1].start == datetime(2031, 1, 15, 9)


def test_hard_cap_wins_over_count():
    rule = weekly([1], endType="after_count", count=100)

    occurrences = expand(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), rule, hard_cap=10)

    assert len(occurrences) == 10


def test_end_date_before_anchor_gives_empty_list():
    rule = weekly([1], endType="on_date", endDate="2029-12-31")

    assert expand(datetime(2030, 1, 7, 9), datetime(2030, 1, 7, 10), rule) == []


def test_monthly_day_clamped_to_end_of_february():
    rule = monthly(31, interval=1, endType="after_count", count=3)

    occurrences = expand(datetime(2030, 1, 31, 9), datetime(2030, 1, 31, 11), rule)

    assert [o.start.date() for o in occurrences] == [
        date(2030, 1, 31),
        date(2030, 2, 28),
        date(2030, 3, 31),
    ]


def test_monthly_day_clamped_in_leap_year():
    rule = monthly(31, endType="after_count", count=2)

    occurrences = expand(datetime(2028, 1, 10, 9), datetime(2028, 1, 10, 10), rule)

    assert [o.start.date() for o in occurrences] == [date(2028, 1, 31), date(2028, 2, 29)]


def test_monthly_starts_next_qualifying_month_when_day_has_passed():
    rule = monthly(15, interval=2, endType="after_count", count=3)

    occurrences = expand(datetime(2030, 1, 20, 9), datetime(2030, 1, 20, 10), rule)

    assert [o.start.date() for o in occurrences] == [
        date(2030, 3, 15),
        date(2030, 5, 15),
        date(2030, 7, 15),
    ]


def test_monthly_starts_in_anchor_month_when_day_is_ahead():
    rule = monthly(15, endType="after_count", count=1)

    occurrences = expand(datetime(2030, 1, 10, 9), datetime(2030, 1, 10, 10), rule)

    assert occurrences[0].start == datetime(2030, 1, 15, 9)


def test_multi_day_duration_and_time_of_day_preserved():
    rule = weekly([5], endType="after_count", count=3)
    start = datetime(2030, 1, 11, 18, 30)
    end = datetime(2030, 1, 13, 20, 0)

    occurrences = expand(start, end, rule)

    assert len(occurrences) == 3
    for occurrence in occurrences:
        assert occurrence.end - occurrence.start == end - start
        assert occurrence.start.time() == start.time()


def test_expansion_is_deterministic_and_chronological():
    rule = weekly([6, 2, 4], interval=3, endType="on_date", endDate="2030-12-31")
    start, end = datetime(2030, 2, 1, 7), datetime(2030, 2, 1, 8)

    first = expand(start, end, rule)
    second = expand(start, end, rule)

    assert first == second
    starts = [o.start for o in first]
    assert starts == sorted(starts)
    assert len(set(starts)) == len(starts)


def test_expand_rejects_inverted_anchor():
    with pytest.raises(InvalidInterval):
        expand(datetime(2030, 1, 7, 10), datetime(2030, 1, 7, 9), weekly([1]))


@pytest.mark.parametrize("data", [
    {"frequency": "weekly"},
    {"frequency": "weekly", "daysOfWeek": []},
    {"frequency": "weekly", "daysOfWeek": [7]},
    {"frequency": "monthly"},
    {"frequency": "monthly", "dayOfMonth": 32},
    {"frequency": "monthly", "dayOfMonth": 1, "endType": "on_date"},
    {"frequency": "monthly", "dayOfMonth": 1, "endType": "after_count"},
    {"frequency": "monthly", "dayOfMonth": 1, "interval": 0},
    {"frequency": "daily"},
    {},
])
def test_malformed_rules_are_rejected(data):
    with pytest.raises(InvalidRecurrenceRule):
        parse_rule(data)


def test_rule_json_uses_field_aliases():
    rule = parse_rule({"frequency": "weekly", "daysOfWeek": [1], "endType": "on_date", "endDate": "2030-03-01"})

    assert rule.frequency == Frequency.WEEKLY
    assert rule.end_type == EndType.ON_DATE
    assert rule.to_json() == {
        "frequency": "weekly",
        "interval": 1,
        "daysOfWeek": [1],
        "endType": "on_date",
        "endDate": "2030-03-01",
    }


def test_normalize_whole_day_spans_touched_days():
    start, end = normalize_whole_day(datetime(2030, 1, 7, 10), datetime(2030, 1, 8, 12))

    assert start == datetime(2030, 1, 7, 0, 0)
    assert end == datetime(2030, 1, 8, 23, 59, 59)


def test_days_spanned_ignores_midnight_end():
    assert days_spanned(datetime(2030, 1, 7, 22), datetime(2030, 1, 8, 0)) == [date(2030, 1, 7)]
    assert days_spanned(datetime(2030, 1, 7, 22), datetime(2030, 1, 9, 1)) == [
        date(2030, 1, 7),
        date(2030, 1, 8),
        date(2030, 1, 9),
    ]


def test_weekly_interval_counts_weeks_from_sunday():
    # Saturday anchor: the Sunday after it already belongs to the skipped week
    rule = weekly([0, 6], interval=2, endType="after_count", count=3)

    occurrences = expand(datetime(2030, 1, 12, 9), datetime(2030, 1, 12, 10), rule)

    assert [o.start.date() for o in occurrences] == [
        date(2030, 1, 12),
        date(2030, 1, 20),
        date(2030, 1, 26),
    ]
