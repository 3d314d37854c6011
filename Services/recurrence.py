# Services/recurrence.py
"""
Recurrence rules and their expansion into concrete occurrences.

Everything in this module is pure: no database access and no reading of the
current time. Times are naive local wall-clock values.
"""
import calendar
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Union

from dateutil.relativedelta import relativedelta
from dateutil.rrule import SU, WEEKLY, rrule
from pydantic import BaseModel, ConfigDict, Field, ValidationError, conint, model_validator

from Services.errors import InvalidInterval, InvalidRecurrenceRule

DEFAULT_HARD_CAP = 52

# Last second of a whole-day booking
WHOLE_DAY_END = time(23, 59, 59)


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class EndType(str, Enum):
    NEVER = "never"
    ON_DATE = "on_date"
    AFTER_COUNT = "after_count"


class RecurrenceRule(BaseModel):
    """
    How a recurring reservation repeats.

    Attributes:
        frequency: weekly or monthly
        interval: Step between qualifying weeks/months (1 = every, 2 = every other)
        days_of_week: Weekday indices, 0 = Sunday .. 6 = Saturday (weekly only)
        day_of_month: 1-31, clamped to shorter months (monthly only)
        end_type: never, on_date or after_count
        end_date: Last date an occurrence may fall on (on_date only)
        count: Maximum number of occurrences (after_count only)
    """
    model_config = ConfigDict(populate_by_name=True)

    frequency: Frequency
    interval: conint(ge=1) = 1
    days_of_week: Optional[List[conint(ge=0, le=6)]] = Field(default=None, alias="daysOfWeek")
    day_of_month: Optional[conint(ge=1, le=31)] = Field(default=None, alias="dayOfMonth")
    end_type: EndType = Field(default=EndType.NEVER, alias="endType")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    count: Optional[conint(ge=1)] = None

    @model_validator(mode="after")
    def check_required_fields(self):
        if self.frequency == Frequency.WEEKLY and not self.days_of_week:
            raise ValueError("daysOfWeek is required for a weekly rule")
        if self.frequency == Frequency.MONTHLY and self.day_of_month is None:
            raise ValueError("dayOfMonth is required for a monthly rule")
        if self.end_type == EndType.ON_DATE and self.end_date is None:
            raise ValueError("endDate is required when endType is on_date")
        if self.end_type == EndType.AFTER_COUNT and self.count is None:
            raise ValueError("count is required when endType is after_count")
        return self

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Occurrence(NamedTuple):
    start: datetime
    end: datetime


def parse_rule(value: Union[RecurrenceRule, Dict[str, Any], None]) -> RecurrenceRule:
    """Return a validated rule or raise InvalidRecurrenceRule."""
    if isinstance(value, RecurrenceRule):
        return value
    if not value:
        raise InvalidRecurrenceRule("A recurrence rule is required")
    try:
        return RecurrenceRule.model_validate(value)
    except ValidationError as e:
        problems = "; ".join(err["msg"] for err in e.errors())
        raise InvalidRecurrenceRule(f"Invalid recurrence rule: {problems}") from e


def normalize_whole_day(start: datetime, end: datetime) -> Occurrence:
    """Stretch an interval to cover every calendar day it touches."""
    first = start.date()
    last = end.date()
    # An end at exactly midnight does not touch that day
    if end.time() == time.min and last > first:
        last -= timedelta(days=1)
    return Occurrence(datetime.combine(first, time.min), datetime.combine(last, WHOLE_DAY_END))


def days_spanned(start: datetime, end: datetime) -> List[date]:
    first, last = normalize_whole_day(start, end)
    return [first.date() + timedelta(days=i) for i in range((last.date() - first.date()).days + 1)]


def _date_boundary(anchor: date, rule: RecurrenceRule) -> Optional[date]:
    if rule.end_type == EndType.ON_DATE:
        return rule.end_date
    if rule.end_type == EndType.NEVER:
        return anchor + relativedelta(years=1)
    return None


def _weekly_dates(anchor: date, rule: RecurrenceRule) -> Iterator[date]:
    # Weeks start on Sunday; dateutil numbers weekdays from Monday = 0
    weeks = rrule(
        WEEKLY,
        dtstart=datetime.combine(anchor, time.min),
        interval=rule.interval,
        byweekday=sorted({(day + 6) % 7 for day in rule.days_of_week}),
        wkst=SU,
    )
    for occurrence in weeks:
        yield occurrence.date()


def _monthly_dates(anchor: date, rule: RecurrenceRule) -> Iterator[date]:
    month = anchor.replace(day=1)
    while True:
        last_day = calendar.monthrange(month.year, month.month)[1]
        candidate = month.replace(day=min(rule.day_of_month, last_day))
        if candidate >= anchor:
            yield candidate
        month += relativedelta(months=rule.interval)


def expand(
    anchor_start: datetime,
    anchor_end: datetime,
    rule: RecurrenceRule,
    hard_cap: int = DEFAULT_HARD_CAP,
) -> List[Occurrence]:
    """
    Expand a recurrence rule into chronologically ordered occurrences.

    Every occurrence keeps the anchor's time of day and duration. The result
    is empty when no candidate date falls inside both the date and the count
    boundary.
    """
    if anchor_end <= anchor_start:
        raise InvalidInterval()
    if hard_cap < 1:
        raise ValueError("hard_cap must be a positive integer")
    rule = parse_rule(rule)

    anchor = anchor_start.date()
    duration = anchor_end - anchor_start
    until = _date_boundary(anchor, rule)
    limit = hard_cap
    if rule.end_type == EndType.AFTER_COUNT:
        limit = min(hard_cap, rule.count)

    if rule.frequency == Frequency.WEEKLY:
        candidates = _weekly_dates(anchor, rule)
    else:
        candidates = _monthly_dates(anchor, rule)

    occurrences = []
    for day in candidates:
        if len(occurrences) >= limit:
            break
        if until is not None and day > until:
            break
        start = datetime.combine(day, anchor_start.time())
        occurrences.append(Occurrence(start, start + duration))
    return occurrences
