"""
Cron expressions for the background job scheduler.

Supports the classic 5-field form (minute hour day-of-month month
day-of-week) and a 6-field form with a leading seconds field.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import FrozenSet, Optional

from router_telemetry.domain.errors import InvalidScheduleError

_MONTH_NAMES = {name: i for i, name in enumerate(
    ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"], start=1)}
_DAY_NAMES = {name: i for i, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])}

# (name, low, high, aliases)
_SECOND = ("second", 0, 59, None)
_MINUTE = ("minute", 0, 59, None)
_HOUR = ("hour", 0, 23, None)
_DAY_OF_MONTH = ("day-of-month", 1, 31, None)
_MONTH = ("month", 1, 12, _MONTH_NAMES)
_DAY_OF_WEEK = ("day-of-week", 0, 7, _DAY_NAMES)

# Long enough to reach the next Feb 29 from any date
_SEARCH_HORIZON_YEARS = 9


def _parse_value(token: str, field_def, expression: str) -> int:
    name, low, high, aliases = field_def
    if aliases and token.lower() in aliases:
        return aliases[token.lower()]
    if not token.isdigit():
        raise InvalidScheduleError(expression, f"'{token}' is not a valid {name} value")
    value = int(token)
    if value < low or value > high:
        raise InvalidScheduleError(expression, f"{name} value {value} out of range {low}-{high}")
    return value


def _parse_field(text: str, field_def, expression: str) -> FrozenSet[int]:
    name, low, high, _ = field_def
    values = set()
    for part in text.split(","):
        if not part:
            raise InvalidScheduleError(expression, f"empty list item in {name} field")
        base, _, step_text = part.partition("/")
        step = 1
        if step_text:
            if not step_text.isdigit() or int(step_text) == 0:
                raise InvalidScheduleError(expression, f"invalid step '{step_text}' in {name} field")
            step = int(step_text)

        if base == "*":
            start, end = low, high
        elif "-" in base:
            first, _, last = base.partition("-")
            start = _parse_value(first, field_def, expression)
            end = _parse_value(last, field_def, expression)
            if start > end:
                raise InvalidScheduleError(expression, f"descending range '{base}' in {name} field")
        else:
            start = _parse_value(base, field_def, expression)
            end = high if step_text else start

        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronExpression:
    expression: str
    seconds: FrozenSet[int]
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days_of_month: FrozenSet[int]
    months: FrozenSet[int]
    days_of_week: FrozenSet[int]
    dom_restricted: bool
    dow_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronExpression":
        """
        Parse and validate a cron expression.

        Raises:
            InvalidScheduleError: malformed field, out-of-range value, or an
                expression that can never fire (e.g. ``0 0 31 2 *``)
        """
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidScheduleError(str(expression), "expression is empty")

        fields = expression.split()
        if len(fields) == 5:
            fields = ["0"] + fields
        elif len(fields) != 6:
            raise InvalidScheduleError(expression, f"expected 5 or 6 fields, got {len(fields)}")

        second, minute, hour, dom, month, dow = fields
        days_of_week = _parse_field(dow, _DAY_OF_WEEK, expression)
        # 7 is an alias for Sunday
        days_of_week = frozenset(0 if d == 7 else d for d in days_of_week)

        cron = cls(
            expression=expression,
            seconds=_parse_field(second, _SECOND, expression),
            minutes=_parse_field(minute, _MINUTE, expression),
            hours=_parse_field(hour, _HOUR, expression),
            days_of_month=_parse_field(dom, _DAY_OF_MONTH, expression),
            months=_parse_field(month, _MONTH, expression),
            days_of_week=days_of_week,
            dom_restricted=not dom.startswith("*"),
            dow_restricted=not dow.startswith("*"),
        )
        if cron.next_after(datetime(2000, 1, 1)) is None:
            raise InvalidScheduleError(expression, "expression never matches a calendar date")
        return cron

    def _day_matches(self, dt: datetime) -> bool:
        dom_match = dt.day in self.days_of_month
        # Python weekday(): Monday=0; cron: Sunday=0
        dow_match = (dt.weekday() + 1) % 7 in self.days_of_week
        if self.dom_restricted and self.dow_restricted:
            return dom_match or dow_match
        if self.dom_restricted:
            return dom_match
        if self.dow_restricted:
            return dow_match
        return True

    def matches(self, dt: datetime) -> bool:
        return (dt.second in self.seconds and dt.minute in self.minutes and dt.hour in self.hours
                and dt.month in self.months and self._day_matches(dt))

    def next_after(self, dt: datetime) -> Optional[datetime]:
        """
        First matching instant strictly after ``dt``.

        Timezone-aware inputs keep their tzinfo; the result is expressed in
        the same wall clock. Returns None only for expressions that never fire.
        """
        candidate = dt.replace(microsecond=0) + timedelta(seconds=1)
        limit = candidate.year + _SEARCH_HORIZON_YEARS

        while candidate.year <= limit:
            if candidate.month not in self.months:
                year, month = (candidate.year + 1, 1) if candidate.month == 12 else (candidate.year, candidate.month + 1)
                candidate = candidate.replace(year=year, month=month, day=1, hour=0, minute=0, second=0)
                continue
            if not self._day_matches(candidate):
                candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0, second=0)
                continue
            if candidate.hour not in self.hours:
                candidate = (candidate + timedelta(hours=1)).replace(minute=0, second=0)
                continue
            if candidate.minute not in self.minutes:
                candidate = (candidate + timedelta(minutes=1)).replace(second=0)
                continue
            second = next((s for s in sorted(self.seconds) if s >= candidate.second), None)
            if second is None:
                candidate = (candidate + timedelta(minutes=1)).replace(second=0)
                continue
            return candidate.replace(second=second)
        return None

