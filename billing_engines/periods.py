"""
Module: billing_engines.periods
Responsibility:
    Turn report timeframes ("week", "month", "quarter", "year", "custom")
    into inclusive calendar-date windows, and derive the comparison window
    used by trend figures.

Architecture position:
    Engines -- pure calculation layer.  ``today`` is always passed in; this
    module never reads the clock.

Invariants enforced:
    - Windows are inclusive on both ends, from start-of-day of ``start``
      to end-of-day of ``end``.
    - A window never starts after it ends.
    - Preset timeframes end today and reach back a configured number of
      days (week 7, month 90, quarter 180, year 365).

Failure modes:
    - InvalidTimeframeError for an unknown timeframe.
    - InvalidDateRangeError for a custom range that is missing, unparsable
      or inverted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum

from billing_kernel.exceptions import InvalidDateRangeError, InvalidTimeframeError


class Timeframe(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


DEFAULT_TIMEFRAME_DAYS: Mapping[Timeframe, int] = {
    Timeframe.WEEK: 7,
    Timeframe.MONTH: 90,
    Timeframe.QUARTER: 180,
    Timeframe.YEAR: 365,
}


@dataclass(frozen=True)
class DateWindow:
    """
    Inclusive calendar-date range.

    Guarantees:
        - start <= end.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidDateRangeError("start is after end", self.start, self.end)

    @property
    def days(self) -> int:
        """Number of calendar days covered."""
        return (self.end - self.start).days + 1

    @property
    def start_of_day(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_of_day(self) -> datetime:
        return datetime.combine(self.end, time.max)

    def contains(self, value: date | datetime | None) -> bool:
        if value is None:
            return False
        if isinstance(value, datetime):
            value = value.date()
        return self.start <= value <= self.end

    def previous(self) -> DateWindow:
        """Window of the same length ending the day before this one starts."""
        end = self.start - timedelta(days=1)
        return DateWindow(start=end - timedelta(days=self.days - 1), end=end)

    @classmethod
    def trailing(cls, today: date, days: int) -> DateWindow:
        """From ``days`` days before ``today`` through ``today``."""
        return cls(start=today - timedelta(days=days), end=today)


def parse_date(value: date | datetime | str | None, field: str) -> date:
    """
    Parse a request date (date, datetime or ISO-8601 text).

    Raises:
        InvalidDateRangeError: value is missing or not a date.
    """
    if value is None or value == "":
        raise InvalidDateRangeError(f"{field} is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidDateRangeError(f"{field} is not a date: {text!r}") from None


def parse_timeframe(value: str | Timeframe | None, default: Timeframe = Timeframe.MONTH) -> Timeframe:
    """Parse a timeframe name; None or blank gives ``default``."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, Timeframe):
        return value
    try:
        return Timeframe(value.strip().lower())
    except ValueError:
        raise InvalidTimeframeError(value, tuple(t.value for t in Timeframe)) from None


def resolve_window(
    today: date,
    timeframe: str | Timeframe | None = None,
    date_from: date | str | None = None,
    date_to: date | str | None = None,
    *,
    timeframe_days: Mapping[Timeframe, int] | None = None,
    default_timeframe: Timeframe = Timeframe.MONTH,
) -> tuple[Timeframe, DateWindow]:
    """
    Resolve a report's timeframe and date window.

    With no timeframe, explicit dates select a custom window and their
    absence selects ``default_timeframe``.

    Raises:
        InvalidTimeframeError: unknown timeframe.
        InvalidDateRangeError: custom range missing, unparsable or inverted.
    """
    if timeframe is None and (date_from or date_to):
        timeframe = Timeframe.CUSTOM
    resolved = parse_timeframe(timeframe, default_timeframe)

    if resolved is Timeframe.CUSTOM:
        if not date_from or not date_to:
            raise InvalidDateRangeError(
                "custom timeframe requires both from and to", date_from, date_to
            )
        start = parse_date(date_from, "from")
        end = parse_date(date_to, "to")
        return resolved, DateWindow(start=start, end=end)

    days = (timeframe_days or DEFAULT_TIMEFRAME_DAYS)[resolved]
    return resolved, DateWindow.trailing(today, days)
