"""
ISO week helpers.
Turns a (year, week) pair into the calendar days and (year, month) partitions it touches.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Tuple

from ..errors import InvalidWindow

MIN_WEEK = 1
MAX_WEEK = 53


@dataclass(frozen=True)
class TimeWindow:
    year: int
    week: int
    start: date
    end: date
    months: Tuple[Tuple[int, int], ...]

    @property
    def days(self) -> List[date]:
        return [self.start + timedelta(days=offset) for offset in range(7)]

    def describe(self) -> str:
        months = ", ".join(f"{y}-{m:02d}" for y, m in self.months)
        return f"{self.year}-W{self.week:02d} ({self.start.isoformat()}..{self.end.isoformat()}; months: {months})"


def iso_week_monday(year: int, week: int) -> date:
    """
    Monday of the given ISO week.
    Week 1 is the week holding January 4th (same as the one holding the first Thursday).
    Week 53 of a 52-week year lands on the first week of the next year.
    """
    jan4 = date(year, 1, 4)
    week1_monday = jan4 - timedelta(days=jan4.weekday())
    return week1_monday + timedelta(weeks=week - 1)


def resolve_window(year: int, week: int) -> TimeWindow:
    """Resolve an ISO (year, week) into its Monday..Sunday span and the ordered (year, month) pairs it covers."""
    if not MIN_WEEK <= week <= MAX_WEEK:
        raise InvalidWindow(f"Week must be between {MIN_WEEK} and {MAX_WEEK}, got {week}")
    try:
        start = iso_week_monday(year, week)
        days = [start + timedelta(days=offset) for offset in range(7)]
    except (ValueError, OverflowError):
        raise InvalidWindow(f"Year {year} is outside the supported calendar") from None

    months = []
    for day in days:
        pair = (day.year, day.month)
        if pair not in months:
            months.append(pair)

    return TimeWindow(
        year=year,
        week=week,
        start=start,
        end=days[-1],
        months=tuple(months),
    )


def series_windows(window: TimeWindow, num_series: int = 1) -> List[TimeWindow]:
    """
    The requested window plus the (num_series - 1) weeks before it, oldest first.
    Earlier weeks are labelled with their ISO (year, week).
    """
    windows = [window]
    for back in range(1, num_series):
        try:
            monday = window.start - timedelta(weeks=back)
        except OverflowError:
            raise InvalidWindow(f"Year {window.year} is outside the supported calendar") from None
        iso_year, iso_week, _ = monday.isocalendar()
        windows.append(resolve_window(iso_year, iso_week))
    return list(reversed(windows))
