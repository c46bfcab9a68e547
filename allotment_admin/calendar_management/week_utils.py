"""
Week and year helpers for vacation allotments.

All values are plain calendar dates; no timezone is ever applied, so a
week start never drifts with the server or browser locale.
"""

from datetime import date, datetime, timedelta
from typing import List, Union


def week_start_for(value: date) -> date:
    """Monday on or before the given date"""
    return value - timedelta(days=value.weekday())


def generate_week_starts(year: int) -> List[date]:
    """
    Every Monday that falls inside the given year, in increasing order.

    The first week of January may begin in the previous year and the last
    week of December may end in the next one; a week belongs to the year
    its Monday falls in.
    """
    first_day = date(year, 1, 1)
    current = first_day + timedelta(days=(7 - first_day.weekday()) % 7)

    weeks = []
    while current.year == year:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks


def years_between(start: date, end: date) -> List[int]:
    """Inclusive list of calendar years touched by a date range"""
    if end < start:
        start, end = end, start
    return list(range(start.year, end.year + 1))


def parse_date(value: Union[str, date, datetime]) -> date:
    """Accept ISO strings, dates and datetimes"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])
