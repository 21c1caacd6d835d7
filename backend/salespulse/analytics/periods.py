"""
Calendar arithmetic shared by every analytics component.

All bucket keys and date ranges come from here so that sales, payments
and expenses land in the same calendar unit no matter which component
looks at them. Nothing here reads the wall clock.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

import pandas as pd

T = TypeVar("T")


class Granularity(str, Enum):
    """Calendar unit used for bucketing."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


def parse_granularity(value) -> Granularity:
    """Accept a Granularity or its string name."""
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(str(value).strip().lower())
    except ValueError:
        raise ValueError(
            f"Unknown granularity {value!r}; expected one of "
            f"{', '.join(g.value for g in Granularity)}"
        )


def period_start(moment: datetime, granularity, week_start: int = 0) -> datetime:
    """Midnight at the start of the calendar unit containing `moment`."""
    granularity = parse_granularity(granularity)
    day = datetime(moment.year, moment.month, moment.day)

    if granularity == Granularity.DAY:
        return day
    if granularity == Granularity.WEEK:
        offset = (day.weekday() - week_start) % 7
        return day - timedelta(days=offset)
    if granularity == Granularity.MONTH:
        return datetime(moment.year, moment.month, 1)
    return datetime(moment.year, 1, 1)


def bucket_key(moment: datetime, granularity, week_start: int = 0) -> str:
    """
    Stable key for the calendar unit containing `moment`.

    day: YYYY-MM-DD, week: YYYY-MM-DD of the week's first day,
    month: YYYY-MM, year: YYYY. Keys sort chronologically as strings.
    """
    granularity = parse_granularity(granularity)
    start = period_start(moment, granularity, week_start)

    if granularity in (Granularity.DAY, Granularity.WEEK):
        return f"{start.year:04d}-{start.month:02d}-{start.day:02d}"
    if granularity == Granularity.MONTH:
        return f"{start.year:04d}-{start.month:02d}"
    return f"{start.year:04d}"


def bucket_keys(moments: pd.Series, granularity, week_start: int = 0) -> pd.Series:
    """Vectorised bucket_key over a datetime64 series."""
    granularity = parse_granularity(granularity)
    days = moments.dt.normalize()

    if granularity == Granularity.WEEK:
        offset = (days.dt.weekday - week_start) % 7
        days = days - pd.to_timedelta(offset, unit="D")

    # Zero-padded explicitly: strftime("%Y") does not pad years below 1000
    year = days.dt.year.astype(str).str.zfill(4)
    if granularity == Granularity.YEAR:
        return year
    month = year + "-" + days.dt.month.astype(str).str.zfill(2)
    if granularity == Granularity.MONTH:
        return month
    return month + "-" + days.dt.day.astype(str).str.zfill(2)


def period_range(granularity, reference: datetime, week_start: int = 0) -> Tuple[datetime, datetime]:
    """
    Inclusive (start, end) bounds of the calendar unit containing `reference`.

    The end is the last microsecond of the unit, matching the dashboards'
    endOfDay/endOfWeek/endOfMonth/endOfYear.
    """
    granularity = parse_granularity(granularity)
    start = period_start(reference, granularity, week_start)
    return start, _shift(start, granularity, 1) - timedelta(microseconds=1)


def previous_period(granularity, reference: datetime, week_start: int = 0) -> Tuple[datetime, datetime]:
    """The calendar unit immediately before the one containing `reference`."""
    granularity = parse_granularity(granularity)
    start, _ = period_range(granularity, reference, week_start)
    previous_start = _shift(start, granularity, -1)
    return previous_start, start - timedelta(microseconds=1)


def rolling_range(days: int, reference: datetime) -> Tuple[datetime, datetime]:
    """Last `days` days up to and including `reference` (7days/30days/90days)."""
    if days < 1:
        raise ValueError("days must be at least 1")
    return reference - timedelta(days=days), reference


def filter_by_range(
    records: Iterable[T],
    date_fn: Callable[[T], Optional[datetime]],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> List[T]:
    """Records whose date falls within [start, end]. Undated records are dropped."""
    selected = []
    for record in records:
        moment = date_fn(record)
        if moment is None:
            continue
        if start is not None and moment < start:
            continue
        if end is not None and moment > end:
            continue
        selected.append(record)
    return selected


def _shift(start: datetime, granularity: Granularity, units: int) -> datetime:
    if granularity == Granularity.DAY:
        return start + timedelta(days=units)
    if granularity == Granularity.WEEK:
        return start + timedelta(weeks=units)
    if granularity == Granularity.MONTH:
        month_index = start.year * 12 + (start.month - 1) + units
        return datetime(month_index // 12, month_index % 12 + 1, 1)
    return datetime(start.year + units, 1, 1)
