"""Period arithmetic shared by every dashboard and report.

Percentage change and date bucketing live here and nowhere else. Routes and
services compute ranges with ``period_range`` / ``previous_period_range`` and
turn raw ``(date, amount)`` rows into chart series with ``bucket_totals``.
"""

from __future__ import annotations

import calendar
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

Number = Union[int, float, Decimal, None]

# Yearly reports start at the first year the platform held data
EARLIEST_REPORTING_YEAR = 2019


class PeriodType(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, datetime.min.time())

    @property
    def end_datetime(self) -> datetime:
        return datetime.combine(self.end, datetime.max.time())


def _to_float(value: Number) -> float:
    if value is None:
        return 0.0
    return float(value)


def percentage_change(current: Number, previous: Number, precision: int = 2) -> float:
    """Growth of ``current`` over ``previous`` in percent.

    Returns 0 when there is no previous value to compare against.
    """
    cur = _to_float(current)
    prev = _to_float(previous)
    if prev == 0:
        return 0.0
    return round((cur - prev) / prev * 100, precision)


def ratio_percentage(part: Number, whole: Number, precision: int = 2) -> float:
    """``part`` as a percentage of ``whole``; 0 when ``whole`` is 0."""
    w = _to_float(whole)
    if w == 0:
        return 0.0
    return round(_to_float(part) / w * 100, precision)


def month_bounds(year: int, month: int) -> DateRange:
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(date(year, month, 1), date(year, month, last_day))


def previous_month(today: date) -> Tuple[int, int]:
    prev = today.replace(day=1) - relativedelta(months=1)
    return prev.year, prev.month


def period_range(period: PeriodType, year: int, month: Optional[int] = None) -> DateRange:
    """Reporting window for a period selector.

    daily: every day of ``year-month``; monthly: every month of ``year``;
    yearly: every year from EARLIEST_REPORTING_YEAR through ``year``.
    """
    period = PeriodType(period)
    if period == PeriodType.DAILY:
        return month_bounds(year, month or 1)
    if period == PeriodType.MONTHLY:
        return DateRange(date(year, 1, 1), date(year, 12, 31))
    return DateRange(date(EARLIEST_REPORTING_YEAR, 1, 1), date(year, 12, 31))


def previous_period_range(period: PeriodType, year: int, month: Optional[int] = None) -> DateRange:
    """Window the current ``period_range`` is compared against."""
    period = PeriodType(period)
    if period == PeriodType.DAILY:
        prev = date(year, month or 1, 1) - relativedelta(months=1)
        return month_bounds(prev.year, prev.month)
    if period == PeriodType.MONTHLY:
        return DateRange(date(year - 1, 1, 1), date(year - 1, 12, 31))
    return DateRange(date(EARLIEST_REPORTING_YEAR, 1, 1), date(year - 1, 12, 31))


def period_key(d: Union[date, datetime], period: PeriodType) -> str:
    period = PeriodType(period)
    if period == PeriodType.DAILY:
        return d.strftime("%Y-%m-%d")
    if period == PeriodType.MONTHLY:
        return d.strftime("%Y-%m")
    return d.strftime("%Y")


def _step(period: PeriodType) -> relativedelta:
    if period == PeriodType.DAILY:
        return relativedelta(days=1)
    if period == PeriodType.MONTHLY:
        return relativedelta(months=1)
    return relativedelta(years=1)


def _align(d: date, period: PeriodType) -> date:
    if period == PeriodType.MONTHLY:
        return d.replace(day=1)
    if period == PeriodType.YEARLY:
        return d.replace(month=1, day=1)
    return d


def period_starts(period: PeriodType, start: date, end: date) -> List[date]:
    """First date of every bucket between ``start`` and ``end`` inclusive."""
    period = PeriodType(period)
    current = _align(start, period)
    step = _step(period)
    starts = []
    while current <= end:
        starts.append(current)
        current = current + step
    return starts


def generate_period_keys(period: PeriodType, date_range: DateRange) -> List[str]:
    return [period_key(d, period) for d in period_starts(period, date_range.start, date_range.end)]


def period_label(d: date, period: PeriodType) -> str:
    """Short chart label: ``Jan 05``, ``Jan`` or ``2024``."""
    period = PeriodType(period)
    if period == PeriodType.DAILY:
        return d.strftime("%b %d")
    if period == PeriodType.MONTHLY:
        return d.strftime("%b")
    return d.strftime("%Y")


def bucket_totals(
    rows: Iterable[Tuple[Union[date, datetime, None], Number]],
    period: PeriodType,
    date_range: DateRange,
) -> "OrderedDict[str, float]":
    """Sum ``(date, amount)`` rows into zero-filled buckets ordered by key.

    Rows outside ``date_range`` or without a date are ignored.
    """
    period = PeriodType(period)
    buckets: "OrderedDict[str, float]" = OrderedDict(
        (key, 0.0) for key in generate_period_keys(period, date_range)
    )
    for row_date, amount in rows:
        if row_date is None:
            continue
        as_date = row_date.date() if isinstance(row_date, datetime) else row_date
        if not date_range.contains(as_date):
            continue
        key = period_key(as_date, period)
        if key in buckets:
            buckets[key] = round(buckets[key] + _to_float(amount), 2)
    return buckets


def trailing_window_start(period: PeriodType, today: date) -> date:
    """Start of the rolling window shown on performance charts."""
    period = PeriodType(period)
    if period == PeriodType.DAILY:
        return today - timedelta(days=14)
    if period == PeriodType.MONTHLY:
        return today - relativedelta(months=12)
    return today - relativedelta(years=5)


def last_n_months(n: int, today: date) -> List[DateRange]:
    """Month ranges for the ``n`` months ending with the current one, oldest first."""
    first = today.replace(day=1)
    months = []
    for offset in range(n - 1, -1, -1):
        m = first - relativedelta(months=offset)
        months.append(month_bounds(m.year, m.month))
    return months


def next_occurrence(d: date, frequency: Union[RecurrenceType, str], interval: int = 1) -> date:
    """Next due date of a recurring record."""
    frequency = RecurrenceType(frequency)
    interval = max(interval or 1, 1)
    if frequency == RecurrenceType.DAILY:
        return d + relativedelta(days=interval)
    if frequency == RecurrenceType.WEEKLY:
        return d + relativedelta(weeks=interval)
    if frequency == RecurrenceType.MONTHLY:
        return d + relativedelta(months=interval)
    if frequency == RecurrenceType.QUARTERLY:
        return d + relativedelta(months=3 * interval)
    return d + relativedelta(years=interval)
