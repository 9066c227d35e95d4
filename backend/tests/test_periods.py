"""Tests for reporting period helpers."""

from datetime import date, datetime

from franchisehub.core.periods import (
    DateRange,
    PeriodType,
    RecurrenceType,
    bucket_totals,
    generate_period_keys,
    last_n_months,
    month_bounds,
    next_occurrence,
    percentage_change,
    period_key,
    period_range,
    previous_month,
    previous_period_range,
    ratio_percentage,
)


# ============== Percentages ==============

class TestPercentages:
    def test_growth(self):
        assert percentage_change(150, 100) == 50.0

    def test_decline(self):
        assert percentage_change(75, 100) == -25.0

    def test_zero_previous_is_zero(self):
        assert percentage_change(500, 0) == 0.0

    def test_none_values(self):
        assert percentage_change(None, None) == 0.0

    def test_ratio(self):
        assert ratio_percentage(1, 3) == 33.33

    def test_ratio_of_zero_whole(self):
        assert ratio_percentage(5, 0) == 0.0


# ============== Ranges ==============

class TestRanges:
    def test_month_bounds_leap_february(self):
        r = month_bounds(2024, 2)
        assert r.start == date(2024, 2, 1)
        assert r.end == date(2024, 2, 29)

    def test_previous_month_wraps_year(self):
        assert previous_month(date(2024, 1, 15)) == (2023, 12)

    def test_daily_range_is_the_month(self):
        r = period_range(PeriodType.DAILY, 2024, 4)
        assert (r.start, r.end) == (date(2024, 4, 1), date(2024, 4, 30))

    def test_monthly_range_is_the_year(self):
        r = period_range(PeriodType.MONTHLY, 2024)
        assert (r.start, r.end) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_yearly_range_starts_in_2019(self):
        r = period_range(PeriodType.YEARLY, 2024)
        assert r.start == date(2019, 1, 1)
        assert r.end == date(2024, 12, 31)

    def test_previous_daily_range(self):
        r = previous_period_range(PeriodType.DAILY, 2024, 3)
        assert (r.start, r.end) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_previous_monthly_range(self):
        r = previous_period_range(PeriodType.MONTHLY, 2024)
        assert r.start == date(2023, 1, 1)

    def test_contains_is_inclusive(self):
        r = DateRange(date(2024, 1, 1), date(2024, 1, 31))
        assert r.contains(date(2024, 1, 1))
        assert r.contains(date(2024, 1, 31))
        assert not r.contains(date(2024, 2, 1))

    def test_last_n_months_oldest_first(self):
        months = last_n_months(3, date(2024, 2, 10))
        assert [m.start for m in months] == [date(2023, 12, 1), date(2024, 1, 1), date(2024, 2, 1)]


# ============== Buckets ==============

class TestBuckets:
    def test_period_keys(self):
        d = date(2024, 5, 7)
        assert period_key(d, PeriodType.DAILY) == "2024-05-07"
        assert period_key(d, PeriodType.MONTHLY) == "2024-05"
        assert period_key(d, PeriodType.YEARLY) == "2024"

    def test_monthly_keys_cover_the_year(self):
        keys = generate_period_keys(PeriodType.MONTHLY, period_range(PeriodType.MONTHLY, 2024))
        assert len(keys) == 12
        assert keys[0] == "2024-01"
        assert keys[-1] == "2024-12"

    def test_zero_filled_and_summed(self):
        rows = [
            (date(2024, 1, 5), 100),
            (datetime(2024, 1, 20, 15, 30), 50.555),
            (date(2024, 3, 1), 10),
        ]
        totals = bucket_totals(rows, PeriodType.MONTHLY, period_range(PeriodType.MONTHLY, 2024))
        assert totals["2024-01"] == 150.56
        assert totals["2024-02"] == 0.0
        assert totals["2024-03"] == 10.0
        assert list(totals.keys())[0] == "2024-01"

    def test_ignores_missing_and_out_of_range_dates(self):
        rows = [(None, 100), (date(2023, 12, 31), 40), (date(2024, 6, 1), 5)]
        totals = bucket_totals(rows, PeriodType.MONTHLY, period_range(PeriodType.MONTHLY, 2024))
        assert sum(totals.values()) == 5.0


# ============== Recurrence ==============

class TestNextOccurrence:
    def test_daily(self):
        assert next_occurrence(date(2024, 1, 31), RecurrenceType.DAILY) == date(2024, 2, 1)

    def test_weekly_with_interval(self):
        assert next_occurrence(date(2024, 1, 1), RecurrenceType.WEEKLY, 2) == date(2024, 1, 15)

    def test_monthly_clamps_to_month_end(self):
        assert next_occurrence(date(2024, 1, 31), RecurrenceType.MONTHLY) == date(2024, 2, 29)

    def test_quarterly(self):
        assert next_occurrence(date(2024, 1, 15), "quarterly") == date(2024, 4, 15)

    def test_yearly(self):
        assert next_occurrence(date(2024, 3, 1), RecurrenceType.YEARLY) == date(2025, 3, 1)
