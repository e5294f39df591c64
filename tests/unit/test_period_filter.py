"""Tests for PeriodFilter: labels, bounds and membership."""

from datetime import date, datetime, timezone

import pytest

from settlement_kernel.domain.period import PeriodFilter, month_label


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestConstructors:

    def test_all_is_unbounded(self):
        period = PeriodFilter.all()
        assert period.is_unbounded
        assert period.label == "All pending"

    def test_for_month(self):
        period = PeriodFilter.for_month(2025, 1)
        assert period.start == utc(2025, 1, 1)
        assert period.end == utc(2025, 2, 1)
        assert period.label == "January 2025"

    def test_for_december_rolls_into_next_year(self):
        period = PeriodFilter.for_month(2024, 12)
        assert period.end == utc(2025, 1, 1)
        assert period.label == "December 2024"

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month_rejected(self, month):
        with pytest.raises(ValueError):
            PeriodFilter.for_month(2025, month)

    def test_for_year(self):
        period = PeriodFilter.for_year(2025)
        assert period.start == utc(2025, 1, 1)
        assert period.end == utc(2026, 1, 1)
        assert period.label == "Year 2025"

    def test_between_is_inclusive_of_both_dates(self):
        period = PeriodFilter.between(date(2025, 1, 10), date(2025, 1, 20))
        assert period.contains(utc(2025, 1, 10, 0, 0))
        assert period.contains(utc(2025, 1, 20, 23, 59, 59))
        assert not period.contains(utc(2025, 1, 21))

    def test_between_single_day(self):
        period = PeriodFilter.between(date(2025, 3, 1), date(2025, 3, 1))
        assert period.contains(utc(2025, 3, 1, 12))

    def test_between_inverted_rejected(self):
        with pytest.raises(ValueError):
            PeriodFilter.between(date(2025, 2, 1), date(2025, 1, 1))

    def test_naive_bounds_rejected(self):
        with pytest.raises(ValueError):
            PeriodFilter(start=datetime(2025, 1, 1))

    def test_start_must_precede_end(self):
        with pytest.raises(ValueError):
            PeriodFilter(start=utc(2025, 2, 1), end=utc(2025, 2, 1))


class TestMembership:

    def test_start_inclusive_end_exclusive(self):
        period = PeriodFilter.for_month(2025, 1)
        assert period.contains(utc(2025, 1, 1))
        assert not period.contains(utc(2025, 2, 1))
        assert not period.contains(utc(2024, 12, 31, 23, 59, 59))

    def test_open_ended_bounds(self):
        assert PeriodFilter(end=utc(2025, 1, 1)).contains(utc(1999, 1, 1))
        assert PeriodFilter(start=utc(2025, 1, 1)).contains(utc(2099, 1, 1))

    def test_deductions_only_honor_end(self):
        period = PeriodFilter.for_month(2025, 2)
        assert period.collects_deduction_at(utc(2024, 6, 1))
        assert not period.collects_deduction_at(utc(2025, 3, 1))
        assert PeriodFilter.all().collects_deduction_at(utc(2099, 1, 1))

    def test_frozen(self):
        period = PeriodFilter.all()
        with pytest.raises(AttributeError):
            period.label = "other"


def test_month_label_normalizes_to_utc():
    from datetime import timedelta

    east_africa = timezone(timedelta(hours=3))
    # 02:00 on Feb 1 in UTC+3 is still January in UTC
    assert month_label(datetime(2025, 2, 1, 2, 0, tzinfo=east_africa)) == "2025-01"
