"""
PeriodFilter -- explicit settlement window.

Responsibility:
    Names the slice of time a settlement or balance computation applies to.
    Deliveries are included when ``start <= occurred_at < end``; deductions
    only honor ``end`` (a deduction incurred before the window closes is
    collectible, however old).

Architecture position:
    Kernel > Domain -- pure value type, zero I/O.

Labels follow the wording shown to operators: "January 2025" for a month,
"Year 2025" for a year, "All pending" for no bounds.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

ALL_PENDING_LABEL = "All pending"


def _midnight_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PeriodFilter:
    """
    Half-open time window ``[start, end)``.

    Either bound may be None (unbounded on that side).

    Raises:
        ValueError: If a bound is a naive datetime or start >= end.
    """

    start: datetime | None = None
    end: datetime | None = None
    label: str = ALL_PENDING_LABEL

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                raise ValueError(f"PeriodFilter.{name} must be timezone-aware")
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise ValueError(
                f"PeriodFilter start {self.start} must be before end {self.end}"
            )

    @classmethod
    def all(cls) -> "PeriodFilter":
        return cls()

    @classmethod
    def for_month(cls, year: int, month: int) -> "PeriodFilter":
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        start = date(year, month, 1)
        end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return cls(
            start=_midnight_utc(start),
            end=_midnight_utc(end),
            label=f"{calendar.month_name[month]} {year}",
        )

    @classmethod
    def for_year(cls, year: int) -> "PeriodFilter":
        return cls(
            start=_midnight_utc(date(year, 1, 1)),
            end=_midnight_utc(date(year + 1, 1, 1)),
            label=f"Year {year}",
        )

    @classmethod
    def between(cls, start_date: date, end_date: date) -> "PeriodFilter":
        """Window covering both calendar dates, inclusive."""
        if end_date < start_date:
            raise ValueError(
                f"end_date {end_date} is before start_date {start_date}"
            )
        return cls(
            start=_midnight_utc(start_date),
            end=_midnight_utc(end_date + timedelta(days=1)),
            label=f"{start_date.isoformat()} to {end_date.isoformat()}",
        )

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, ts: datetime) -> bool:
        """True if a delivery at ``ts`` falls inside the window."""
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts >= self.end:
            return False
        return True

    def collects_deduction_at(self, ts: datetime) -> bool:
        """True if a deduction incurred at ``ts`` is collectible in this window."""
        return self.end is None or ts < self.end


def month_label(ts: datetime) -> str:
    """YYYY-MM label of a timestamp, in UTC."""
    return ts.astimezone(timezone.utc).strftime("%Y-%m")
