from __future__ import annotations

import calendar
from datetime import date
from typing import NamedTuple, Union


class MonthKey(NamedTuple):
    """Calendar month used as the key of every monthly aggregation ("YYYY-MM")."""

    year: int
    month: int

    @classmethod
    def of(cls, year: int, month: int) -> "MonthKey":
        if not 1 <= month <= 12:
            raise ValueError(f"Month out of range: {month}")
        return cls(year, month)

    @classmethod
    def from_date(cls, value: date) -> "MonthKey":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: Union[str, date]) -> "MonthKey":
        """Accept a date, "YYYY-MM" or an ISO date/timestamp string."""
        if isinstance(value, date):
            return cls.from_date(value)
        text = value.strip()
        try:
            year_text, month_text = text[:7].split("-")
            return cls.of(int(year_text), int(month_text))
        except ValueError as exc:
            raise ValueError(f"Unsupported month format: {value!r}") from exc

    @property
    def ordinal(self) -> int:
        return self.year * 12 + self.month - 1

    def shift(self, months: int) -> "MonthKey":
        ordinal = self.ordinal + months
        return MonthKey(ordinal // 12, ordinal % 12 + 1)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def last_day(self) -> date:
        return date(self.year, self.month, last_day_of_month(self.year, self.month))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(value: date, months: int) -> MonthKey:
    return MonthKey.from_date(value).shift(months)


def months_between(start: Union[date, MonthKey], end: Union[date, MonthKey]) -> int:
    """Whole calendar months from ``start`` to ``end``; days are ignored."""
    start_key = start if isinstance(start, MonthKey) else MonthKey.from_date(start)
    end_key = end if isinstance(end, MonthKey) else MonthKey.from_date(end)
    return end_key.ordinal - start_key.ordinal
