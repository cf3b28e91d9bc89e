"""
Inclusive date ranges used by the finance queries.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime

from django.utils import timezone


@dataclass(frozen=True)
class Period:
    """Inclusive [start, end] calendar-date range."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Period start {self.start} is after end {self.end}.")

    @classmethod
    def month(cls, year: int, month: int) -> "Period":
        last_day = calendar.monthrange(year, month)[1]
        return cls(date(year, month, 1), date(year, month, last_day))

    @classmethod
    def current_month(cls, today: date | None = None) -> "Period":
        today = today or timezone.localdate()
        return cls.month(today.year, today.month)

    def contains(self, value) -> bool:
        """True if a date, or an aware datetime in the current timezone, falls in the range."""
        if value is None:
            return False
        if isinstance(value, datetime):
            value = timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
        return self.start <= value <= self.end

    def datetime_bounds(self):
        """Aware [start, end) datetimes covering the period, for timestamp filters."""
        tz = timezone.get_current_timezone()
        lower = datetime.combine(self.start, datetime.min.time(), tzinfo=tz)
        upper = datetime.combine(date.fromordinal(self.end.toordinal() + 1), datetime.min.time(), tzinfo=tz)
        return lower, upper

    @property
    def label(self) -> str:
        if self.start.day == 1 and self.end == Period.month(self.start.year, self.start.month).end:
            return self.start.strftime("%B %Y")
        return f"{self.start.isoformat()} to {self.end.isoformat()}"

    def as_dict(self) -> dict:
        return {"from": self.start.isoformat(), "to": self.end.isoformat(), "label": self.label}
