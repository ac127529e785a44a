"""Calendar and encoding helpers for the productivity grid."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime


MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

STATUS_LABELS = ["Exempted", "Day Off", "Offset", "Leave"]
CLEAR_STATUS = "Clear Status"

MAPPING_TYPES = ["auto", "manual", "hybrid"]

EDIT_ROLES = ("developer", "leader")
EXCLUDED_ROLES = ("guest",)


def days_in_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def dates_for_month(year: int, month: int) -> list[date]:
    """Every calendar day of the month, in order. Weekends included."""
    return [date(year, month, day) for day in range(1, days_in_month(year, month) + 1)]


def month_name(month: int) -> str:
    return MONTH_NAMES[month - 1]


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def format_iso_date(d: date) -> str:
    """Zero-padded YYYY-MM-DD, independent of time zone."""
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def parse_calendar_date(value: str | date | datetime) -> date:
    """Reduce a wire date to its calendar day.

    Strings such as '2024-02-05T00:00:00.000Z' keep only the leading
    YYYY-MM-DD; the time part is dropped, never shifted into a local zone.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])
