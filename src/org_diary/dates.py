"""Date arithmetic for date-tree placement and labels."""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Optional

from .models import Instant

DEFAULT_LATE_THRESHOLD = 3 * 3600  # seconds

HEADING_FORMAT = "%Y-%m-%d %A"
MONTH_FORMAT = "%Y-%m %B"
LINK_LABEL_FORMAT = "%d.%m.%Y"

_LABEL_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})\b")


def logical_date(instant: Instant, late_threshold_seconds: float = DEFAULT_LATE_THRESHOLD) -> Instant:
    """Shift an instant back so that late-night activity counts for the previous day.

    With the default threshold, 02:30 belongs to the day before and 03:30 to
    the same day.
    """
    return Instant(instant.moment - timedelta(seconds=late_threshold_seconds), instant.has_time)


def date_triple(instant: Instant) -> tuple[int, int, int]:
    """Get the (month, day, year) key used by the date-tree."""
    day = instant.day
    return (day.month, day.day, day.year)


def triple_to_date(triple: tuple[int, int, int]) -> date:
    month, day, year = triple
    return date(year, month, day)


def heading_label(day: date) -> str:
    return day.strftime(HEADING_FORMAT)


def month_label(year: int, month: int) -> str:
    return date(year, month, 1).strftime(MONTH_FORMAT)


def link_label(day: date) -> str:
    return day.strftime(LINK_LABEL_FORMAT)


def label_date(title: str) -> Optional[date]:
    """Parse the leading ``YYYY-MM-DD`` of a heading title, if any."""
    match = _LABEL_DATE_RE.match(title.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def label_month(title: str) -> Optional[tuple[int, int]]:
    """Parse the leading ``YYYY-MM`` of a month heading title, if any."""
    match = re.match(r"^(\d{4})-(\d{2})(?!-\d)", title.strip())
    if not match:
        return None
    return (int(match.group(1)), int(match.group(2)))


def label_year(title: str) -> Optional[int]:
    match = re.match(r"^(\d{4})$", title.strip())
    return int(match.group(1)) if match else None
