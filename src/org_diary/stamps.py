"""Stamp codec: converts between stamp strings and instants/ranges.

Stamp forms:
    <2014-12-31 Wed>          date only
    <2014-12-31 Wed 20:08>    date and time of day
    <2014-12-30 Tue>--<2014-12-31 Wed>   range (one or two hyphens)

Inactive brackets ``[...]`` are read the same way as active ones.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from .errors import MalformedStampError
from .models import Instant, TimeRange

DATE_FORMAT = "%Y-%m-%d %a"
DATETIME_FORMAT = "%Y-%m-%d %a %H:%M"

_STAMP_RE = re.compile(
    r"[<\[]"
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:\s+[^\s\d>\]]+)?"                      # weekday, ignored
    r"(?:\s+(?P<hour>\d{1,2}):(?P<minute>\d{2}))?"
    r"\s*[>\]]"
)
_RANGE_RE = re.compile(
    r"^\s*(?P<start>[<\[][^<>\[\]]*[>\]])"
    r"(?:-{1,2}(?P<end>[<\[][^<>\[\]]*[>\]]))?\s*$"
)


def encode(instant: Instant, with_time_of_day: bool) -> str:
    """Render an instant as a single stamp."""
    fmt = DATETIME_FORMAT if with_time_of_day else DATE_FORMAT
    return f"<{instant.moment.strftime(fmt)}>"


def encode_range(time_range: TimeRange, with_time_of_day: Optional[bool] = None) -> str:
    """Render a point as one stamp and a range as ``start--end``.

    With ``with_time_of_day`` left as None, each component keeps its own
    precision.
    """
    def render(instant: Instant) -> str:
        with_time = instant.has_time if with_time_of_day is None else with_time_of_day
        return encode(instant, with_time)

    if time_range.end is None:
        return render(time_range.start)
    return f"{render(time_range.start)}--{render(time_range.end)}"


def _decode_stamp(text: str) -> Instant:
    match = _STAMP_RE.fullmatch(text.strip())
    if not match:
        raise MalformedStampError(f"Malformed stamp: {text!r}")
    try:
        if match.group("hour") is not None:
            moment = datetime(
                int(match.group("year")),
                int(match.group("month")),
                int(match.group("day")),
                int(match.group("hour")),
                int(match.group("minute")),
            )
            return Instant(moment, True)
        moment = datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
        )
    except ValueError as e:
        raise MalformedStampError(f"Invalid date in stamp {text!r}: {e}") from e
    return Instant(moment, False)


def decode(text: str) -> TimeRange:
    """Parse a single stamp or a ``start--end`` range.

    Raises:
        MalformedStampError: If text is neither form, or the range is reversed.
    """
    match = _RANGE_RE.match(text or "")
    if not match:
        raise MalformedStampError(f"Malformed stamp or range: {text!r}")

    start = _decode_stamp(match.group("start"))
    if match.group("end") is None:
        return TimeRange.point(start)

    end = _decode_stamp(match.group("end"))
    try:
        return TimeRange(start, end)
    except ValueError as e:
        raise MalformedStampError(str(e)) from e


def decode_component(text: str, want_end: bool, force: bool = False) -> Optional[Instant]:
    """Extract the start or end of a stamp string.

    A point has no end: asking for it gives None unless ``force`` is set,
    in which case the single instant is returned.
    """
    time_range = decode(text)
    if time_range.end is None:
        if not want_end or force:
            return time_range.start
        return None
    return time_range.end if want_end else time_range.start


def collapse(start: Instant, end: Instant, with_time_of_day: bool) -> TimeRange:
    """Build a point when both ends agree at the given precision, else a range."""
    if start.same_as(end, with_time_of_day):
        return TimeRange.point(start)
    return TimeRange(start, end)
