"""Data models for diary entries, time ranges and positions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional


class EntryProperty(Enum):
    """Range-valued properties carried by an entry heading."""
    DESCRIBED = "DESCRIBED"
    CREATED = "CREATED"
    CONVERTED = "CONVERTED"

    @property
    def key(self) -> str:
        return self.value


ID_PROPERTY = "ID"


class DescribedMode(Enum):
    """How change_described rewrites the described range."""
    START = "start"    # replace start, keep end
    END = "end"        # replace end, keep start
    SINGLE = "single"  # replace the whole value with one point


def generate_entry_id() -> str:
    """Generate a globally unique entry ID."""
    return str(uuid.uuid4())


def local_now() -> datetime:
    """Get the current local time, truncated to minutes."""
    return datetime.now().replace(second=0, microsecond=0)


@dataclass(frozen=True, order=True)
class Instant:
    """A point in time with an optional time-of-day component."""
    moment: datetime
    has_time: bool = True

    @classmethod
    def at(cls, moment: datetime) -> "Instant":
        """Instant with time-of-day, at minute precision."""
        return cls(moment.replace(second=0, microsecond=0), True)

    @classmethod
    def on(cls, day: date) -> "Instant":
        """Date-only instant."""
        return cls(datetime(day.year, day.month, day.day), False)

    @property
    def day(self) -> date:
        return self.moment.date()

    def same_as(self, other: "Instant", with_time: bool) -> bool:
        """Compare at day precision, or at minute precision if with_time."""
        if with_time:
            return self.moment.replace(second=0, microsecond=0) == other.moment.replace(second=0, microsecond=0)
        return self.day == other.day

    def __sub__(self, other: "Instant") -> timedelta:
        return self.moment - other.moment


@dataclass(frozen=True)
class TimeRange:
    """A single instant (point) or an ordered start/end pair (range)."""
    start: Instant
    end: Optional[Instant] = None

    def __post_init__(self):
        if self.end is None:
            return
        # A date-only side has no time of day to order by
        if self.start.has_time and self.end.has_time:
            backwards = self.end.moment < self.start.moment
        else:
            backwards = self.end.day < self.start.day
        if backwards:
            raise ValueError(
                f"Range end {self.end.moment} is before its start {self.start.moment}"
            )

    @classmethod
    def point(cls, instant: Instant) -> "TimeRange":
        return cls(instant)

    @property
    def is_range(self) -> bool:
        return self.end is not None

    @property
    def last(self) -> Instant:
        """End of a range, or the single instant of a point."""
        return self.end if self.end is not None else self.start


@dataclass(frozen=True)
class Location:
    """A line (and column) inside a year-file."""
    path: Path
    line: int
    column: int = 0


@dataclass
class Subentry:
    """A free-text child note of an entry."""
    title: str
    tags: list[str] = field(default_factory=list)
    body: str = ""
    level: int = 4


@dataclass
class Entry:
    """A single diary record."""
    entry_id: str
    described: Optional[TimeRange]
    created: TimeRange
    heading_label: str
    converted: Optional[TimeRange] = None
    subentries: list[Subentry] = field(default_factory=list)
    location: Optional[Location] = None

    def to_dict(self) -> dict:
        """Convert entry to dictionary for JSON output."""
        from .stamps import encode_range

        return {
            "entry_id": self.entry_id,
            "heading": self.heading_label,
            "described": encode_range(self.described) if self.described else None,
            "created": encode_range(self.created, True),
            "converted": encode_range(self.converted, True) if self.converted else None,
            "subentries": [
                {"title": s.title, "tags": s.tags, "body": s.body} for s in self.subentries
            ],
            "file": str(self.location.path) if self.location else None,
            "line": self.location.line + 1 if self.location else None,
        }
