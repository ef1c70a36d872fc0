"""Core diary engine - date-tree placement and time-property edits."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional, Union

from loguru import logger

from .config import DiaryConfig
from .dates import (
    date_triple,
    heading_label,
    label_date,
    label_month,
    label_year,
    logical_date,
    month_label,
    triple_to_date,
)
from .errors import (
    InvalidModeError,
    InvalidReferenceError,
    MalformedStampError,
    MissingFileError,
    NoIdError,
)
from .index import IdIndex
from .models import (
    ID_PROPERTY,
    DescribedMode,
    Entry,
    EntryProperty,
    Instant,
    Location,
    Subentry,
    TimeRange,
    generate_entry_id,
    local_now,
)
from .orgdoc import OrgDocument
from .stamps import collapse, decode, encode_range

YEAR_FILE_RE = re.compile(r"^[0-9]{4}$")

ENTRY_LEVEL = 3

# Updater: (current value, new instant) -> (start, end)
RangeUpdater = Callable[[TimeRange, Instant], tuple[Instant, Instant]]


def replace_start(current: TimeRange, new: Instant) -> tuple[Instant, Instant]:
    """Replace the start, keep the end (a point's instant is its end)."""
    return (new, current.last)


def replace_end(current: TimeRange, new: Instant) -> tuple[Instant, Instant]:
    """Replace the end, keep the start."""
    return (current.start, new)


def updated_range(
    current: Optional[str],
    updater: RangeUpdater,
    new_instant: Instant,
    with_time_of_day: bool,
) -> TimeRange:
    """Compute the new value of a range property without writing it.

    An unset property becomes a point at ``new_instant``.

    Raises:
        MalformedStampError: If the current value cannot be parsed.
        ValueError: If the update would put the end before the start.
    """
    if not current:
        return TimeRange.point(new_instant)
    start, end = updater(decode(current), new_instant)
    return collapse(start, end, with_time_of_day)


def change_range_property(
    document: OrgDocument,
    line: int,
    prop: EntryProperty,
    updater: RangeUpdater,
    new_instant: Instant,
    with_time_of_day: bool,
) -> str:
    """Create or update a range property on the heading enclosing ``line``.

    Returns:
        The stamp string written.
    """
    value = updated_range(document.get_property(line, prop.key), updater, new_instant, with_time_of_day)
    stamp = encode_range(value, with_time_of_day)
    document.set_property(line, prop.key, stamp)
    return stamp


def coerce_mode(mode: Union[DescribedMode, str]) -> DescribedMode:
    """Accept a DescribedMode or its string value."""
    if isinstance(mode, DescribedMode):
        return mode
    try:
        return DescribedMode(str(mode).lower())
    except ValueError:
        valid = [m.value for m in DescribedMode]
        raise InvalidModeError(f"Unknown mode {mode!r}. Valid: {valid}") from None


@dataclass
class DiarySession:
    """State carried across operations of one interactive session."""
    last_file: Optional[Path] = None

    def touch(self, path: Path) -> None:
        self.last_file = path


class DiaryEngine:
    """Core engine managing year-files and their entries."""

    def __init__(self, config: DiaryConfig, session: Optional[DiarySession] = None):
        self.config = config
        self.session = session or DiarySession()
        self.config.get_journal_path().mkdir(parents=True, exist_ok=True)
        self._index: Optional[IdIndex] = None

    @property
    def index(self) -> IdIndex:
        """Lazily initialize and return the ID index."""
        if self._index is None:
            self._index = IdIndex(self.config.get_journal_path())
        return self._index

    def close(self) -> None:
        if self._index is not None:
            self._index.close()
            self._index = None

    # ========== Year-files ==========

    def year_file(self, year: int) -> Path:
        """Path of the year-file for a year (it may not exist)."""
        return self.config.get_journal_path() / f"{year:04d}"

    def year_files(self) -> list[Path]:
        """All existing year-files, oldest first."""
        journal_dir = self.config.get_journal_path()
        return sorted(p for p in journal_dir.iterdir() if p.is_file() and YEAR_FILE_RE.match(p.name))

    def last_file(self) -> Optional[Path]:
        """Year-file most recently touched in this session."""
        return self.session.last_file

    def _open_year_file(self, year: int, create: bool) -> OrgDocument:
        path = self.year_file(year)
        if path.exists():
            return OrgDocument.load(path)
        if not create:
            raise MissingFileError(f"No year-file for {year}: {path}")

        template = self.config.get_template_path()
        if template is not None and template.exists():
            logger.info("Seeding new year-file {} from template {}", path, template)
            return OrgDocument.from_text(template.read_text(encoding="utf-8"), path)
        if template is not None:
            logger.warning("Template {} does not exist; starting {} empty", template, path)
        logger.info("Starting new year-file {}", path)
        return OrgDocument(path=path)

    # ========== Date-tree ==========

    @staticmethod
    def _insert_sorted(
        document: OrgDocument,
        siblings: list,
        key: Callable,
        new_key,
        level: int,
        title: str,
        append_at: int,
    ) -> int:
        """Insert a heading before the first sibling whose key is greater."""
        for sibling in siblings:
            sibling_key = key(sibling)
            if sibling_key is not None and sibling_key > new_key:
                return document.insert_heading(sibling.line, level, title)
        return document.insert_heading(append_at, level, title)

    def find_or_create_day(self, document: OrgDocument, triple: tuple[int, int, int]) -> int:
        """Find or create the heading that a new entry for ``triple`` should use.

        Year and month headings are created in sorted position when missing.
        A day heading without a property drawer is reused as the entry. A day
        that already holds entries gets a new sibling right after the last
        entry of that day.

        Returns:
            Line of the entry heading to fill.
        """
        day = triple_to_date(triple)

        years = document.children(None, level=1)
        year_heading = next((h for h in years if label_year(h.title) == day.year), None)
        if year_heading is None:
            year_line = self._insert_sorted(
                document, years, lambda h: label_year(h.title), day.year,
                1, f"{day.year:04d}", len(document.lines),
            )
        else:
            year_line = year_heading.line

        months = document.children(year_line)
        month_heading = next((h for h in months if label_month(h.title) == (day.year, day.month)), None)
        if month_heading is None:
            month_line = self._insert_sorted(
                document, months, lambda h: label_month(h.title), (day.year, day.month),
                2, month_label(day.year, day.month), document.subtree_end(year_line),
            )
        else:
            month_line = month_heading.line

        days = document.children(month_line)
        same_day = [h for h in days if label_date(h.title) == day]
        if not same_day:
            return self._insert_sorted(
                document, days, lambda h: label_date(h.title), day,
                ENTRY_LEVEL, heading_label(day), document.subtree_end(month_line),
            )

        if not document.has_drawer(same_day[0].line):
            return same_day[0].line

        after_last = document.subtree_end(same_day[-1].line)
        logger.debug("Day {} already has {} entries; appending after line {}", day, len(same_day), after_last)
        return document.insert_heading(after_last, ENTRY_LEVEL, heading_label(day))

    # ========== Entry Operations ==========

    def create_entry(self, described: TimeRange, created_instant: Instant) -> Entry:
        """Create a new entry in the year-file of ``described``'s end.

        Returns:
            The created Entry.

        Raises:
            NoIdError: If the assigned ID cannot be read back.
        """
        anchor = described.last
        document = self._open_year_file(anchor.day.year, create=True)
        line = self.find_or_create_day(document, date_triple(anchor))

        entry_id = generate_entry_id()
        document.set_property(line, ID_PROPERTY, entry_id)
        if document.get_property(line, ID_PROPERTY) != entry_id:
            raise NoIdError(f"Entry at line {line + 1} of {document.path} has no ID after assignment")

        described_value = collapse(described.start, anchor, with_time_of_day=False)
        created_value = TimeRange.point(Instant.at(created_instant.moment))
        document.set_property(line, EntryProperty.DESCRIBED.key, encode_range(described_value, False))
        document.set_property(line, EntryProperty.CREATED.key, encode_range(created_value, True))

        heading = document.heading(line)
        document.insert_heading(document.subtree_end(line), heading.level + 1, "", [self.config.subentry_tag])

        path = document.save()
        self.index.register(entry_id, path)
        self.session.touch(path)
        logger.info("Created entry {} in {} at line {}", entry_id, path.name, line + 1)

        entry = self.entry_at(document, line)

        if "post_create" in self.config.hooks:
            self.config.hooks["post_create"](entry)

        return entry

    def new_entry(self, now: Optional[datetime] = None) -> Entry:
        """Create an entry describing the logical day of ``now``."""
        created = Instant.at(now or local_now())
        day = logical_date(created, self.config.late_threshold_seconds).day
        return self.create_entry(TimeRange.point(Instant.on(day)), created)

    def find_day(self, day: date) -> Location:
        """Locate a day in its year-file.

        Falls back to the nearest month or year heading, then the top of
        the file, when the day itself has no heading.

        Raises:
            MissingFileError: If the year-file does not exist.
        """
        document = self._open_year_file(day.year, create=False)
        path = document.path
        self.session.touch(path)

        for year_heading in document.children(None, level=1):
            if label_year(year_heading.title) != day.year:
                continue
            for month_heading in document.children(year_heading.line):
                if label_month(month_heading.title) != (day.year, day.month):
                    continue
                for day_heading in document.children(month_heading.line):
                    if label_date(day_heading.title) == day:
                        return Location(path, day_heading.line)
                return Location(path, month_heading.line)
            return Location(path, year_heading.line)
        return Location(path, 0)

    def locate(self, entry_id: str) -> tuple[OrgDocument, int]:
        """Load the year-file holding an entry and find its heading line.

        Rebuilds the index once if it is missing or stale.

        Raises:
            InvalidReferenceError: If the ID is unknown or not unique.
        """
        for attempt in range(2):
            paths = [p for p in self.index.lookup(entry_id) if p.exists()]
            if len(paths) > 1:
                raise InvalidReferenceError(
                    f"Entry ID {entry_id} appears in several year-files: {[p.name for p in paths]}"
                )
            if paths:
                document = OrgDocument.load(paths[0])
                lines = document.find_property(ID_PROPERTY, entry_id)
                if len(lines) > 1:
                    raise InvalidReferenceError(f"Entry ID {entry_id} appears {len(lines)} times in {paths[0].name}")
                if lines:
                    return document, lines[0]
            if attempt == 0:
                logger.debug("ID {} not found through the index; rebuilding", entry_id)
                self.rebuild_index()

        raise InvalidReferenceError(f"Entry not found: {entry_id}")

    def find_entry(self, entry_id: str) -> Location:
        document, line = self.locate(entry_id)
        return Location(document.path, line)

    def read_entry(self, entry_id: str) -> Entry:
        document, line = self.locate(entry_id)
        return self.entry_at(document, line)

    def entry_at(self, document: OrgDocument, line: int) -> Entry:
        """Build an Entry from the heading at ``line``."""
        heading = document.heading(line)
        props = document.properties(line)
        entry_id = props.get(ID_PROPERTY)
        if not entry_id:
            raise InvalidReferenceError(f"Heading at line {line + 1} of {document.path} has no ID")

        created_text = props.get(EntryProperty.CREATED.key)
        if not created_text:
            raise MalformedStampError(f"Entry {entry_id} lacks the {EntryProperty.CREATED.key} property")
        described_text = props.get(EntryProperty.DESCRIBED.key)
        converted_text = props.get(EntryProperty.CONVERTED.key)

        end = document.subtree_end(line)
        subentries = [
            Subentry(title=h.title, tags=h.tags, body=document.body(h.line), level=h.level)
            for h in document.headings(line + 1, end)
        ]

        return Entry(
            entry_id=entry_id,
            described=decode(described_text) if described_text else None,
            created=decode(created_text),
            converted=decode(converted_text) if converted_text else None,
            heading_label=heading.title,
            subentries=subentries,
            location=Location(document.path, line),
        )

    def add_subentry(
        self,
        entry_id: str,
        title: str = "",
        tags: Optional[list[str]] = None,
        body: str = "",
    ) -> Subentry:
        """Append a free-text child note at the end of an entry."""
        document, line = self.locate(entry_id)
        heading = document.heading(line)
        at = document.insert_heading(document.subtree_end(line), heading.level + 1, title, tags or [])
        if body:
            document.insert_lines(at + 1, body.splitlines())
        document.save()
        self.session.touch(document.path)
        return Subentry(title=title, tags=list(tags or []), body=body, level=heading.level + 1)

    # ========== Property Changes ==========

    def _change_to_now(self, entry_id: str, prop: EntryProperty, now: Optional[datetime]) -> str:
        document, line = self.locate(entry_id)
        stamp = change_range_property(
            document, line, prop, replace_end, Instant.at(now or local_now()), with_time_of_day=True,
        )
        document.save()
        self.session.touch(document.path)
        logger.info("Set {} of {} to {}", prop.key, entry_id, stamp)
        return stamp

    def change_created(self, entry_id: str, now: Optional[datetime] = None) -> str:
        """Extend the created range of an entry to ``now``."""
        return self._change_to_now(entry_id, EntryProperty.CREATED, now)

    def change_converted(self, entry_id: str, now: Optional[datetime] = None) -> str:
        """Set or extend the converted range of an entry to ``now``."""
        return self._change_to_now(entry_id, EntryProperty.CONVERTED, now)

    def change_described(
        self,
        entry_id: str,
        mode: Union[DescribedMode, str],
        instant: Instant,
    ) -> str:
        """Correct the described range of an entry.

        In END and SINGLE modes the heading title is rewritten from the start
        day of the new value. Both edits are computed before either is applied.

        Raises:
            InvalidModeError: If mode is not start, end or single.
        """
        mode = coerce_mode(mode)
        document, line = self.locate(entry_id)
        key = EntryProperty.DESCRIBED.key
        with_time = instant.has_time

        if mode is DescribedMode.SINGLE:
            value = TimeRange.point(instant)
        else:
            updater = replace_start if mode is DescribedMode.START else replace_end
            value = updated_range(document.get_property(line, key), updater, instant, with_time)

        stamp = encode_range(value, with_time)
        new_title = heading_label(value.start.day) if mode is not DescribedMode.START else None

        document.set_property(line, key, stamp)
        if new_title is not None:
            document.set_title(line, new_title)
        document.save()
        self.session.touch(document.path)
        logger.info("Set {} of {} to {} ({} mode)", key, entry_id, stamp, mode.value)
        return stamp

    # ========== Index ==========

    def _scan_ids(self, path: Path) -> list[str]:
        document = OrgDocument.load(path)
        ids = []
        for heading in document.headings():
            entry_id = document.get_property(heading.line, ID_PROPERTY)
            if entry_id:
                ids.append(entry_id)
        return ids

    def rebuild_index(self) -> dict:
        """Rebuild the ID index from the year-files."""
        return self.index.rebuild(self.year_files(), self._scan_ids)
