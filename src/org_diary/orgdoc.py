"""Outline documents: headings, tags and property drawers.

A year-file is held in memory as a list of lines. Headings are re-read
from the lines on demand, so every edit is visible to the next lookup.

Grammar handled here:

    HEADING  := STARS " " [TITLE] [" " TAGS]
    STARS    := "*"+                      (count = level)
    TAGS     := ":" TAG (":" TAG)* ":"
    DRAWER   := ":PROPERTIES:" NL (":" KEY ":" [" " VALUE] NL)* ":END:"

A property drawer belongs to the heading directly above it. Planning lines
(SCHEDULED/DEADLINE/CLOSED) between the heading and the drawer are skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .locking import locked_atomic_write

DRAWER_START = ":PROPERTIES:"
DRAWER_END = ":END:"
PROPERTY_KEY_WIDTH = 10

_TAGS_RE = re.compile(r":(?:[\w@#%]+:)+")
_PROPERTY_RE = re.compile(r"^\s*:(?P<key>[^:\s]+):(?:\s+(?P<value>.*?))?\s*$")
_PLANNING_RE = re.compile(r"^\s*(SCHEDULED|DEADLINE|CLOSED):")


@dataclass
class Heading:
    """A heading line of an outline document."""
    level: int
    title: str
    line: int
    tags: list[str] = field(default_factory=list)


def parse_heading(text: str, line: int = 0) -> Optional[Heading]:
    """Parse a heading line, or return None for any other line."""
    level = len(text) - len(text.lstrip("*"))
    if level == 0:
        return None
    rest = text[level:]
    if rest and not rest.startswith(" "):
        return None

    rest = rest.strip()
    tags: list[str] = []
    if rest.endswith(":"):
        token = rest.rsplit(None, 1)[-1]
        if _TAGS_RE.fullmatch(token):
            tags = token.strip(":").split(":")
            rest = rest[: -len(token)].rstrip()

    return Heading(level=level, title=rest, line=line, tags=tags)


def render_heading(level: int, title: str, tags: Iterable[str] = ()) -> str:
    """Render a heading line."""
    parts = ["*" * level]
    if title:
        parts.append(title)
    tags = list(tags)
    if tags:
        parts.append(":" + ":".join(tags) + ":")
    return " ".join(parts)


def render_property(key: str, value: str) -> str:
    label = f":{key}:"
    return f"{label:<{PROPERTY_KEY_WIDTH}} {value}".rstrip()


class OrgDocument:
    """In-memory buffer of one outline file."""

    def __init__(self, lines: Optional[list[str]] = None, path: Optional[Path] = None):
        self.lines: list[str] = list(lines or [])
        self.path = path

    @classmethod
    def from_text(cls, text: str, path: Optional[Path] = None) -> "OrgDocument":
        return cls(text.splitlines(), path)

    @classmethod
    def load(cls, path: Path) -> "OrgDocument":
        """Read a document from disk."""
        return cls.from_text(path.read_text(encoding="utf-8"), path)

    @property
    def text(self) -> str:
        return "\n".join(self.lines) + "\n" if self.lines else ""

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the buffer to disk atomically."""
        target = path or self.path
        if target is None:
            raise ValueError("Document has no path to save to")
        with locked_atomic_write(target) as f:
            f.write(self.text)
        self.path = target
        return target

    # ========== Heading Lookup ==========

    def heading(self, line: int) -> Optional[Heading]:
        """Heading on exactly this line, if any."""
        if 0 <= line < len(self.lines):
            return parse_heading(self.lines[line], line)
        return None

    def headings(self, start: int = 0, end: Optional[int] = None) -> list[Heading]:
        """All headings between two line indexes."""
        stop = len(self.lines) if end is None else end
        found = []
        for i in range(start, stop):
            h = parse_heading(self.lines[i], i)
            if h is not None:
                found.append(h)
        return found

    def enclosing_heading(self, line: int) -> Optional[Heading]:
        """Nearest heading at or above a line."""
        for i in range(min(line, len(self.lines) - 1), -1, -1):
            h = parse_heading(self.lines[i], i)
            if h is not None:
                return h
        return None

    def subtree_end(self, line: int) -> int:
        """Index of the first line after a heading's subtree."""
        h = self.heading(line)
        if h is None:
            raise ValueError(f"No heading at line {line + 1}")
        return self.next_heading(line + 1, h.level)

    def next_heading(self, start: int, max_level: Optional[int] = None) -> int:
        """Index of the next heading of level <= max_level (any level if None), or end of buffer."""
        for i in range(start, len(self.lines)):
            h = parse_heading(self.lines[i], i)
            if h is not None and (max_level is None or h.level <= max_level):
                return i
        return len(self.lines)

    def children(self, line: Optional[int] = None, level: int = 1) -> list[Heading]:
        """Direct child headings of a heading (or top-level headings if line is None)."""
        if line is None:
            return [h for h in self.headings() if h.level == level]
        parent = self.heading(line)
        if parent is None:
            raise ValueError(f"No heading at line {line + 1}")
        end = self.subtree_end(line)
        return [h for h in self.headings(line + 1, end) if h.level == parent.level + 1]

    def find_property(self, key: str, value: str) -> list[int]:
        """Lines of every heading whose property ``key`` equals ``value``."""
        matches = []
        for h in self.headings():
            if self.get_property(h.line, key) == value:
                matches.append(h.line)
        return matches

    # ========== Property Drawers ==========

    def _drawer_anchor(self, line: int) -> int:
        """First line after the heading and its planning lines."""
        i = line + 1
        while i < len(self.lines) and _PLANNING_RE.match(self.lines[i]):
            i += 1
        return i

    def drawer_bounds(self, line: int) -> Optional[tuple[int, int]]:
        """Line indexes of ``:PROPERTIES:`` and ``:END:`` under a heading."""
        start = self._drawer_anchor(line)
        if start >= len(self.lines) or self.lines[start].strip().upper() != DRAWER_START:
            return None
        for i in range(start + 1, len(self.lines)):
            stripped = self.lines[i].strip()
            if stripped.upper() == DRAWER_END:
                return (start, i)
            if parse_heading(self.lines[i]) is not None:
                break
        return None

    def has_drawer(self, line: int) -> bool:
        return self.drawer_bounds(line) is not None

    def properties(self, line: int) -> dict[str, str]:
        """All properties of the heading enclosing a line, keys upper-cased."""
        h = self.enclosing_heading(line)
        if h is None:
            return {}
        bounds = self.drawer_bounds(h.line)
        if bounds is None:
            return {}
        props = {}
        for i in range(bounds[0] + 1, bounds[1]):
            match = _PROPERTY_RE.match(self.lines[i])
            if match:
                props[match.group("key").upper()] = match.group("value") or ""
        return props

    def get_property(self, line: int, key: str) -> Optional[str]:
        """Read a property of the heading enclosing a line."""
        return self.properties(line).get(key.upper())

    def set_property(self, line: int, key: str, value: str) -> None:
        """Create or update a property of the heading enclosing a line."""
        h = self.enclosing_heading(line)
        if h is None:
            raise ValueError(f"No heading encloses line {line + 1}")
        key = key.upper()
        rendered = render_property(key, value)
        bounds = self.drawer_bounds(h.line)

        if bounds is None:
            anchor = self._drawer_anchor(h.line)
            self.lines[anchor:anchor] = [DRAWER_START, rendered, DRAWER_END]
            return

        for i in range(bounds[0] + 1, bounds[1]):
            match = _PROPERTY_RE.match(self.lines[i])
            if match and match.group("key").upper() == key:
                self.lines[i] = rendered
                return
        self.lines.insert(bounds[1], rendered)

    # ========== Editing ==========

    def insert_heading(self, at: int, level: int, title: str, tags: Iterable[str] = ()) -> int:
        """Insert a heading before line ``at`` and return its line."""
        at = max(0, min(at, len(self.lines)))
        self.lines.insert(at, render_heading(level, title, tags))
        return at

    def insert_lines(self, at: int, lines: Iterable[str]) -> None:
        self.lines[at:at] = list(lines)

    def set_title(self, line: int, title: str) -> None:
        """Rewrite a heading's title, keeping its level and tags."""
        h = self.heading(line)
        if h is None:
            raise ValueError(f"No heading at line {line + 1}")
        self.lines[line] = render_heading(h.level, title, h.tags)

    def body(self, line: int) -> str:
        """Text between a heading (and its drawer) and the next heading."""
        bounds = self.drawer_bounds(line)
        start = bounds[1] + 1 if bounds else self._drawer_anchor(line)
        end = self.next_heading(line + 1)
        return "\n".join(self.lines[start:end]).strip("\n")
