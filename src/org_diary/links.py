"""Links between diary entries.

A link token is ``<id>`` or ``<id>::<search>``; embedded in text it reads
``[[journal:<id>::<search>][<label>]]``. The search part is a regular
expression that the encoder has already escaped, so following a link
matches the original text literally.
"""

from __future__ import annotations

import re
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

from .dates import link_label as format_link_date
from .errors import InvalidReferenceError, LinkResolutionWarning
from .models import ID_PROPERTY, Entry, Location
from .orgdoc import OrgDocument

if TYPE_CHECKING:
    from .engine import DiaryEngine

SCHEME = "journal"
SEARCH_SEPARATOR = "::"

# Entry extent for searches: up to the next heading at this level or above
ENTRY_BOUND_LEVEL = 3

_EMBEDDED_LINK_RE = re.compile(r"\[\[[^\[\]]+\](?:\[[^\[\]]*\])?\]")
_WORD_RE = re.compile(r"\w+")


@dataclass
class LinkTarget:
    """Where a link token leads."""
    entry_id: str
    location: Location
    search_text: Optional[str] = None
    warning: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "file": str(self.location.path),
            "line": self.location.line + 1,
            "column": self.location.column,
            "search_text": self.search_text,
            "warning": self.warning,
        }


def encode_link(entry_id: str, search_text: Optional[str] = None) -> str:
    """Build a token from an entry ID and an already-escaped search text."""
    if search_text:
        return f"{entry_id}{SEARCH_SEPARATOR}{search_text}"
    return entry_id


def decode_link(token: str) -> tuple[str, Optional[str]]:
    """Split a token into (entry_id, search_text) on its last ``::``."""
    token = token.strip()
    if token.startswith(SCHEME + ":"):
        token = token[len(SCHEME) + 1:]
    entry_id, sep, search_text = token.rpartition(SEARCH_SEPARATOR)
    if not sep:
        return token, None
    return entry_id, search_text or None


def format_link(token: str, label: Optional[str] = None) -> str:
    """Render a token as an embedded ``[[journal:...][label]]`` link."""
    target = f"{SCHEME}:{token}"
    if label:
        return f"[[{target}][{label}]]"
    return f"[[{target}]]"


def link_label(entry: Entry) -> str:
    """Display label: ``dd.mm.yyyy`` of described start, else created start."""
    source = entry.described if entry.described is not None else entry.created
    return format_link_date(source.start.day)


def word_at(text: str, column: int) -> Optional[str]:
    """Word touching ``column`` in a line of text."""
    for match in _WORD_RE.finditer(text):
        if match.start() <= column <= match.end():
            return match.group(0)
    return None


def entry_heading_line(document: OrgDocument, line: int) -> int:
    """Line of the nearest heading at or above ``line`` carrying an ID."""
    current = document.enclosing_heading(line)
    while current is not None:
        if document.get_property(current.line, ID_PROPERTY):
            return current.line
        parent = None
        for h in reversed(document.headings(0, current.line)):
            if h.level < current.level:
                parent = h
                break
        current = parent
    raise InvalidReferenceError(f"Line {line + 1} of {document.path} is not inside a diary entry")


def search_text_at(
    document: OrgDocument,
    line: int,
    column: int = 0,
    selection: Optional[str] = None,
) -> Optional[str]:
    """Escaped search text for a reference point.

    The selection wins, then the word at point. A reference point on the
    entry heading itself gives no search text.
    """
    if selection:
        return re.escape(selection)
    if entry_heading_line(document, line) == line:
        return None
    word = word_at(document.lines[line], column)
    return re.escape(word) if word else None


def _compile_search(search_text: str) -> re.Pattern:
    try:
        return re.compile(search_text)
    except re.error:
        return re.compile(re.escape(search_text))


def find_in_entry(document: OrgDocument, heading_line: int, search_text: str) -> tuple[Optional[Location], bool]:
    """Find ``search_text`` inside an entry, skipping matches inside embedded links.

    Returns:
        (location of the first match outside links or None,
         whether any match was seen inside a link)
    """
    bound = document.next_heading(heading_line + 1, ENTRY_BOUND_LEVEL)
    first = heading_line + 1
    region = "\n".join(document.lines[first:bound])
    link_spans = [m.span() for m in _EMBEDDED_LINK_RE.finditer(region)]

    inside_link = False
    for match in _compile_search(search_text).finditer(region):
        if any(start <= match.start() < end for start, end in link_spans):
            inside_link = True
            continue
        before = region[: match.start()]
        line = first + before.count("\n")
        column = match.start() - (before.rfind("\n") + 1)
        return Location(document.path, line, column), inside_link

    return None, inside_link


def resolve(engine: "DiaryEngine", entry_id: str, search_text: Optional[str] = None) -> LinkTarget:
    """Resolve an entry ID (and optional search text) to a file position.

    A search text that cannot be found, or is found only inside other
    links, falls back to the entry heading with a LinkResolutionWarning.

    Raises:
        InvalidReferenceError: If the ID is unknown or not unique.
    """
    document, heading_line = engine.locate(entry_id)
    heading_location = Location(document.path, heading_line)
    if not search_text:
        return LinkTarget(entry_id, heading_location)

    location, inside_link = find_in_entry(document, heading_line, search_text)
    if location is not None:
        return LinkTarget(entry_id, location, search_text)

    if inside_link:
        message = f"{search_text!r} in entry {entry_id} only occurs inside other links"
    else:
        message = f"{search_text!r} not found in entry {entry_id}"
    logger.debug("Link fallback to heading: {}", message)
    warnings.warn(message, LinkResolutionWarning, stacklevel=2)
    return LinkTarget(entry_id, heading_location, search_text, warning=message)


# ========== Link Handlers ==========

def store_link(
    engine: "DiaryEngine",
    path: Path,
    line: int,
    column: int = 0,
    selection: Optional[str] = None,
) -> dict:
    """Encode the reference point at ``path:line:column`` as a link."""
    document = OrgDocument.load(path)
    heading_line = entry_heading_line(document, line)
    entry = engine.entry_at(document, heading_line)
    token = encode_link(entry.entry_id, search_text_at(document, line, column, selection))
    label = link_label(entry)
    return {
        "token": token,
        "label": label,
        "link": format_link(token, label),
    }


def follow_link(engine: "DiaryEngine", token: str) -> LinkTarget:
    """Resolve a token and record its year-file as the session's last file."""
    entry_id, search_text = decode_link(token)
    target = resolve(engine, entry_id, search_text)
    engine.session.touch(target.location.path)
    return target


LINK_HANDLERS = {
    SCHEME: {
        "store": store_link,
        "follow": follow_link,
    },
}
