"""Command dispatch wrapping the diary engine.

Every command returns a JSON-serializable dict with a ``success`` flag;
diary errors are reported with an ``error_type`` and a suggestion.
"""

from __future__ import annotations

import warnings
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from .engine import DiaryEngine
from .errors import (
    DiaryError,
    InvalidModeError,
    InvalidReferenceError,
    LinkResolutionWarning,
    MalformedStampError,
    MissingFileError,
    NoIdError,
)
from .links import LINK_HANDLERS, SCHEME
from .models import Instant, TimeRange, local_now
from .stamps import decode


def parse_instant(text: str) -> Instant:
    """Read an instant from a stamp or an ISO date / ``YYYY-MM-DD HH:MM`` string.

    Raises:
        MalformedStampError: If text is in neither form.
    """
    text = text.strip()
    if text[:1] in "<[":
        return decode(text).start
    try:
        if len(text) <= 10:
            return Instant.on(date.fromisoformat(text))
        return Instant.at(datetime.fromisoformat(text))
    except ValueError as e:
        raise MalformedStampError(f"Cannot read date {text!r}: {e}") from e


def parse_range(start: str, end: Optional[str] = None) -> TimeRange:
    if end is None:
        return TimeRange.point(parse_instant(start))
    try:
        return TimeRange(parse_instant(start), parse_instant(end))
    except ValueError as e:
        raise MalformedStampError(str(e)) from e


def _now(arguments: dict[str, Any]) -> Optional[datetime]:
    value = arguments.get("now")
    return parse_instant(value).moment if value else None


def execute_tool(engine: DiaryEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a diary command.

    Returns:
        Result dict; failures carry ``error`` and ``error_type``.
    """
    try:
        if name == "new_entry":
            if arguments.get("end") and not arguments.get("start"):
                raise ValueError("'end' given without 'start'")
            if arguments.get("start"):
                if arguments.get("created"):
                    created = parse_instant(arguments["created"])
                else:
                    created = Instant.at(_now(arguments) or local_now())
                entry = engine.create_entry(parse_range(arguments["start"], arguments.get("end")), created)
            elif arguments.get("created"):
                # Without a start, the creation time also picks the logical day
                entry = engine.new_entry(now=parse_instant(arguments["created"]).moment)
            else:
                entry = engine.new_entry(now=_now(arguments))
            return {"success": True, "entry": entry.to_dict()}

        elif name == "read_entry":
            entry = engine.read_entry(arguments["entry_id"])
            return {"success": True, "entry": entry.to_dict()}

        elif name == "change_described":
            stamp = engine.change_described(
                arguments["entry_id"],
                arguments["mode"],
                parse_instant(arguments["date"]),
            )
            return {"success": True, "entry_id": arguments["entry_id"], "described": stamp}

        elif name == "change_created":
            stamp = engine.change_created(arguments["entry_id"], now=_now(arguments))
            return {"success": True, "entry_id": arguments["entry_id"], "created": stamp}

        elif name == "change_converted":
            stamp = engine.change_converted(arguments["entry_id"], now=_now(arguments))
            return {"success": True, "entry_id": arguments["entry_id"], "converted": stamp}

        elif name == "find_day":
            location = engine.find_day(parse_instant(arguments["date"]).day)
            return {"success": True, "file": str(location.path), "line": location.line + 1}

        elif name == "add_subentry":
            subentry = engine.add_subentry(
                arguments["entry_id"],
                title=arguments.get("title", ""),
                tags=arguments.get("tags"),
                body=arguments.get("body", ""),
            )
            return {
                "success": True,
                "entry_id": arguments["entry_id"],
                "subentry": {"title": subentry.title, "tags": subentry.tags},
            }

        elif name == "store_link":
            stored = LINK_HANDLERS[SCHEME]["store"](
                engine,
                Path(arguments["file"]),
                int(arguments["line"]) - 1,
                int(arguments.get("column", 0)),
                arguments.get("selection"),
            )
            return {"success": True, **stored}

        elif name == "follow_link":
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", LinkResolutionWarning)
                target = LINK_HANDLERS[SCHEME]["follow"](engine, arguments["token"])
            return {"success": True, **target.to_dict()}

        elif name == "rebuild_index":
            stats = engine.rebuild_index()
            return {"success": True, **stats}

        elif name == "last_file":
            last = engine.last_file()
            return {"success": True, "file": str(last) if last else None}

        else:
            return {
                "success": False,
                "error": f"Unknown command: {name}",
            }

    except MalformedStampError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "malformed_stamp",
            "suggestion": "Stamps look like <2014-12-31 Wed> or <2014-12-31 Wed 20:08>",
        }

    except InvalidModeError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_mode",
        }

    except MissingFileError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "missing_file",
            "suggestion": "Create an entry in that year first",
        }

    except InvalidReferenceError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_reference",
            "suggestion": "Run rebuild-index if the year-files were edited by hand",
        }

    except NoIdError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "no_id",
        }

    except DiaryError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "diary_error",
        }

    except (KeyError, ValueError) as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_arguments",
        }
