"""org-diary command line - main entry point."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from .config import load_config
from .engine import DiaryEngine
from .log import setup_logging
from .tools import execute_tool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="org-diary - a year-file diary organised as a date-tree"
    )
    parser.add_argument(
        "--root",
        "-r",
        type=Path,
        default=Path.cwd(),
        help="Diary root directory (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in root)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Log more (-v info, -vv debug)",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the journal directory and ID index")

    new = sub.add_parser("new", help="Create a new entry")
    new.add_argument("--start", help="Start of the described period (default: logical today)")
    new.add_argument("--end", help="End of the described period")
    new.add_argument("--created", help="Creation time (default: now); without --start it also picks the day")

    described = sub.add_parser("described", help="Correct the described period of an entry")
    described.add_argument("entry_id")
    described.add_argument("--mode", "-m", required=True, help="start, end or single")
    described.add_argument("--date", "-d", required=True, help="New date, YYYY-MM-DD[ HH:MM]")

    for name, help_text in (
        ("created", "Extend the created period of an entry to now"),
        ("converted", "Set or extend the converted period of an entry to now"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("entry_id")
        cmd.add_argument("--now", help="Use this time instead of the current time")

    show = sub.add_parser("show", help="Show an entry")
    show.add_argument("entry_id")

    find = sub.add_parser("find", help="Locate a day in its year-file")
    find.add_argument("date", help="YYYY-MM-DD")

    subentry = sub.add_parser("subentry", help="Append a note to an entry")
    subentry.add_argument("entry_id")
    subentry.add_argument("--title", default="")
    subentry.add_argument("--tag", action="append", dest="tags", help="Tag (repeatable)")
    subentry.add_argument("--body", default="")

    link = sub.add_parser("link", help="Store a link to a position in a year-file")
    link.add_argument("file", type=Path)
    link.add_argument("line", type=int, help="1-based line number")
    link.add_argument("--column", type=int, default=0)
    link.add_argument("--selection", help="Exact text to link to")

    follow = sub.add_parser("follow", help="Resolve a link token")
    follow.add_argument("token")

    sub.add_parser("rebuild-index", help="Rebuild the ID index from the year-files")

    return parser


def command_arguments(args: argparse.Namespace) -> tuple[str, dict[str, Any]]:
    """Map parsed CLI arguments to a command name and its arguments."""
    if args.command == "new":
        return "new_entry", {"start": args.start, "end": args.end, "created": args.created}
    if args.command == "described":
        return "change_described", {"entry_id": args.entry_id, "mode": args.mode, "date": args.date}
    if args.command in ("created", "converted"):
        return f"change_{args.command}", {"entry_id": args.entry_id, "now": args.now}
    if args.command == "show":
        return "read_entry", {"entry_id": args.entry_id}
    if args.command == "find":
        return "find_day", {"date": args.date}
    if args.command == "subentry":
        return "add_subentry", {
            "entry_id": args.entry_id,
            "title": args.title,
            "tags": args.tags,
            "body": args.body,
        }
    if args.command == "link":
        return "store_link", {
            "file": str(args.file),
            "line": args.line,
            "column": args.column,
            "selection": args.selection,
        }
    if args.command == "follow":
        return "follow_link", {"token": args.token}
    if args.command == "rebuild-index":
        return "rebuild_index", {}
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(verbosity=args.verbose, log_file=args.log_file)

    root = args.root.resolve()

    try:
        config = load_config(root, args.config)
    except (OSError, ValueError, ImportError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    engine = DiaryEngine(config)
    try:
        if args.command == "init":
            indexed = engine.index.count()
            print(f"Initialized diary in {config.get_journal_path()} ({indexed} ids indexed)")
            return 0

        name, arguments = command_arguments(args)
        result = execute_tool(engine, name, arguments)
    finally:
        engine.close()

    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("success") else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
