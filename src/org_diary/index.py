"""SQLite index mapping entry IDs to year-files.

The year-files remain the source of truth; the index only answers
"which file holds this ID" without opening every file.

Index location: <journal>/.ids.db
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger


class IdIndex:
    """SQLite registry of entry IDs."""

    SCHEMA_VERSION = 1

    # One row per (id, file); several rows for one id mean it is duplicated
    # across year-files.
    SCHEMA = """
        CREATE TABLE IF NOT EXISTS entry_ids (
            entry_id TEXT NOT NULL,
            file_path TEXT NOT NULL,
            PRIMARY KEY (entry_id, file_path)
        );
        CREATE INDEX IF NOT EXISTS idx_entry_file ON entry_ids(file_path);
    """

    def __init__(self, journal_path: Path):
        """Open (creating if needed) the index of a journal directory."""
        self.journal_path = journal_path
        self.db_path = journal_path / ".ids.db"
        self._conn: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            self.journal_path.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            self._conn = conn
        return self._conn

    def _ensure_schema(self) -> None:
        """Create or upgrade the tables, tracked through ``PRAGMA user_version``."""
        conn = self._db()
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version < self.SCHEMA_VERSION:
            logger.debug("Initializing id index schema v{} at {}", self.SCHEMA_VERSION, self.db_path)
            conn.executescript(self.SCHEMA)
            conn.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
            conn.commit()

    def close(self) -> None:
        """Checkpoint the WAL into the database file and disconnect."""
        if self._conn is None:
            return
        try:
            self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            self._conn.execute("PRAGMA journal_mode = DELETE")
        except sqlite3.Error as e:
            logger.debug("Ignoring checkpoint failure on close: {}", e)
        self._conn.close()
        self._conn = None

    # ========== Registry Operations ==========

    def register(self, entry_id: str, file_path: Path) -> None:
        """Record that an entry ID lives in a year-file."""
        conn = self._db()
        conn.execute(
            "INSERT OR IGNORE INTO entry_ids (entry_id, file_path) VALUES (?, ?)",
            (entry_id, str(file_path)),
        )
        conn.commit()

    def lookup(self, entry_id: str) -> list[Path]:
        """Year-files recorded for an entry ID (empty if unknown)."""
        conn = self._db()
        rows = conn.execute(
            "SELECT file_path FROM entry_ids WHERE entry_id = ? ORDER BY file_path",
            (entry_id,),
        ).fetchall()
        return [Path(row["file_path"]) for row in rows]

    def forget(self, entry_id: str) -> None:
        conn = self._db()
        conn.execute("DELETE FROM entry_ids WHERE entry_id = ?", (entry_id,))
        conn.commit()

    def count(self) -> int:
        conn = self._db()
        return conn.execute("SELECT COUNT(DISTINCT entry_id) FROM entry_ids").fetchone()[0]

    def duplicates(self) -> list[str]:
        """IDs recorded in more than one year-file."""
        conn = self._db()
        rows = conn.execute(
            "SELECT entry_id FROM entry_ids GROUP BY entry_id HAVING COUNT(*) > 1 ORDER BY entry_id"
        ).fetchall()
        return [row["entry_id"] for row in rows]

    def rebuild(
        self,
        year_files: Iterable[Path],
        scan_ids_func: Callable[[Path], list[str]],
    ) -> dict[str, int]:
        """Rebuild the whole index from year-files.

        Args:
            year_files: Files to scan
            scan_ids_func: Function returning every ID found in one file

        Returns:
            Dictionary with rebuild statistics
        """
        conn = self._db()
        conn.execute("DELETE FROM entry_ids")
        conn.commit()

        files = 0
        total = 0
        errors = 0

        for year_file in year_files:
            files += 1
            try:
                ids = scan_ids_func(year_file)
            except (OSError, UnicodeDecodeError) as e:
                errors += 1
                logger.warning("Skipping unreadable year-file {}: {}", year_file, e)
                continue

            for entry_id in ids:
                self.register(entry_id, year_file)
                total += 1

        logger.info("Indexed {} ids from {} year-files", total, files)
        return {
            "files_processed": files,
            "ids_indexed": total,
            "duplicates": len(self.duplicates()),
            "errors": errors,
        }
