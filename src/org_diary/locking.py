"""Persistence helpers for year-files.

Year-files are edited by one interactive session at a time; the lock only
guards the write itself against a second process saving the same file.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, TextIO

import portalocker


def lock_path_for(path: Path) -> Path:
    """Lock file kept beside a year-file, e.g. ``2014`` -> ``.2014.lock``."""
    return path.with_name(f".{path.name}.lock")


@contextmanager
def file_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock for a year-file.

    Raises:
        portalocker.LockException: If the lock cannot be acquired in time
    """
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Generator[TextIO, None, None]:
    """Write a text file through a temporary sibling, then rename it into place."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding=encoding) as f:
            yield f
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


@contextmanager
def locked_atomic_write(path: Path, encoding: str = "utf-8", timeout: float = 10.0) -> Generator[TextIO, None, None]:
    """Lock a year-file and replace its contents atomically."""
    with file_lock(path, timeout=timeout):
        with atomic_write(path, encoding=encoding) as f:
            yield f
