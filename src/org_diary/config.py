"""Where a diary's settings come from.

A diary root may hold diary_config.py (settings plus hook_* functions), a
TOML or JSON file with the same [journal] and [entries] tables, or nothing,
in which case the DiaryConfig defaults apply. Tests and embedding code build
DiaryConfig directly.
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

# tomllib is stdlib from 3.11; tomli is the same parser for older interpreters
try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib
    except ImportError:  # pragma: no cover
        tomllib = None

from .dates import DEFAULT_LATE_THRESHOLD


@dataclass
class DiaryConfig:
    """Configuration for a diary."""

    root: Path = field(default_factory=Path.cwd)

    # Year-files live directly in this directory (relative to root)
    journal_dir: str = "journal"

    # Seeds new year-files (relative to root, or absolute)
    template_file: Optional[str] = None

    # Activity before this hour counts for the previous day
    late_threshold_hours: float = DEFAULT_LATE_THRESHOLD / 3600

    # Tag of the empty subentry appended to every new entry
    subentry_tag: str = "text"

    # Hooks (populated from Python config)
    hooks: dict[str, Callable] = field(default_factory=dict)

    def get_journal_path(self) -> Path:
        return self.root / self.journal_dir

    def get_template_path(self) -> Optional[Path]:
        if not self.template_file:
            return None
        path = Path(self.template_file).expanduser()
        return path if path.is_absolute() else self.root / path

    @property
    def late_threshold_seconds(self) -> float:
        return self.late_threshold_hours * 3600


# Checked in this order; the first one present in the diary root wins
CONFIG_FILE_NAMES = (
    "diary_config.py",
    "diary_config.toml",
    "diary_config.json",
    ".diary.toml",
    ".diary.json",
)

HOOK_PREFIX = "hook_"


def load_toml_config(path: Path) -> dict[str, Any]:
    """Read the [journal]/[entries] tables from a TOML file."""
    if tomllib is None:
        raise ImportError(f"Reading {path.name} needs tomli on Python < 3.11: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Read the same tables as the TOML form, written as JSON objects."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Execute a diary_config.py and pick out its settings and hooks.

    Settings come from a module-level ``CONFIG`` (or ``config``) dict laid
    out like the TOML file. Every callable named ``hook_<event>`` is
    registered for ``<event>``; the engine currently fires ``post_create``.

    Returns:
        (settings dict, hooks keyed by event name)
    """
    module_spec = importlib.util.spec_from_file_location("diary_config", path)
    if module_spec is None or module_spec.loader is None:
        raise ImportError(f"{path} is not an importable Python file")

    module = importlib.util.module_from_spec(module_spec)
    sys.modules["diary_config"] = module
    module_spec.loader.exec_module(module)

    settings = getattr(module, "CONFIG", None)
    if settings is None:
        settings = getattr(module, "config", {})

    hooks = {
        name[len(HOOK_PREFIX):]: value
        for name, value in vars(module).items()
        if name.startswith(HOOK_PREFIX) and callable(value)
    }
    return settings, hooks


def dict_to_config(data: dict[str, Any], root: Path) -> DiaryConfig:
    """Build a DiaryConfig from parsed settings, validating as it goes.

    Layout (TOML shown):

        [journal]
        directory = "journal"
        template = "templates/year.org"

        [entries]
        late_threshold_hours = 3
        subentry_tag = "text"
    """
    config = DiaryConfig(root=root)

    journal = data.get("journal", {})
    if "directory" in journal:
        config.journal_dir = journal["directory"]
    if "template" in journal:
        config.template_file = journal["template"]

    entries = data.get("entries", {})
    if "late_threshold_hours" in entries:
        threshold = float(entries["late_threshold_hours"])
        if not 0 <= threshold < 24:
            raise ValueError(f"late_threshold_hours must be in [0, 24): {threshold}")
        config.late_threshold_hours = threshold
    if "subentry_tag" in entries:
        config.subentry_tag = entries["subentry_tag"]

    return config


def find_config_file(root: Path) -> Optional[Path]:
    """First of CONFIG_FILE_NAMES present in the diary root, if any."""
    for name in CONFIG_FILE_NAMES:
        candidate = root / name
        if candidate.exists():
            return candidate
    return None


def load_config(root: Path, config_path: Optional[Path] = None) -> DiaryConfig:
    """Settings for the diary rooted at ``root``.

    An explicit ``config_path`` skips the search. With no file at all the
    defaults apply.

    Raises:
        ValueError: For an unknown file type or an invalid setting.
    """
    path = config_path or find_config_file(root)
    if path is None:
        return DiaryConfig(root=root)

    kind = path.suffix.lower()
    if kind == ".py":
        settings, hooks = load_python_config(path)
        config = dict_to_config(settings, root)
        config.hooks = hooks
        return config
    if kind == ".toml":
        return dict_to_config(load_toml_config(path), root)
    if kind == ".json":
        return dict_to_config(load_json_config(path), root)
    raise ValueError(f"Unsupported config file type: {kind}")
