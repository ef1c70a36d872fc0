"""Diary Configuration - Python Example

Copy to your diary root as diary_config.py to add hooks.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_* become lifecycle hooks
"""

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "journal": {
        "directory": "journal",
        "template": "templates/year.org",
    },
    "entries": {
        # Writing at 01:30 still counts for the day before
        "late_threshold_hours": 4,
        "subentry_tag": "text",
    },
}


# =============================================================================
# Hooks - Called during engine operations
# =============================================================================

def hook_post_create(entry):
    """Called after a new entry is written and indexed.

    Args:
        entry: Entry that was created
    """
    print(f"[Diary] Entry {entry.entry_id} filed under {entry.heading_label}")
