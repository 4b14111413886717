"""
Canonical path resolution for face-dedup.

Single source of truth for where data, config, and lock files live.
All user-writable state goes under ~/.face-dedup/ (overridable via
$FACE_DEDUP_DATA_HOME).
"""

from __future__ import annotations

import os
from pathlib import Path


def get_data_home() -> Path:
    """Return the base directory for all face-dedup user data.

    Default: ~/.face-dedup/
    Override: $FACE_DEDUP_DATA_HOME
    """
    env = os.environ.get("FACE_DEDUP_DATA_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".face-dedup"


def get_config_path() -> Path:
    """Return the path to config.json.

    $FACE_DEDUP_CONFIG wins when set; otherwise <data home>/config.json,
    which may not exist yet (created by `face-dedup init`).
    """
    env = os.environ.get("FACE_DEDUP_CONFIG")
    if env:
        return Path(env).expanduser()
    return get_data_home() / "config.json"


def get_default_database_path() -> Path:
    """Return the default SQLite database path."""
    return get_data_home() / "data" / "faces.db"


def get_default_lock_path() -> Path:
    """Return the default inter-process submission lock path."""
    return get_data_home() / "data" / ".submit.lock"


def ensure_data_home() -> Path:
    """Create the data home directory structure if it doesn't exist.

    Returns the data home path.
    """
    data_home = get_data_home()
    (data_home / "data").mkdir(parents=True, exist_ok=True)
    return data_home
