"""Where datafrost keeps its state, and the environment variables that move it."""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV = "DATAFROST_HOME"
CONNECTION_ENV = "DATAFROST_CONNECTION"


def home_dir() -> Path:
    """State directory: $DATAFROST_HOME, else ~/.datafrost."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".datafrost"


def config_db_path() -> Path:
    return home_dir() / "datafrost.db"


def log_dir() -> Path:
    return home_dir() / "logs"
