"""Centralized path management for Herald.

All local state (config, database, logs) lives under a single base directory.
The base directory can be overridden with the HERALD_HOME environment variable.

Default location: ~/.herald
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "HERALD_HOME"


@lru_cache(maxsize=1)
def get_herald_home() -> Path:
    """Get the base directory for all Herald data.

    Resolution order:
    1. HERALD_HOME environment variable (if set)
    2. Platform default (~/.herald)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".herald"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_herald_home() / "config.toml"


def get_database_path() -> Path:
    """Get the default SQLite database path."""
    return get_herald_home() / "herald.db"


def get_logs_path() -> Path:
    """Get the JSONL log directory."""
    return get_herald_home() / "logs"
