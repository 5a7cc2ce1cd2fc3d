"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from herald.config.models import HeraldConfig
from herald.config.paths import get_config_path


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.herald/config.toml (or HERALD_HOME)
        Path("/etc/herald/config.toml"),  # System-wide
    ]


def _section(config: dict[str, Any], key: str) -> dict[str, Any]:
    section = config.get(key)
    if not isinstance(section, dict):
        section = {}
        config[key] = section
    return section


def _resolve_env(config: dict[str, Any]) -> dict[str, Any]:
    """Overlay environment variables where the file leaves values unset."""
    slack = _section(config, "slack")
    for key, env_var in (
        ("client_id", "SLACK_CLIENT_ID"),
        ("redirect_uri", "SLACK_REDIRECT_URI"),
    ):
        if slack.get(key) is None and (value := os.environ.get(env_var)):
            slack[key] = value
    if slack.get("client_secret") is None and (
        secret := os.environ.get("SLACK_CLIENT_SECRET")
    ):
        slack["client_secret"] = SecretStr(secret)

    database = _section(config, "database")
    if database.get("url") is None and (url := os.environ.get("DATABASE_URL")):
        database["url"] = url

    server = _section(config, "server")
    if "port" not in server and (port := os.environ.get("PORT")):
        server["port"] = int(port)
    if "cors_origins" not in server and (origin := os.environ.get("CORS_ORIGIN")):
        server["cors_origins"] = [o.strip() for o in origin.split(",") if o.strip()]

    return config


def load_config(path: Path | None = None) -> HeraldConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations
            and falls back to environment-only configuration.

    Returns:
        Validated HeraldConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ValueError: If config file is invalid.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)

    return HeraldConfig.model_validate(_resolve_env(raw_config))


def get_default_config() -> HeraldConfig:
    """Get a default configuration for development/testing."""
    return HeraldConfig()
