"""Shared runtime bootstrap helpers for CLI entrypoints."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer

from herald.app import Components, build_components
from herald.cli.console import error
from herald.config import ConfigError, HeraldConfig, load_config


def load_config_or_exit(config_path: Path | None) -> HeraldConfig:
    try:
        return load_config(config_path)
    except (ConfigError, FileNotFoundError, ValueError) as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from e


@asynccontextmanager
async def open_components(config: HeraldConfig) -> AsyncIterator[Components]:
    """Build components with a connected database; close them on exit."""
    components = build_components(config)
    await components.connect()
    try:
        yield components
    finally:
        await components.aclose()
