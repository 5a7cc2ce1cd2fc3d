"""Database management commands."""

import asyncio
from pathlib import Path

import typer

from herald.cli.console import dim, success
from herald.cli.options import ConfigOption


def register(app: typer.Typer) -> None:
    """Register the db command group."""
    db_app = typer.Typer(help="Database management commands")

    @db_app.command("init")
    def db_init(config: ConfigOption = None) -> None:
        """Create any missing tables."""
        url = asyncio.run(_init(config))
        success("Database ready")
        dim(url)

    app.add_typer(db_app, name="db")


async def _init(config_path: Path | None) -> str:
    from herald.cli.runtime import load_config_or_exit, open_components

    async with open_components(load_config_or_exit(config_path)) as components:
        return components.database.url
