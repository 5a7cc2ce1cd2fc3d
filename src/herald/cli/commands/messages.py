"""Scheduled message commands: status, trigger, messages, cancel."""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer

from herald.cli.console import (
    console,
    create_table,
    dim,
    error,
    status_text,
    success,
    warning,
)
from herald.cli.options import ConfigOption
from herald.errors import HeraldError
from herald.scheduling import MessageStatus, ScheduledMessage


def format_countdown(when: datetime, now: datetime | None = None) -> str:
    """Render a send time relative to now: ``in 5m``, ``in 2h 10m``, ``3d ago``."""
    now = now or datetime.now(UTC)
    seconds = int((when - now).total_seconds())
    past = seconds < 0
    seconds = abs(seconds)

    if seconds < 60:
        text = f"{seconds}s"
    elif seconds < 3600:
        text = f"{seconds // 60}m"
    elif seconds < 86400:
        hours, minutes = divmod(seconds // 60, 60)
        text = f"{hours}h {minutes}m" if minutes else f"{hours}h"
    else:
        days, hours = divmod(seconds // 3600, 24)
        text = f"{days}d {hours}h" if hours else f"{days}d"
    return f"{text} ago" if past else f"in {text}"


def _truncate(text: str, limit: int = 40) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _render_messages(messages: list[ScheduledMessage], title: str) -> None:
    table = create_table(
        title,
        ("ID", {"style": "dim"}),
        "Channel",
        "Message",
        "Scheduled (UTC)",
        "When",
        "Status",
    )
    for m in messages:
        table.add_row(
            str(m.id),
            f"#{m.channel_name}",
            _truncate(m.message),
            m.scheduled_time.strftime("%Y-%m-%d %H:%M"),
            format_countdown(m.scheduled_time),
            status_text(m.status),
        )
    console.print(table)
    dim(f"Total: {len(messages)} message(s)")


def register(app: typer.Typer) -> None:
    """Register message management commands."""

    @app.command()
    def status(config: ConfigOption = None) -> None:
        """Show connected workspaces and message counts."""
        report = asyncio.run(_status(config))
        console.print(f"[bold]Connected workspaces:[/bold] {report.connected_teams}")
        if not report.message_stats:
            dim("No scheduled messages")
            return
        table = create_table("Messages", "Status", ("Count", {"justify": "right"}))
        for name, count in sorted(report.message_stats.items()):
            table.add_row(status_text(MessageStatus(name)), str(count))
        console.print(table)

    @app.command()
    def trigger(config: ConfigOption = None) -> None:
        """Run one delivery cycle now."""
        result = asyncio.run(_trigger(config))
        if result.due == 0:
            dim("No messages due")
            return
        success(f"Sent {result.sent} of {result.due} due message(s)")
        if result.failed:
            warning(f"{result.failed} message(s) failed")
        if result.lost_claims:
            dim(f"{result.lost_claims} message(s) claimed by another worker")

    @app.command()
    def messages(
        team_id: Annotated[str, typer.Argument(help="Slack team ID (T...)")],
        show_all: Annotated[
            bool,
            typer.Option("--all", "-a", help="Include sent, failed and cancelled"),
        ] = False,
        config: ConfigOption = None,
    ) -> None:
        """List scheduled messages for a workspace."""
        try:
            rows = asyncio.run(_list(config, team_id, show_all))
        except HeraldError as e:
            error(e.message)
            raise typer.Exit(1) from e
        if not rows:
            warning("No scheduled messages found")
            return
        _render_messages(rows, "All messages" if show_all else "Pending messages")

    @app.command()
    def cancel(
        message_id: Annotated[int, typer.Argument(help="Scheduled message ID")],
        team_id: Annotated[
            str, typer.Option("--team", "-t", help="Slack team ID owning the message")
        ],
        config: ConfigOption = None,
    ) -> None:
        """Cancel a pending scheduled message."""
        if asyncio.run(_cancel(config, message_id, team_id)):
            success(f"Cancelled message {message_id}")
        else:
            error(f"Message {message_id} not found or no longer pending")
            raise typer.Exit(1)


async def _status(config_path: Path | None):
    from herald.cli.runtime import load_config_or_exit, open_components

    async with open_components(load_config_or_exit(config_path)) as components:
        return await components.service.status()


async def _trigger(config_path: Path | None):
    from herald.cli.runtime import load_config_or_exit, open_components

    async with open_components(load_config_or_exit(config_path)) as components:
        return await components.service.trigger_now()


async def _list(config_path: Path | None, team_id: str, show_all: bool):
    from herald.cli.runtime import load_config_or_exit, open_components

    async with open_components(load_config_or_exit(config_path)) as components:
        if show_all:
            return await components.service.list_messages(team_id)
        return await components.service.list_pending(team_id)


async def _cancel(config_path: Path | None, message_id: int, team_id: str) -> bool:
    from herald.cli.runtime import load_config_or_exit, open_components

    async with open_components(load_config_or_exit(config_path)) as components:
        return await components.service.cancel(message_id, team_id)
