"""Server command: HTTP API plus the delivery scheduler."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

from herald.cli.options import ConfigOption

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: ConfigOption = None,
        host: Annotated[
            str | None,
            typer.Option("--host", "-h", help="Bind address (default from config)"),
        ] = None,
        port: Annotated[
            int | None,
            typer.Option("--port", "-p", help="Bind port (default from config)"),
        ] = None,
        no_scheduler: Annotated[
            bool,
            typer.Option("--no-scheduler", help="Serve the API without the delivery timer"),
        ] = False,
    ) -> None:
        """Start the HTTP API and, unless disabled, the delivery scheduler."""
        try:
            asyncio.run(_serve(config, host, port, scheduler=not no_scheduler))
        except KeyboardInterrupt:
            # Logging may already be torn down
            print("\nServer stopped")


async def _serve(
    config_path: Path | None,
    host: str | None,
    port: int | None,
    scheduler: bool,
) -> None:
    import uvicorn

    from herald.app import build_components
    from herald.cli.runtime import load_config_or_exit
    from herald.config import ConfigError
    from herald.logging import configure_logging
    from herald.server import create_app

    configure_logging(use_rich=True, log_to_file=True)
    config = load_config_or_exit(config_path)

    try:
        config.slack.validate_oauth()
    except ConfigError as e:
        # Already-connected teams can still schedule without OAuth
        logger.warning("oauth_not_configured", extra={"error.message": str(e)})

    components = build_components(config)
    api = create_app(components, start_scheduler=scheduler and config.scheduler.enabled)

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    logger.info(
        "server_listening", extra={"server.host": bind_host, "server.port": bind_port}
    )
    # log_config=None keeps uvicorn on the handlers configure_logging installed
    server = uvicorn.Server(
        uvicorn.Config(api, host=bind_host, port=bind_port, log_level="info", log_config=None)
    )
    await server.serve()
