"""Main CLI application."""

import typer

from herald.cli.commands import database, messages, serve

app = typer.Typer(
    name="herald",
    help="Herald - scheduled Slack message delivery",
    no_args_is_help=True,
)

serve.register(app)
messages.register(app)
database.register(app)


if __name__ == "__main__":
    app()
