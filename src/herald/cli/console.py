"""Console output helpers shared by CLI commands."""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from herald.scheduling import MessageStatus

console = Console()

STATUS_STYLES = {
    MessageStatus.PENDING: "yellow",
    MessageStatus.PROCESSING: "cyan",
    MessageStatus.SENT: "green",
    MessageStatus.FAILED: "red",
    MessageStatus.CANCELLED: "dim",
}


def error(msg: str) -> None:
    console.print(msg, style="red")


def warning(msg: str) -> None:
    console.print(msg, style="yellow")


def success(msg: str) -> None:
    console.print(msg, style="green")


def dim(msg: str) -> None:
    console.print(msg, style="dim")


def status_text(status: MessageStatus) -> Text:
    """A message status colored by lifecycle stage."""
    return Text(status.value, style=STATUS_STYLES.get(status, ""))


def create_table(title: str, *columns: str | tuple[str, dict]) -> Table:
    """Build a table from column names or ``(name, add_column kwargs)`` pairs."""
    table = Table(title=title, title_justify="left")
    for column in columns:
        if isinstance(column, tuple):
            name, options = column
            table.add_column(name, **options)
        else:
            table.add_column(column)
    return table
