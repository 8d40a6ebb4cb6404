"""Console helpers shared by all tool CLIs."""

import functools
import sys
from typing import Callable, Optional

import click
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]{message}[/blue]")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]{message}[/bold green]")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]{message}[/yellow]")


def error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[bold red]{message}[/bold red]")


def create_table(title: Optional[str] = None) -> Table:
    """
    Create a table with the common tool styling.

    Args:
        title: Optional table title

    Returns:
        Empty rich Table
    """
    return Table(title=title, show_header=True, header_style="bold magenta")


def print_table(table: Table) -> None:
    """Render a table to the console."""
    console.print(table)


def handle_errors(func: Callable) -> Callable:
    """
    Decorate a click command so unexpected errors end the process cleanly.

    Click's own exit and usage exceptions pass through untouched.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (click.exceptions.Exit, click.exceptions.Abort, click.ClickException, SystemExit):
            raise
        except KeyboardInterrupt:
            error("Interrupted")
            sys.exit(130)
        except Exception as e:
            error(f"Unexpected error: {e}")
            sys.exit(1)

    return wrapper
