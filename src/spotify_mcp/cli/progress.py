"""Console helpers for consistent CLI feedback."""

from contextlib import contextmanager
from typing import Generator

from rich.console import Console
from rich.status import Status

# Shared console instance
console = Console()


@contextmanager
def oauth_progress() -> Generator[Status, None, None]:
    """Spinner shown while waiting for the user to approve access in the browser.

    Yields:
        Rich Status object
    """
    with console.status(
        "[bold blue]Waiting for authorization in the browser...",
        spinner="dots",
    ) as status:
        yield status


def print_success(message: str) -> None:
    """Print a success message with checkmark.

    Args:
        message: Success message to display
    """
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message with X mark.

    Args:
        message: Error message to display
    """
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message.

    Args:
        message: Warning message to display
    """
    console.print(f"[yellow]⚠[/yellow] {message}")
