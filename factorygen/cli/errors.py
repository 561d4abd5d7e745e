"""CLI error handling with user-friendly messages.

This module provides consistent, helpful error messages for CLI users.
Stack traces are hidden by default but available with --log-level DEBUG.
"""

import functools
from dataclasses import dataclass
from typing import Callable, Optional, ParamSpec, TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from factorygen.logging_config import get_logger

logger = get_logger(__name__)
console = Console(stderr=True)

P = ParamSpec("P")
R = TypeVar("R")


@dataclass
class CLIError(Exception):
    """Base CLI error with user-friendly messaging."""

    message: str
    hint: Optional[str] = None
    fix: Optional[str] = None
    show_traceback: bool = False

    def __str__(self) -> str:
        return self.message


@dataclass
class ModelImportError(CLIError):
    """Model packages that cannot be imported."""

    message: str = "Could not import models"
    hint: str = "Model modules are imported relative to the current directory."
    fix: str = "Run factorygen from the project root, or pass --dir / --namespace."


@dataclass
class DatabaseError(CLIError):
    """Database connection or reflection errors."""

    message: str = "Database error"
    hint: str = "Columns are reflected from the database given by --database-url."
    fix: str = "Check the database URL, or omit it to use model metadata."


@dataclass
class OutputError(CLIError):
    """Factory files cannot be written."""

    message: str = "Could not write factories"
    hint: str = "The factories directory may not be writable."
    fix: str = "Pass a writable --output-dir."


# Error classification rules: (pattern, error_class, custom_message)
ERROR_PATTERNS: list[tuple[str, type[CLIError], Optional[str]]] = [
    ("no module named", ModelImportError, None),
    ("modulenotfounderror", ModelImportError, None),
    ("operationalerror", DatabaseError, None),
    ("could not connect", DatabaseError, "Could not connect to database"),
    ("connection refused", DatabaseError, "Could not connect to database"),
    ("can't load plugin", DatabaseError, "Unsupported database driver"),
    ("permission denied", OutputError, None),
    ("read-only file system", OutputError, None),
    ("no space left", OutputError, "Out of disk space"),
]


def classify_error(error: Exception) -> CLIError:
    """Classify an exception into a user-friendly CLIError."""
    if isinstance(error, CLIError):
        return error

    error_str = str(error).lower()
    error_type = type(error).__name__.lower()

    for pattern, error_class, custom_msg in ERROR_PATTERNS:
        if pattern in error_str or pattern in error_type:
            return error_class(message=custom_msg or str(error))

    return CLIError(
        message=str(error)[:300],
        hint="An unexpected error occurred.",
        fix="Run with --log-level DEBUG for more details.",
    )


def format_error(error: CLIError) -> Panel:
    """Format a CLIError as a rich Panel."""
    content = Text()
    content.append(error.message, style="bold")
    content.append("\n")

    if error.hint:
        content.append("\n")
        content.append("Hint: ", style="yellow")
        content.append(error.hint, style="dim")

    if error.fix:
        content.append("\n\n")
        content.append("Fix: ", style="green bold")
        content.append(error.fix, style="cyan")

    return Panel(
        content,
        title="[red bold]Error[/red bold]",
        border_style="red",
        padding=(1, 2),
    )


def print_error(error: Exception, verbose: bool = False) -> None:
    """Print an error message and exit with status 1.

    Args:
        error: The exception to print
        verbose: Show full traceback
    """
    cli_error = classify_error(error)

    logger.debug(f"CLI error: {error}", exc_info=True)

    console.print()
    console.print(format_error(cli_error))

    if verbose or cli_error.show_traceback:
        console.print("\n[dim]Traceback (for debugging):[/dim]")
        console.print_exception(show_locals=False)

    raise click.exceptions.Exit(1)


def handle_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator for CLI commands that provides friendly error handling.

    Usage:
        @cli.command()
        @handle_errors
        def my_command():
            ...
    """
    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        ctx = click.get_current_context(silent=True)
        verbose = False
        if ctx:
            root = ctx.find_root()
            verbose = (root.params.get("log_level") or "").upper() == "DEBUG"

        try:
            return func(*args, **kwargs)
        except (click.Abort, click.exceptions.Exit, click.ClickException):
            raise
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            raise click.Abort()
        except Exception as e:
            print_error(e, verbose=verbose)

    return wrapper
