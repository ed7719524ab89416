"""Global exception handling for the obs-plugins CLI.

Core errors carry no exit codes; this module maps each error class to an
:class:`ExitCode` and renders a single user-facing line plus details.
"""

from functools import wraps
from typing import Any, Callable, TypeVar
import logging

import typer
from rich.console import Console

from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.errors import (
    ArchiveError,
    AssetResolutionError,
    ConfigurationError,
    FilesystemError,
    InvalidHostPathError,
    NetworkError,
    NotFoundError,
    PluginManagerError,
    PreconditionError,
    RateLimitError,
    UnknownPluginError,
)

# Console for error output (stderr)
console = Console(stderr=True)

# Logger for error logging
logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Most specific classes first
_EXIT_CODES: tuple[tuple[type, int], ...] = (
    (ConfigurationError, ExitCode.CONFIGURATION_ERROR),
    (InvalidHostPathError, ExitCode.INVALID_ARGUMENT),
    (UnknownPluginError, ExitCode.NOT_FOUND),
    (PreconditionError, ExitCode.PRECONDITION_FAILED),
    (RateLimitError, ExitCode.RATE_LIMITED),
    (NotFoundError, ExitCode.NOT_FOUND),
    (NetworkError, ExitCode.NETWORK_ERROR),
    (AssetResolutionError, ExitCode.INSTALL_ERROR),
    (ArchiveError, ExitCode.INSTALL_ERROR),
    (FilesystemError, ExitCode.FILESYSTEM_ERROR),
)


def exit_code_for(error: BaseException) -> int:
    """Exit code for an exception raised by a command."""
    if isinstance(error, PermissionError):
        return ExitCode.PERMISSION_DENIED
    for error_type, code in _EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return ExitCode.GENERAL_ERROR


def _report(error: PluginManagerError) -> int:
    exit_code = exit_code_for(error)
    logger.error(
        f"{type(error).__name__}: {error.message}",
        extra={"exit_code": exit_code, "details": error.details},
    )
    logger.debug("Exiting with %s (%s)", ExitCode.get_name(exit_code), ExitCode.get_description(exit_code))

    console.print(f"[red]Error:[/red] {error.message}")
    if error.details:
        for key, value in error.details.items():
            console.print(f"  [dim]{key}:[/dim] {value}")

    return exit_code


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    Handles:

    - PluginManagerError subclasses: message, details and mapped exit code
    - KeyboardInterrupt: cancellation message with exit code 130
    - Other exceptions: generic error with a hint to use --verbose

    Example:
        @app.command()
        @handle_errors
        def install(plugin_id: str):
            ...
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except PluginManagerError as e:
            raise typer.Exit(code=_report(e))

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except typer.Exit:
            raise

        except Exception as e:
            logger.exception("Unexpected error occurred")
            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --verbose for more details[/dim]")
            raise typer.Exit(code=exit_code_for(e))

    return wrapper  # type: ignore[return-value]

