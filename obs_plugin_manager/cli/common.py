"""Helpers shared by the CLI command modules."""

import asyncio
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

import typer
from rich.console import Console

from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.config import get_config
from obs_plugin_manager.host.locator import ObsHostLocator
from obs_plugin_manager.orchestrator import InstallOrchestrator

T = TypeVar("T")

err_console = Console(stderr=True)

PATH_OPTION_HELP = "OBS Studio installation folder (detected when omitted)."


def json_mode() -> bool:
    """True when the global --json flag is set."""
    from obs_plugin_manager.main import is_json

    return is_json()


def quiet_mode() -> bool:
    from obs_plugin_manager.main import is_quiet

    return is_quiet()


def build_locator() -> ObsHostLocator:
    return ObsHostLocator(get_config().host.obs_path)


def build_orchestrator() -> InstallOrchestrator:
    """Orchestrator wired from the global configuration."""
    return InstallOrchestrator.from_config(get_config())


def run(awaitable: Awaitable[T]) -> T:
    """Run a coroutine to completion from a synchronous command."""
    return asyncio.run(awaitable)  # type: ignore[arg-type]


def resolve_host_path(orchestrator: InstallOrchestrator, path: Optional[Path]) -> Path:
    """Explicit path, else the detected installation.

    Exits with NOT_FOUND when no installation can be found.
    """
    if path is not None:
        return path
    detected = orchestrator.detect_host_path()
    if detected is None:
        err_console.print(
            "[red]Error:[/red] OBS Studio installation not found. "
            "Pass --path or set host.obs_path in the configuration."
        )
        raise typer.Exit(code=ExitCode.NOT_FOUND)
    return detected
