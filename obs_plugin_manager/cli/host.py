"""obs-plugins host command - Locate and check the OBS Studio installation."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from obs_plugin_manager.cli.common import (
    PATH_OPTION_HELP,
    build_locator,
    build_orchestrator,
    json_mode,
    run,
)
from obs_plugin_manager.cli.error_handler import handle_errors
from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.cli.output import print_json
from obs_plugin_manager.cli.progress import status_message

app = typer.Typer(help="Locate and check the OBS Studio installation.")
console = Console()


@app.command("detect")
@handle_errors
def detect() -> None:
    """Detect the OBS Studio installation folder.

    Checks the configured path, the Windows registry and the default
    installation folders, in that order.

    Example:
        obs-plugins host detect
    """
    path = build_locator().detect()

    if json_mode():
        print_json({"path": str(path) if path else None})
    elif path is not None:
        status_message(f"OBS Studio found at {path}", "success")
    else:
        status_message("OBS Studio installation not found", "warning")

    if path is None:
        raise typer.Exit(code=ExitCode.NOT_FOUND)


@app.command("validate")
@handle_errors
def validate(
    path: Path = typer.Argument(..., help="Folder to check."),
) -> None:
    """Check that a folder is an OBS Studio installation.

    A parent folder containing ``obs-studio`` is accepted.

    Example:
        obs-plugins host validate "C:/Program Files/obs-studio"
    """
    locator = build_locator()
    valid = locator.is_valid(path)
    normalized = locator.normalize(path)

    if json_mode():
        print_json({"path": str(normalized), "valid": valid})
    elif valid:
        status_message(f"Valid OBS Studio installation: {normalized}", "success")
    else:
        status_message(f"Not an OBS Studio installation: {path}", "error")

    if not valid:
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)


@app.command("status")
@handle_errors
def status(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
) -> None:
    """Show whether OBS Studio is running and where it is installed.

    Example:
        obs-plugins host status
    """
    async def _status():
        async with build_orchestrator() as orchestrator:
            host = path or orchestrator.detect_host_path()
            valid = host is not None and orchestrator.validate_host_path(host)
            return host, valid, await orchestrator.check_is_running()

    host, valid, running = run(_status())

    if json_mode():
        print_json({
            "path": str(host) if host else None,
            "valid": valid,
            "running": running,
        })
        return

    console.print(f"[bold]Installation:[/bold] {host or '[yellow]not found[/yellow]'}")
    console.print(f"[bold]Valid:[/bold] {'[green]yes[/green]' if valid else '[red]no[/red]'}")
    console.print(
        f"[bold]Running:[/bold] {'[yellow]yes[/yellow]' if running else '[green]no[/green]'}"
    )
    if running:
        console.print("[dim]Close OBS Studio before installing or removing plugins.[/dim]")
