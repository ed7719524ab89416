"""obs-plugins backups command - Manage plugin folder backups."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from obs_plugin_manager.backup import BackupService
from obs_plugin_manager.cli.common import (
    PATH_OPTION_HELP,
    build_orchestrator,
    json_mode,
    resolve_host_path,
    run,
)
from obs_plugin_manager.cli.error_handler import handle_errors
from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.cli.output import (
    Column,
    format_file_size,
    print_json,
    print_result,
    print_table,
)
from obs_plugin_manager.config import get_config
from obs_plugin_manager.errors import HostRunningError, InvalidHostPathError

app = typer.Typer(help="Manage backups of the OBS plugin folders.")
console = Console()

BACKUP_COLUMNS = [
    Column("name", "Name", "cyan"),
    Column("created", "Created", "green"),
    Column("size", "Size", justify="right"),
]


def _service() -> BackupService:
    return BackupService.from_config(get_config())


@app.command("list")
@handle_errors
def list_backups() -> None:
    """List backups, newest first.

    Example:
        obs-plugins backups list
    """
    service = _service()
    records = service.list_records()

    if json_mode():
        print_json([
            {
                "path": str(r.path),
                "createdAt": r.created_at.isoformat() if r.created_at else None,
                "size": r.size_bytes,
            }
            for r in records
        ])
        return

    if not records:
        console.print(f"[yellow]No backups in {service.backup_dir}[/yellow]")
        return

    print_table(
        [
            {
                "name": r.name,
                "created": r.created_at.strftime("%Y-%m-%d %H:%M:%S UTC") if r.created_at else None,
                "size": format_file_size(r.size_bytes),
            }
            for r in records
        ],
        BACKUP_COLUMNS,
        title=f"Backups in {service.backup_dir}",
        console_instance=console,
    )


@app.command("create")
@handle_errors
def create(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
) -> None:
    """Back up the system and user plugin folders now.

    Example:
        obs-plugins backups create
    """
    async def _create() -> Path:
        async with build_orchestrator() as orchestrator:
            host = orchestrator.locator.normalize(resolve_host_path(orchestrator, path))
            if not orchestrator.validate_host_path(host):
                raise InvalidHostPathError(str(host))
            return await orchestrator.backups.create_backup(host)

    backup_path = run(_create())

    if json_mode():
        print_json({"path": str(backup_path)})
    else:
        print_result(True, "Backup created", {"Path": backup_path})


@app.command("prune")
@handle_errors
def prune(
    keep: Optional[int] = typer.Option(
        None,
        "--keep",
        "-k",
        min=0,
        help="Number of backups to keep (default: backup.max_backups).",
    ),
) -> None:
    """Delete the oldest backups beyond the retention limit.

    Example:
        obs-plugins backups prune
        obs-plugins backups prune --keep 3
    """
    deleted = _service().prune(keep)

    if json_mode():
        print_json({"deleted": [str(p) for p in deleted]})
        return

    if not deleted:
        console.print("[green]Nothing to prune.[/green]")
        return
    for backup in deleted:
        console.print(f"  [red]✗[/red] {backup.name}")
    print_result(True, f"Deleted {len(deleted)} backup(s)")


@app.command("restore")
@handle_errors
def restore(
    backup: Path = typer.Argument(..., help="Backup archive (path or file name)."),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Restore plugin folders from a backup.

    Files from the backup overwrite the current ones; plugins added since the
    backup are kept.

    Example:
        obs-plugins backups restore obs-plugins-backup-2024-05-01T10-00-00-000000.zip
    """
    service = _service()
    if not backup.exists() and (service.backup_dir / backup).exists():
        backup = service.backup_dir / backup

    if not yes and not typer.confirm(f"Restore plugin folders from {backup.name}?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(code=ExitCode.CANCELLED)

    async def _restore():
        async with build_orchestrator() as orchestrator:
            if await orchestrator.check_is_running():
                raise HostRunningError("restoring")
            host = orchestrator.locator.normalize(resolve_host_path(orchestrator, path))
            if not orchestrator.validate_host_path(host):
                raise InvalidHostPathError(str(host))
            return await service.restore_backup(backup, host)

    written = run(_restore())

    if json_mode():
        print_json({"backup": str(backup), "files": len(written)})
    else:
        print_result(True, f"Restored {len(written)} file(s) from {backup.name}")
