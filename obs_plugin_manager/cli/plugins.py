"""obs-plugins plugins command - Browse, install and remove plugins."""

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console

from obs_plugin_manager.catalog import PluginCatalog
from obs_plugin_manager.cli.common import (
    PATH_OPTION_HELP,
    build_orchestrator,
    json_mode,
    quiet_mode,
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
from obs_plugin_manager.cli.progress import operation_progress, spinner
from obs_plugin_manager.host.scanner import InstalledPluginRecord
from obs_plugin_manager.install.events import ProgressChannel
from obs_plugin_manager.orchestrator import InstallOrchestrator, OperationResult
from obs_plugin_manager.releases.models import UpdateCheck
from obs_plugin_manager.versions import format_version

app = typer.Typer(help="Browse, install, update and remove OBS plugins.")
console = Console()

CATALOG_COLUMNS = [
    Column("id", "ID", "cyan"),
    Column("name", "Name", "green"),
    Column("repository", "Repository", "dim"),
    Column("description", "Description"),
]
INSTALLED_COLUMNS = [
    Column("id", "ID", "cyan"),
    Column("display_name", "Name", "green"),
    Column("version", "Version"),
    Column("scope", "Scope", "bold"),
    Column("binary_path", "Binary", "dim"),
]
UPDATE_COLUMNS = [
    Column("latest", "Latest", "cyan"),
    Column("status", "Status", "bold"),
]
RELEASE_COLUMNS = [
    Column("tag", "Tag", "cyan"),
    Column("name", "Name", "green"),
    Column("publishedAt", "Published", "dim"),
]

PLUGIN_ARGUMENT_HELP = "Catalog plugin id, name or owner/repo."


def _path_option() -> Optional[Path]:
    return typer.Option(None, "--path", "-p", help=PATH_OPTION_HELP)


def _report_result(result: OperationResult, message: str) -> None:
    if json_mode():
        print_json(result.to_dict())
        return
    print_result(True, message, {
        "Release": result.release_tag,
        "Backup": result.backup_path,
    })


def catalog_plugin_id(name: str, catalog: Optional[PluginCatalog] = None) -> str:
    """Catalog id for a plugin given by id, display name or owner/repo.

    Unknown names are returned unchanged so the catalog lookup reports them.
    """
    if catalog is None:
        catalog = PluginCatalog()
    if "/" in name:
        owner, _, repo = name.partition("/")
        plugin = catalog.find_by_repo(owner, repo)
    else:
        plugin = catalog.find_by_id(name) or catalog.find_by_name(name)
    return plugin.id if plugin is not None else name


def find_installed(records: List[InstalledPluginRecord], name: str) -> Optional[InstalledPluginRecord]:
    """Installed plugin matching an id, folder name or binary name."""
    lowered = name.lower()
    for record in records:
        if lowered in (record.id.lower(), record.folder_name.lower(), record.name.lower()):
            return record
    return None


@app.command("catalog")
@handle_errors
def catalog() -> None:
    """List the plugins that can be installed.

    Example:
        obs-plugins plugins catalog
    """
    plugins = PluginCatalog().all()

    if json_mode():
        print_json([p.to_dict() for p in plugins])
        return

    print_table(
        [{**p.to_dict(), "repository": f"{p.source_owner}/{p.source_repo}"} for p in plugins],
        CATALOG_COLUMNS,
        title="Plugin Catalog",
        console_instance=console,
    )


@app.command("list")
@handle_errors
def list_installed(
    path: Optional[Path] = _path_option(),
    check_updates: bool = typer.Option(
        False, "--check-updates", "-u", help="Compare catalog plugins with their latest release."
    ),
) -> None:
    """List plugins installed for an OBS Studio installation.

    With --check-updates, plugins that match a catalog entry also show
    their latest release tag and whether an update is available.

    Example:
        obs-plugins plugins list
        obs-plugins plugins list --check-updates
        obs-plugins plugins list --path "C:/Program Files/obs-studio"
    """
    async def _scan():
        async with build_orchestrator() as orchestrator:
            host = resolve_host_path(orchestrator, path)
            records = await orchestrator.scan_installed(host)
            checks: Dict[str, UpdateCheck] = {}
            if check_updates:
                checks = await orchestrator.check_updates(records)
            return records, checks

    if check_updates and not (json_mode() or quiet_mode()):
        with spinner("Checking for updates..."):
            records, checks = run(_scan())
    else:
        records, checks = run(_scan())

    if json_mode():
        items = []
        for record in records:
            item = record.to_dict()
            if check_updates:
                check = checks.get(record.id)
                item["latest"] = check.latest_tag if check else None
                item["status"] = check.status if check else None
            items.append(item)
        print_json(items)
        return

    if not records:
        console.print("[yellow]No plugins installed.[/yellow]")
        return

    rows = []
    for record in records:
        row = {**record.to_dict(), "version": format_version(record.version)}
        check = checks.get(record.id)
        row["latest"] = check.latest_tag if check else "-"
        row["status"] = check.status if check else "-"
        rows.append(row)

    print_table(
        rows,
        INSTALLED_COLUMNS + UPDATE_COLUMNS if check_updates else INSTALLED_COLUMNS,
        title="Installed Plugins",
        console_instance=console,
    )


@app.command("releases")
@handle_errors
def releases(
    plugin_id: str = typer.Argument(..., help=PLUGIN_ARGUMENT_HELP),
) -> None:
    """List all releases of a catalog plugin.

    Example:
        obs-plugins plugins releases obs-websocket
    """
    plugin_id = catalog_plugin_id(plugin_id)

    async def _fetch():
        async with build_orchestrator() as orchestrator:
            return await orchestrator.get_all_releases(plugin_id)

    if json_mode() or quiet_mode():
        items = run(_fetch())
    else:
        with spinner(f"Fetching releases of {plugin_id}..."):
            items = run(_fetch())

    if json_mode():
        print_json([r.to_dict() for r in items])
        return

    print_table(
        [r.to_dict() for r in items],
        RELEASE_COLUMNS,
        title=f"Releases of {plugin_id}",
        console_instance=console,
    )


@app.command("latest")
@handle_errors
def latest(
    plugin_id: str = typer.Argument(..., help=PLUGIN_ARGUMENT_HELP),
) -> None:
    """Show the latest release of a plugin and the asset that would be installed.

    Example:
        obs-plugins plugins latest obs-websocket
    """
    plugin_id = catalog_plugin_id(plugin_id)

    async def _fetch():
        async with build_orchestrator() as orchestrator:
            return await orchestrator.get_latest_release(plugin_id)

    release, asset = run(_fetch())

    if json_mode():
        print_json({
            **release.to_dict(),
            "asset": asset.to_dict() if asset else None,
        })
        return

    console.print(f"[bold]{release.display_name}[/bold] ([cyan]{release.tag}[/cyan])")
    if release.published_at:
        console.print(f"  [dim]Published:[/dim] {release.published_at}")
    if asset is not None:
        console.print(f"  [dim]Asset:[/dim] {asset.name} ({format_file_size(asset.size_bytes)})")
    else:
        console.print("  [yellow]No Windows ZIP asset in this release.[/yellow]")


def _run_operation(
    description: str,
    plugin_id: str,
    operation,
) -> OperationResult:
    """Run an orchestrator operation with a progress bar."""
    channel = ProgressChannel(plugin_id)
    show = not (json_mode() or quiet_mode())

    async def _execute() -> OperationResult:
        async with build_orchestrator() as orchestrator:
            return await operation(orchestrator, channel)

    with operation_progress(channel, description, enabled=show):
        return run(_execute())


@app.command("install")
@handle_errors
def install(
    plugin_id: str = typer.Argument(..., help=PLUGIN_ARGUMENT_HELP),
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Release tag (latest when omitted)."),
    path: Optional[Path] = _path_option(),
) -> None:
    """Install a plugin from its GitHub releases.

    A backup of the plugin folders is created first.

    Example:
        obs-plugins plugins install obs-websocket
        obs-plugins plugins install obs-websocket --tag 5.4.2
    """
    plugin_id = catalog_plugin_id(plugin_id)

    async def _install(orchestrator: InstallOrchestrator, channel: ProgressChannel) -> OperationResult:
        host = resolve_host_path(orchestrator, path)
        return await orchestrator.install(plugin_id, host, tag, progress=channel)

    result = _run_operation(f"Installing {plugin_id}", plugin_id, _install)
    _report_result(result, f"Installed {plugin_id}")


@app.command("update")
@handle_errors
def update(
    plugin_id: str = typer.Argument(..., help=PLUGIN_ARGUMENT_HELP),
    path: Optional[Path] = _path_option(),
) -> None:
    """Update a plugin to its latest release.

    Example:
        obs-plugins plugins update obs-websocket
    """
    plugin_id = catalog_plugin_id(plugin_id)

    async def _update(orchestrator: InstallOrchestrator, channel: ProgressChannel) -> OperationResult:
        host = resolve_host_path(orchestrator, path)
        return await orchestrator.update(plugin_id, host, progress=channel)

    result = _run_operation(f"Updating {plugin_id}", plugin_id, _update)
    _report_result(result, f"Updated {plugin_id}")


@app.command("downgrade")
@handle_errors
def downgrade(
    plugin_id: str = typer.Argument(..., help=PLUGIN_ARGUMENT_HELP),
    tag: str = typer.Argument(..., help="Release tag to install."),
    path: Optional[Path] = _path_option(),
) -> None:
    """Install an older release of a plugin.

    Example:
        obs-plugins plugins downgrade obs-websocket 5.3.0
    """
    plugin_id = catalog_plugin_id(plugin_id)

    async def _downgrade(orchestrator: InstallOrchestrator, channel: ProgressChannel) -> OperationResult:
        host = resolve_host_path(orchestrator, path)
        return await orchestrator.downgrade(plugin_id, tag, host, progress=channel)

    result = _run_operation(f"Downgrading {plugin_id}", plugin_id, _downgrade)
    _report_result(result, f"Downgraded {plugin_id} to {tag}")


@app.command("remove")
@handle_errors
def remove(
    name: str = typer.Argument(..., help="Installed plugin id, folder or binary name."),
    path: Optional[Path] = _path_option(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Remove an installed plugin (binary, plugin folder and data folder).

    Example:
        obs-plugins plugins remove obs-websocket --yes
    """
    async def _lookup():
        async with build_orchestrator() as orchestrator:
            host = resolve_host_path(orchestrator, path)
            return host, find_installed(await orchestrator.scan_installed(host), name)

    host, record = run(_lookup())
    if record is None:
        console.print(f"[red]Error:[/red] Plugin '{name}' is not installed")
        raise typer.Exit(code=ExitCode.NOT_FOUND)

    if not yes and not typer.confirm(f"Remove {record.display_name} ({record.binary_path})?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(code=ExitCode.CANCELLED)

    async def _remove(orchestrator: InstallOrchestrator, channel: ProgressChannel) -> OperationResult:
        return await orchestrator.remove(record, host, progress=channel)

    result = _run_operation(f"Removing {record.id}", record.id, _remove)
    _report_result(result, f"Removed {record.display_name}")
