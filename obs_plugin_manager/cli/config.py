"""obs-plugins config command - Show, initialize and validate configuration."""

from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.markup import escape

from obs_plugin_manager.cli.common import json_mode
from obs_plugin_manager.cli.error_handler import handle_errors
from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.cli.output import Column, print_json, print_result, print_table

app = typer.Typer(help="Manage obs-plugins configuration.")
console = Console()

SETTING_COLUMNS = [
    Column("key", "Key", "cyan"),
    Column("value", "Value", "green"),
]


def _sections(config, unmask: bool) -> Dict[str, Dict[str, Any]]:
    from obs_plugin_manager.config import _config_to_dict

    data = _config_to_dict(config, mask_secrets=not unmask)
    paths = {
        "config_dir": data.pop("config_dir"),
        "cache_dir": data.pop("cache_dir"),
        "cache_file": str(config.cache_file),
    }
    return {**data, "paths": paths}


@app.command("show")
@handle_errors
def show_config(
    section: Optional[str] = typer.Argument(
        None,
        help="Section to show (network, host, backup, logging, paths).",
    ),
    unmask: bool = typer.Option(False, "--unmask", help="Show the GitHub token in clear text."),
) -> None:
    """Show the effective configuration (file plus environment).

    Example:
        obs-plugins config show
        obs-plugins config show network
        obs-plugins --json config show
    """
    from obs_plugin_manager.config import get_config

    sections = _sections(get_config(), unmask)
    if section is not None and section not in sections:
        console.print(f"[red]Unknown section:[/red] {section}")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    selected = {section: sections[section]} if section else sections

    if json_mode():
        print_json(selected)
        return

    for name, values in selected.items():
        print_table(
            [{"key": key, "value": value} for key, value in values.items()],
            SETTING_COLUMNS,
            title=name.capitalize(),
            console_instance=console,
        )


@app.command("init")
@handle_errors
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
) -> None:
    """Write the effective configuration to the config file.

    The GitHub token is never written; set OBSPM_GITHUB_TOKEN instead.

    Example:
        obs-plugins config init
    """
    from obs_plugin_manager.config import DEFAULT_CONFIG_FILE, get_config, save_config

    config = get_config()
    target = config.config_dir / DEFAULT_CONFIG_FILE

    if target.exists() and not force:
        console.print(f"[yellow]{target} already exists, pass --force to overwrite.[/yellow]")
        raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    save_config(config, target)
    print_result(True, "Configuration written", {"Path": target}, console_instance=console)


@app.command("validate")
@handle_errors
def validate_config() -> None:
    """Check the configuration for invalid values.

    Warnings (such as a missing GitHub token) do not fail validation.

    Example:
        obs-plugins config validate
    """
    from obs_plugin_manager.config import get_config, validate_config as do_validate

    problems = do_validate(get_config())
    failed = any(p.severity == "error" for p in problems)

    if json_mode():
        print_json({
            "valid": not failed,
            "problems": [
                {"field": p.field, "message": p.message, "severity": p.severity}
                for p in problems
            ],
        })
    else:
        for problem in problems:
            icon = "[red]✗[/red]" if problem.severity == "error" else "[yellow]![/yellow]"
            console.print(f"  {icon} {escape(str(problem))}")
        if failed:
            console.print("[red]Configuration has errors[/red]")
        else:
            console.print("[green]Configuration is valid[/green]")

    if failed:
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)
