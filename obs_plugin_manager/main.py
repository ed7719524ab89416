"""Main CLI entry point for obs-plugins."""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from obs_plugin_manager import __app_name__, __version__
from obs_plugin_manager.cli import backups, cache, config, host, plugins
from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.config import LoggingConfig, get_config
from obs_plugin_manager.errors import ConfigurationError

app = typer.Typer(
    name=__app_name__,
    help="obs-plugins - Install, update and back up OBS Studio plugins.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.add_typer(host.app, name="host")
app.add_typer(plugins.app, name="plugins")
app.add_typer(backups.app, name="backups")
app.add_typer(cache.app, name="cache")
app.add_typer(config.app, name="config")

DEBUG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


@dataclass
class GlobalOptions:
    """Options given before the command group."""

    verbose: bool = False
    debug: bool = False
    json: bool = False
    quiet: bool = False


_options = GlobalOptions()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _logging_settings() -> LoggingConfig:
    """The [logging] section, or defaults when the config cannot be read.

    A broken config file is reported by the command that needs it.
    """
    try:
        return get_config().logging
    except ConfigurationError:
        return LoggingConfig()


def _console_level(options: GlobalOptions) -> int:
    if options.debug:
        return logging.DEBUG
    if options.verbose:
        return logging.INFO
    if options.quiet:
        return logging.ERROR
    return logging.WARNING


def _setup_logging(
    options: GlobalOptions,
    settings: LoggingConfig,
    log_file: Optional[Path] = None,
) -> None:
    """Configure the root logger from CLI flags and the [logging] section.

    Console output follows the flags (WARNING by default). A log file, from
    ``--log-file`` or ``logging.file``, records at ``logging.level``, or at
    DEBUG when ``--log-file`` is given or ``--debug`` is set.

    Args:
        options: Global CLI flags
        settings: Logging configuration
        log_file: Path from ``--log-file``
    """
    console_level = _console_level(options)
    log_format = DEBUG_FORMAT if options.debug else settings.format

    handlers: list[logging.Handler] = []
    root_level = console_level

    target = log_file or settings.file
    if target:
        if log_file is not None or options.debug:
            file_level = logging.DEBUG
        else:
            file_level = logging.getLevelName(settings.level.upper())
            if not isinstance(file_level, int):
                file_level = logging.INFO
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target, encoding="utf-8")
        file_handler.setLevel(file_level)
        handlers.append(file_handler)
        root_level = min(root_level, file_level)

    if not options.quiet:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(console_level)
        handlers.append(stream_handler)
    elif not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=root_level, format=log_format, handlers=handlers, force=True)
    logging.getLogger(__name__).debug(
        "Logging configured: console=%s, file=%s",
        logging.getLevelName(console_level), target,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Log progress details (INFO)."),
    debug: bool = typer.Option(False, "--debug", help="Log everything (DEBUG) with source locations."),
    json_output: bool = typer.Option(False, "--json", help="Print machine-readable JSON."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print errors and results."),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write DEBUG logs to this file.",
    ),
) -> None:
    """obs-plugins - Install, update and back up OBS Studio plugins.

    [bold]Commands:[/bold]

    • [cyan]host[/cyan] - Locate OBS Studio and check whether it is running
    • [cyan]plugins[/cyan] - Browse the catalog, install, update, downgrade, remove
    • [cyan]backups[/cyan] - List, create, prune and restore plugin backups
    • [cyan]cache[/cyan] - Clear cached GitHub responses
    • [cyan]config[/cyan] - Show and validate configuration

    Every install, update, downgrade and removal first backs up the plugin
    folders. OBS Studio must be closed.

    [bold]Examples:[/bold]

        obs-plugins plugins catalog
        obs-plugins plugins install obs-websocket
        obs-plugins plugins downgrade obs-websocket 5.3.0
        obs-plugins backups list
    """
    if quiet and (verbose or debug):
        flag = "--verbose" if verbose else "--debug"
        console.print(f"[red]Error:[/red] --quiet cannot be combined with {flag}")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    _options.verbose = verbose
    _options.debug = debug
    _options.json = json_output
    _options.quiet = quiet

    _setup_logging(_options, _logging_settings(), log_file)
    logging.getLogger(__name__).debug("%s v%s starting with %s", __app_name__, __version__, _options)


def get_global_option(name: str) -> bool:
    """Value of a global flag (verbose, debug, json, quiet)."""
    return bool(getattr(_options, name, False))


def is_verbose() -> bool:
    return _options.verbose or _options.debug


def is_debug() -> bool:
    return _options.debug


def is_json() -> bool:
    return _options.json


def is_quiet() -> bool:
    return _options.quiet


__all__ = [
    "app",
    "console",
    "GlobalOptions",
    "get_global_option",
    "is_verbose",
    "is_debug",
    "is_json",
    "is_quiet",
]


if __name__ == "__main__":
    app()
