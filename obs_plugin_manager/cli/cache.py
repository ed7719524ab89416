"""obs-plugins cache command - Manage the GitHub response cache."""

import typer
from rich.console import Console

from obs_plugin_manager.cli.common import json_mode
from obs_plugin_manager.cli.error_handler import handle_errors
from obs_plugin_manager.cli.output import print_json, print_result
from obs_plugin_manager.config import get_config
from obs_plugin_manager.network.cache import ResponseCache

app = typer.Typer(help="Manage the GitHub API response cache.")
console = Console()


@app.command("clear")
@handle_errors
def clear(
    expired: bool = typer.Option(
        False,
        "--expired",
        help="Only drop expired entries.",
    ),
) -> None:
    """Clear cached GitHub API responses.

    Example:
        obs-plugins cache clear
        obs-plugins cache clear --expired
    """
    config = get_config()
    cache = ResponseCache(config.cache_file, ttl=config.network.cache_ttl)
    cache.load()

    if expired:
        removed = cache.clear_expired()
        message = f"Removed {removed} expired cache entries"
    else:
        removed = len(cache)
        cache.clear()
        message = f"Cache cleared ({removed} entries)"

    if json_mode():
        print_json({"removed": removed, "cacheFile": str(config.cache_file)})
    else:
        print_result(True, message, {"File": config.cache_file})
