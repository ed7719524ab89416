"""CLI command modules for obs-plugins.

Command groups (``host``, ``plugins``, ``backups``, ``cache``, ``config``)
are registered on the root application in :mod:`obs_plugin_manager.main`.
"""

from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.cli.error_handler import exit_code_for, handle_errors

__all__ = [
    "ExitCode",
    "exit_code_for",
    "handle_errors",
]
