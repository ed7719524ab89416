"""OBS Studio host: layout, location, liveness and installed plugins."""

from obs_plugin_manager.host.layout import HostLayout
from obs_plugin_manager.host.liveness import LivenessChecker, ProcessLivenessChecker
from obs_plugin_manager.host.locator import HostLocator, ObsHostLocator
from obs_plugin_manager.host.scanner import (
    FilesystemPluginScanner,
    InstalledPluginRecord,
    PluginScanner,
    remove_plugin,
)

__all__ = [
    "FilesystemPluginScanner",
    "HostLayout",
    "HostLocator",
    "InstalledPluginRecord",
    "LivenessChecker",
    "ObsHostLocator",
    "PluginScanner",
    "ProcessLivenessChecker",
    "remove_plugin",
]
