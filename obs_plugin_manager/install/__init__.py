"""Archive download, extraction and merge into OBS directories."""

from obs_plugin_manager.install.events import (
    ProgressChannel,
    ProgressEvent,
    ProgressStage,
)
from obs_plugin_manager.install.installer import ArchiveInstaller, InstallReport

__all__ = [
    "ArchiveInstaller",
    "InstallReport",
    "ProgressChannel",
    "ProgressEvent",
    "ProgressStage",
]
