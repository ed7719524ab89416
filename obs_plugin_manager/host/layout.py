"""Directory layout of an OBS Studio installation and its user profile."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet

from obs_plugin_manager.config import HostConfig

SYSTEM_PLUGINS_DIRNAME = "obs-plugins"
BINARIES_SUBDIR = "64bit"
DATA_DIRNAME = "data"

# Top-level folders recognized inside a plugin release archive
ARCHIVE_PLUGINS_SUBTREE = "obs-plugins"
ARCHIVE_DATA_SUBTREE = "data"
ARCHIVE_USER_PLUGINS_SUBTREE = "plugins"


@dataclass(frozen=True)
class HostLayout:
    """Plugin-related locations for one OBS installation.

    Attributes:
        host_path: OBS installation root
        user_plugins_dir: Per-user plugin directory
        user_plugin_config_dir: Per-user plugin settings directory
    """

    host_path: Path
    user_plugins_dir: Path
    user_plugin_config_dir: Path

    @classmethod
    def for_host(cls, host_path: Path, config: HostConfig) -> "HostLayout":
        return cls(
            host_path=Path(host_path),
            user_plugins_dir=config.user_plugins_dir,
            user_plugin_config_dir=config.user_plugin_config_dir,
        )

    @property
    def system_plugins_dir(self) -> Path:
        return self.host_path / SYSTEM_PLUGINS_DIRNAME

    @property
    def system_binaries_dir(self) -> Path:
        return self.system_plugins_dir / BINARIES_SUBDIR

    @property
    def data_dir(self) -> Path:
        return self.host_path / DATA_DIRNAME

    @property
    def system_plugin_data_dir(self) -> Path:
        return self.data_dir / SYSTEM_PLUGINS_DIRNAME

    def archive_targets(self) -> Dict[str, Path]:
        """Map archive subtrees to the host directories they merge into."""
        return {
            ARCHIVE_PLUGINS_SUBTREE: self.system_plugins_dir,
            ARCHIVE_DATA_SUBTREE: self.data_dir,
            ARCHIVE_USER_PLUGINS_SUBTREE: self.user_plugins_dir,
        }

    def shared_roots(self) -> FrozenSet[Path]:
        """Directories shared by all plugins, which removal must never delete."""
        return frozenset({
            self.system_plugins_dir,
            self.system_binaries_dir,
            self.user_plugins_dir,
            self.user_plugins_dir / BINARIES_SUBDIR,
        })
