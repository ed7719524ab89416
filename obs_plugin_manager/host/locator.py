"""Locate and validate an OBS Studio installation."""

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Union

from obs_plugin_manager.host.layout import SYSTEM_PLUGINS_DIRNAME

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Registry keys written by the OBS Studio installer
REGISTRY_KEYS = (
    r"SOFTWARE\OBS Studio",
    r"SOFTWARE\WOW6432Node\OBS Studio",
)
REGISTRY_VALUE_NAMES = ("", "InstallPath", "Path", "InstallLocation")

DEFAULT_INSTALL_PATHS = (
    Path("C:/Program Files/obs-studio"),
    Path("C:/Program Files (x86)/obs-studio"),
)

INSTALL_SUBFOLDER = "obs-studio"
EXECUTABLE_NAMES = ("obs64.exe", "obs.exe", "obs")


class HostLocator(Protocol):
    """Finds and validates OBS installations."""

    def detect(self) -> Optional[Path]:
        ...

    def normalize(self, path: PathLike) -> Path:
        ...

    def is_valid(self, path: PathLike) -> bool:
        ...


def _executable_dir(path: Path) -> Path:
    return path / "bin" / "64bit"


def _has_executable(path: Path) -> bool:
    bin_dir = _executable_dir(path)
    return any((bin_dir / name).is_file() for name in EXECUTABLE_NAMES)


def _read_registry_paths() -> List[Path]:
    """Install paths recorded in the Windows registry (empty elsewhere)."""
    if sys.platform != "win32":
        return []

    import winreg

    found: List[Path] = []
    for key_path in REGISTRY_KEYS:
        try:
            key = winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path)
        except OSError:
            continue
        with key:
            for value_name in REGISTRY_VALUE_NAMES:
                try:
                    value, value_type = winreg.QueryValueEx(key, value_name)
                except OSError:
                    continue
                if value_type == winreg.REG_SZ and value:
                    found.append(Path(value.strip()))
    return found


class ObsHostLocator:
    """Default locator: configured path, Windows registry, then default paths.

    Example:
        locator = ObsHostLocator(config.host.obs_path)
        host_path = locator.detect()
    """

    def __init__(
        self,
        configured_path: Optional[Path] = None,
        default_paths: Iterable[Path] = DEFAULT_INSTALL_PATHS,
        read_registry=_read_registry_paths,
    ) -> None:
        """Initialize the locator.

        Args:
            configured_path: Path from configuration or environment, tried first
            default_paths: Well-known installation paths, tried last
            read_registry: Callable returning registry candidates
        """
        self.configured_path = configured_path
        self.default_paths = list(default_paths)
        self._read_registry = read_registry

    def candidates(self) -> List[Path]:
        """Candidate installation paths in detection order."""
        paths: List[Path] = []
        if self.configured_path is not None:
            paths.append(Path(self.configured_path))
        paths.extend(self._read_registry())
        paths.extend(self.default_paths)
        return paths

    def detect(self) -> Optional[Path]:
        """Return the first valid installation path, or None."""
        for candidate in self.candidates():
            if self.is_valid(candidate):
                normalized = self.normalize(candidate)
                logger.info("Detected OBS Studio at %s", normalized)
                return normalized
            logger.debug("Not an OBS installation: %s", candidate)
        logger.info("OBS Studio installation not found")
        return None

    def normalize(self, path: PathLike) -> Path:
        """Resolve a parent folder selection to its ``obs-studio`` subfolder."""
        normalized = Path(path).expanduser()
        if not _has_executable(normalized):
            subfolder = normalized / INSTALL_SUBFOLDER
            if subfolder.is_dir():
                return subfolder
        return normalized

    def is_valid(self, path: PathLike) -> bool:
        """Check for the OBS executable and the plugins directory."""
        if not path:
            return False
        normalized = self.normalize(path)
        return _has_executable(normalized) and (normalized / SYSTEM_PLUGINS_DIRNAME).is_dir()
