"""Inventory and removal of installed OBS plugins.

System plugins live under ``<host>/obs-plugins`` (binaries in ``64bit/`` or
in per-plugin folders); user plugins live in the per-user plugin directory.
A plugin is identified by its binary (``.dll`` on Windows, ``.so`` elsewhere).
"""

import json
import logging
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol

from obs_plugin_manager.config import HostConfig
from obs_plugin_manager.host.layout import BINARIES_SUBDIR, HostLayout
from obs_plugin_manager.install.fsops import remove_tree
from obs_plugin_manager.versions import UNKNOWN_VERSION

logger = logging.getLogger(__name__)

PluginScope = Literal["system", "user"]

BINARY_SUFFIXES = (".dll", ".so")
VERSION_FILES_JSON = ("manifest.json", "plugin.json")
VERSION_FILE_TEXT = "version.txt"
README_FILE = "README.md"

_README_VERSION = re.compile(r"version[:\s]+([\d.]+)", re.IGNORECASE)
_ID_INVALID_CHARS = re.compile(r"[^a-z0-9]")


@dataclass
class InstalledPluginRecord:
    """A plugin binary found on disk.

    Attributes:
        id: Identifier derived from the folder name
        name: Binary name without extension
        display_name: Human-friendly name
        version: Detected version or "Unknown"
        scope: "system" or "user"
        binary_path: Path of the plugin binary
        data_path: Plugin data/settings folder, if present
        folder_name: Plugin folder name
    """

    id: str
    name: str
    display_name: str
    version: str
    scope: PluginScope
    binary_path: Path
    folder_name: str
    data_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["binary_path"] = str(self.binary_path)
        data["data_path"] = str(self.data_path) if self.data_path else None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstalledPluginRecord":
        return cls(
            id=data["id"],
            name=data["name"],
            display_name=data.get("display_name") or data["name"],
            version=data.get("version") or UNKNOWN_VERSION,
            scope=data["scope"],
            binary_path=Path(data["binary_path"]),
            folder_name=data["folder_name"],
            data_path=Path(data["data_path"]) if data.get("data_path") else None,
        )


class PluginScanner(Protocol):
    """Lists plugins installed for an OBS installation."""

    def scan(self, host_path: Path) -> List[InstalledPluginRecord]:
        ...


def format_plugin_name(folder_name: str) -> str:
    """Turn ``obs-move_transition`` into ``Obs Move Transition``."""
    return " ".join(word.capitalize() for word in re.split(r"[-_]", folder_name) if word)


def plugin_id_from_folder(folder_name: str) -> str:
    return _ID_INVALID_CHARS.sub("-", folder_name.lower())


def detect_version(plugin_dir: Path) -> str:
    """Best-effort version lookup from files next to the plugin binary.

    Checks ``manifest.json``, ``plugin.json``, ``version.txt`` and finally a
    ``version: x.y.z`` line in ``README.md``.
    """
    for filename in VERSION_FILES_JSON:
        path = plugin_dir / filename
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable %s: %s", path, e)
            continue
        if isinstance(data, dict) and data.get("version"):
            return str(data["version"])

    text_path = plugin_dir / VERSION_FILE_TEXT
    if text_path.is_file():
        try:
            version = text_path.read_text(encoding="utf-8").strip()
        except OSError:
            version = ""
        if version:
            return version

    readme_path = plugin_dir / README_FILE
    if readme_path.is_file():
        try:
            match = _README_VERSION.search(readme_path.read_text(encoding="utf-8", errors="replace"))
        except OSError:
            match = None
        if match:
            return match.group(1)

    return UNKNOWN_VERSION


def _find_binaries(directory: Path) -> List[Path]:
    try:
        return sorted(
            p for p in directory.rglob("*")
            if p.is_file() and p.suffix.lower() in BINARY_SUFFIXES
        )
    except OSError as e:
        logger.debug("Skipping unreadable directory %s: %s", directory, e)
        return []


class FilesystemPluginScanner:
    """Scans the system and user plugin directories.

    Example:
        scanner = FilesystemPluginScanner(config.host)
        for record in scanner.scan(host_path):
            print(record.display_name, record.version)
    """

    def __init__(self, host_config: HostConfig) -> None:
        self.host_config = host_config

    def scan(self, host_path: Path) -> List[InstalledPluginRecord]:
        layout = HostLayout.for_host(host_path, self.host_config)
        records: List[InstalledPluginRecord] = []

        for root, scope in (
            (layout.system_plugins_dir, "system"),
            (layout.user_plugins_dir, "user"),
        ):
            if root.is_dir():
                records.extend(self._scan_root(root, scope, layout))

        return records

    def _scan_root(
        self,
        root: Path,
        scope: PluginScope,
        layout: HostLayout,
    ) -> List[InstalledPluginRecord]:
        records: Dict[Path, InstalledPluginRecord] = {}
        binaries_dir = root / BINARIES_SUBDIR

        try:
            # Loose binaries in 64bit/ (system) or directly in the root (user)
            if binaries_dir.is_dir():
                loose = _find_binaries(binaries_dir)
            else:
                loose = [
                    p for p in root.iterdir()
                    if p.is_file() and p.suffix.lower() in BINARY_SUFFIXES
                ]
            for binary in loose:
                records[binary] = self._analyze(binary, scope, root, layout)

            # Plugins installed as their own folder
            for entry in sorted(root.iterdir()):
                if not entry.is_dir() or entry.name == BINARIES_SUBDIR:
                    continue
                for binary in _find_binaries(entry):
                    if binary not in records:
                        records[binary] = self._analyze(binary, scope, root, layout, entry.name)
        except OSError as e:
            logger.error("Failed to scan %s plugins in %s: %s", scope, root, e)

        return list(records.values())

    def _analyze(
        self,
        binary: Path,
        scope: PluginScope,
        root: Path,
        layout: HostLayout,
        folder_name: Optional[str] = None,
    ) -> InstalledPluginRecord:
        base_name = binary.stem
        binary_dir = binary.parent

        if folder_name is None:
            folder_name = base_name
            if binary_dir not in (root, root / BINARIES_SUBDIR):
                folder_name = binary_dir.name

        if scope == "system":
            data_candidate = layout.system_plugin_data_dir / folder_name
        else:
            data_candidate = layout.user_plugin_config_dir / folder_name

        return InstalledPluginRecord(
            id=plugin_id_from_folder(folder_name),
            name=base_name,
            display_name=format_plugin_name(folder_name),
            version=detect_version(binary_dir),
            scope=scope,
            binary_path=binary,
            folder_name=folder_name,
            data_path=data_candidate if data_candidate.is_dir() else None,
        )


def remove_plugin(record: InstalledPluginRecord, layout: HostLayout) -> List[Path]:
    """Delete a plugin's binary, its own folder and its data folder.

    Shared plugin roots are never deleted. Blocking; run in a worker thread.

    Args:
        record: Installed plugin to remove
        layout: Host layout the record belongs to

    Returns:
        Paths that were deleted
    """
    removed: List[Path] = []
    shared = layout.shared_roots()
    root = layout.system_plugins_dir if record.scope == "system" else layout.user_plugins_dir

    binary = Path(record.binary_path)
    if binary.exists():
        binary.unlink()
        removed.append(binary)

    folder = root / record.folder_name
    if not folder.is_dir():
        folder = binary.parent
    if folder not in shared and folder.is_dir() and root in folder.parents:
        remove_tree(folder)
        removed.append(folder)

    if record.data_path is not None and Path(record.data_path).is_dir():
        remove_tree(Path(record.data_path))
        removed.append(Path(record.data_path))

    logger.info("Removed plugin %s (%d paths)", record.id, len(removed))
    return removed
