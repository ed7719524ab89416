"""Snapshots of the OBS plugin directories taken before every mutation.

Each backup is one ZIP file named ``obs-plugins-backup-<timestamp>.zip`` in
the backup root, holding ``system-plugins/`` (the host's ``obs-plugins``
folder) and ``user-plugins/`` (the per-user plugin folder). Timestamps sort
lexically in chronological order.

Usage::

    service = BackupService.from_config(config)
    path = await service.create_backup(host_path)
    for record in service.list_records():
        print(record.path.name, record.created_at)
"""

import asyncio
import logging
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from obs_plugin_manager.config import BackupConfig, HostConfig, ManagerConfig
from obs_plugin_manager.errors import FilesystemError
from obs_plugin_manager.host.layout import HostLayout
from obs_plugin_manager.install.fsops import (
    copy_directory,
    extract_zip,
    merge_directory,
    remove_tree_quietly,
)

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "obs-plugins-backup-"
BACKUP_SUFFIX = ".zip"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%f"

SYSTEM_STAGING_DIR = "system-plugins"
USER_STAGING_DIR = "user-plugins"


@dataclass(frozen=True)
class BackupRecord:
    path: Path
    created_at: Optional[datetime]

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size_bytes(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0


def backup_filename(moment: datetime) -> str:
    return f"{BACKUP_PREFIX}{moment.strftime(TIMESTAMP_FORMAT)}{BACKUP_SUFFIX}"


def parse_backup_timestamp(name: str) -> Optional[datetime]:
    """Timestamp encoded in a backup file name, or None if it has none."""
    if not (name.startswith(BACKUP_PREFIX) and name.endswith(BACKUP_SUFFIX)):
        return None
    stamp = name[len(BACKUP_PREFIX):-len(BACKUP_SUFFIX)]
    try:
        return datetime.strptime(stamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackupService:
    """Create, list, prune and restore plugin directory backups."""

    def __init__(
        self,
        backup_dir: Path,
        host_config: HostConfig,
        max_backups: int = 10,
        auto_prune: bool = False,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            backup_dir: Directory holding the backup archives
            host_config: User plugin locations
            max_backups: Archives kept by prune()
            auto_prune: Prune after every new backup
            now: Clock used for backup names
        """
        self.backup_dir = Path(backup_dir)
        self.host_config = host_config
        self.max_backups = max_backups
        self.auto_prune = auto_prune
        self._now = now

    @classmethod
    def from_config(cls, config: ManagerConfig) -> "BackupService":
        backup: BackupConfig = config.backup
        return cls(
            backup.backup_dir,
            config.host,
            max_backups=backup.max_backups,
            auto_prune=backup.auto_prune,
        )

    async def create_backup(self, host_path: Path) -> Path:
        """Snapshot the system and user plugin directories into a new ZIP.

        Args:
            host_path: OBS installation root

        Returns:
            Path of the created archive

        Raises:
            FilesystemError: If staging or compression fails
        """
        backup_path = await asyncio.to_thread(self._create_backup_sync, Path(host_path))
        logger.info("Backup created: %s", backup_path)

        if self.auto_prune:
            await asyncio.to_thread(self.prune)

        return backup_path

    def _create_backup_sync(self, host_path: Path) -> Path:
        layout = HostLayout.for_host(host_path, self.host_config)

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix="obs-backup-"))
        except OSError as e:
            raise FilesystemError.from_os_error(e, "create backup") from e

        backup_path = self.backup_dir / backup_filename(self._now())

        try:
            try:
                if layout.system_plugins_dir.is_dir():
                    copy_directory(layout.system_plugins_dir, staging / SYSTEM_STAGING_DIR)
                if layout.user_plugins_dir.is_dir():
                    copy_directory(layout.user_plugins_dir, staging / USER_STAGING_DIR)
            except (OSError, shutil.Error) as e:
                raise FilesystemError(
                    f"Failed to create backup: {e}",
                    details={"host_path": str(host_path)},
                ) from e

            try:
                archive = shutil.make_archive(
                    str(backup_path.with_suffix("")), "zip", root_dir=staging
                )
            except OSError as e:
                raise FilesystemError(
                    f"Failed to create backup: {e}",
                    details={"backup_path": str(backup_path)},
                ) from e
        finally:
            remove_tree_quietly(staging)

        return Path(archive)

    def list_backups(self) -> List[Path]:
        """Backup archives in the backup root, newest first."""
        if not self.backup_dir.is_dir():
            return []
        return sorted(
            (p for p in self.backup_dir.iterdir()
             if p.is_file() and p.name.endswith(BACKUP_SUFFIX)),
            key=lambda p: p.name,
            reverse=True,
        )

    def list_records(self) -> List[BackupRecord]:
        return [
            BackupRecord(path=p, created_at=parse_backup_timestamp(p.name))
            for p in self.list_backups()
        ]

    def prune(self, keep: Optional[int] = None) -> List[Path]:
        """Delete the oldest backups beyond ``keep`` (default max_backups).

        Only archives following the backup naming scheme are considered.

        Returns:
            Deleted archive paths
        """
        keep = self.max_backups if keep is None else keep
        if keep < 0:
            raise ValueError("keep must not be negative")

        managed = [p for p in self.list_backups() if parse_backup_timestamp(p.name)]
        deleted: List[Path] = []
        for path in managed[keep:]:
            try:
                path.unlink()
            except OSError as e:
                raise FilesystemError.from_os_error(e, "delete backup") from e
            deleted.append(path)
            logger.info("Pruned backup %s", path.name)
        return deleted

    async def restore_backup(self, backup_path: Path, host_path: Path) -> List[Path]:
        """Merge a backup's plugin folders back into place.

        Files present in the backup overwrite the current ones; files added
        since the backup are left alone.

        Returns:
            Files written

        Raises:
            FilesystemError: If the archive is missing or cannot be written
            ArchiveError: If the archive is corrupt
        """
        backup_path = Path(backup_path)
        if not backup_path.is_file():
            raise FilesystemError(
                f"Backup not found: {backup_path}",
                details={"backup_path": str(backup_path)},
            )
        written = await asyncio.to_thread(self._restore_sync, backup_path, Path(host_path))
        logger.info("Restored %d files from %s", len(written), backup_path.name)
        return written

    def _restore_sync(self, backup_path: Path, host_path: Path) -> List[Path]:
        layout = HostLayout.for_host(host_path, self.host_config)
        targets = {
            SYSTEM_STAGING_DIR: layout.system_plugins_dir,
            USER_STAGING_DIR: layout.user_plugins_dir,
        }

        staging = Path(tempfile.mkdtemp(prefix="obs-restore-"))
        try:
            extract_zip(backup_path, staging)
            written: List[Path] = []
            for name, dest in targets.items():
                if (staging / name).is_dir():
                    written.extend(merge_directory(staging / name, dest))
            return written
        except OSError as e:
            raise FilesystemError.from_os_error(e, "restore backup") from e
        finally:
            remove_tree_quietly(staging)
