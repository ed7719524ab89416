"""Safe plugin mutations: safety gates, backup, then install or removal.

Every mutating operation runs the same sequence::

    host not running -> plugin in catalog -> host path valid
        -> (install paths) resolve release and asset
        -> backup -> install / remove

Preconditions fail fast with a :class:`PreconditionError` and leave the
filesystem untouched. Once the preconditions pass, failures are re-raised as
the same error class with the operation name prefixed, and carry the backup
location (when one was taken) in ``details["backup_path"]``. Nothing is
rolled back automatically.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx

from obs_plugin_manager.backup import BackupService
from obs_plugin_manager.catalog import CatalogPlugin, PluginCatalog
from obs_plugin_manager.config import HostConfig, ManagerConfig
from obs_plugin_manager.errors import (
    FilesystemError,
    HostRunningError,
    InvalidHostPathError,
    OperationInProgressError,
    PluginManagerError,
)
from obs_plugin_manager.host.layout import HostLayout
from obs_plugin_manager.host.liveness import LivenessChecker, ProcessLivenessChecker
from obs_plugin_manager.host.locator import HostLocator, ObsHostLocator
from obs_plugin_manager.host.scanner import (
    FilesystemPluginScanner,
    InstalledPluginRecord,
    PluginScanner,
    remove_plugin,
)
from obs_plugin_manager.install.events import ProgressChannel, ProgressStage, emit
from obs_plugin_manager.install.installer import PCT_RESOLVE, PCT_SELECT, ArchiveInstaller
from obs_plugin_manager.network.governor import RequestGovernor
from obs_plugin_manager.releases.models import Asset, Release, UpdateCheck
from obs_plugin_manager.releases.resolver import ReleaseResolver

logger = logging.getLogger(__name__)


class OperationState(Enum):
    """Lifecycle of one orchestrated operation."""

    IDLE = "idle"
    PRECHECK_RUNNING = "precheck_running"
    PRECHECK_PATH = "precheck_path"
    BACKING_UP = "backing_up"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class _Operation:
    name: str
    label: str
    verb: str


INSTALL = _Operation("install", "Installation", "installing")
UPDATE = _Operation("update", "Update", "updating")
DOWNGRADE = _Operation("downgrade", "Downgrade", "downgrading")
REMOVE = _Operation("remove", "Removal", "removing")


@dataclass
class OperationResult:
    """Outcome of a successful mutating operation."""

    success: bool
    backup_path: str
    operation: str
    plugin_id: str
    release_tag: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "backupPath": self.backup_path,
            "operation": self.operation,
            "pluginId": self.plugin_id,
            "releaseTag": self.release_tag,
        }


class InstallOrchestrator:
    """Coordinates safety checks, backups and plugin mutations.

    One orchestrator runs at most one mutating operation at a time. Callers
    using several orchestrators on the same OBS installation must serialize
    them themselves.

    Example:
        async with InstallOrchestrator.from_config(config) as orchestrator:
            result = await orchestrator.install("obs-websocket", host_path)
            print(result.backup_path)
    """

    def __init__(
        self,
        catalog: PluginCatalog,
        resolver: ReleaseResolver,
        installer: ArchiveInstaller,
        backups: BackupService,
        locator: HostLocator,
        liveness: LivenessChecker,
        scanner: PluginScanner,
        host_config: HostConfig,
        governor: Optional[RequestGovernor] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            catalog: Installable plugins
            resolver: Release resolver
            installer: Archive installer
            backups: Backup service
            locator: Host path normalization and validation
            liveness: Host running check
            scanner: Installed plugin scanner
            host_config: User plugin locations
            governor: Request governor closed by aclose(), if owned
        """
        self.catalog = catalog
        self.resolver = resolver
        self.installer = installer
        self.backups = backups
        self.locator = locator
        self.liveness = liveness
        self.scanner = scanner
        self.host_config = host_config
        self._governor = governor

        self._state = OperationState.IDLE
        self._processing_plugin: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: ManagerConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "InstallOrchestrator":
        """Wire the default collaborators from configuration."""
        governor = RequestGovernor.from_config(config, client)
        resolver = ReleaseResolver.from_config(governor, config)
        return cls(
            catalog=PluginCatalog(),
            resolver=resolver,
            installer=ArchiveInstaller(resolver, governor, config.host),
            backups=BackupService.from_config(config),
            locator=ObsHostLocator(config.host.obs_path),
            liveness=ProcessLivenessChecker(),
            scanner=FilesystemPluginScanner(config.host),
            host_config=config.host,
            governor=governor,
        )

    async def __aenter__(self) -> "InstallOrchestrator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._governor is not None:
            await self._governor.aclose()

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def processing_plugin(self) -> Optional[str]:
        """Id of the plugin currently being processed, or None."""
        return self._processing_plugin

    # Read-only surface

    async def check_is_running(self) -> bool:
        return await self.liveness.is_running()

    def validate_host_path(self, path: Path) -> bool:
        return self.locator.is_valid(path)

    def detect_host_path(self) -> Optional[Path]:
        return self.locator.detect()

    async def scan_installed(self, host_path: Path) -> List[InstalledPluginRecord]:
        normalized = self.locator.normalize(host_path)
        return await asyncio.to_thread(self.scanner.scan, normalized)

    def list_catalog(self) -> List[CatalogPlugin]:
        return self.catalog.all()

    async def get_latest_release(self, plugin_id: str) -> Tuple[Release, Optional[Asset]]:
        """Latest release of a catalog plugin and the asset that would be installed."""
        plugin = self.catalog.get(plugin_id)
        release = await self.resolver.get_latest_release(plugin.source_owner, plugin.source_repo)
        return release, self.resolver.select_asset(release, plugin.asset_pattern)

    async def get_all_releases(self, plugin_id: str) -> List[Release]:
        plugin = self.catalog.get(plugin_id)
        return await self.resolver.get_all_releases(plugin.source_owner, plugin.source_repo)

    def match_catalog(self, record: InstalledPluginRecord) -> Optional[CatalogPlugin]:
        """Catalog entry for an installed plugin, matched by folder id or name."""
        for key in (record.id, record.name, record.display_name):
            plugin = self.catalog.find_by_name(key)
            if plugin is not None:
                return plugin
        return None

    async def check_updates(self, records: List[InstalledPluginRecord]) -> Dict[str, UpdateCheck]:
        """Compare installed plugins known to the catalog with their latest releases.

        Plugins without a catalog entry are left out. A plugin whose lookup
        fails is logged and left out so one bad repository does not hide the
        rest.

        Returns:
            Update checks keyed by installed record id
        """
        matched: List[Tuple[InstalledPluginRecord, CatalogPlugin]] = []
        for record in records:
            plugin = self.match_catalog(record)
            if plugin is not None:
                matched.append((record, plugin))
        results = await asyncio.gather(
            *(self.resolver.check_for_update(plugin, record.version) for record, plugin in matched),
            return_exceptions=True,
        )
        checks: Dict[str, UpdateCheck] = {}
        for (record, plugin), result in zip(matched, results):
            if isinstance(result, PluginManagerError):
                logger.warning("Update check for %s failed: %s", plugin.id, result)
                continue
            if isinstance(result, BaseException):
                raise result
            checks[record.id] = result
        return checks

    def list_backups(self) -> List[Path]:
        return self.backups.list_backups()

    # Mutating operations

    async def install(
        self,
        plugin_id: str,
        host_path: Path,
        tag: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> OperationResult:
        """Install a catalog plugin (latest release unless ``tag`` is given)."""
        return await self._install_like(INSTALL, plugin_id, host_path, tag, progress)

    async def update(
        self,
        plugin_id: str,
        host_path: Path,
        progress: Optional[ProgressChannel] = None,
    ) -> OperationResult:
        """Install the latest release over the current one."""
        return await self._install_like(UPDATE, plugin_id, host_path, None, progress)

    async def downgrade(
        self,
        plugin_id: str,
        tag: str,
        host_path: Path,
        progress: Optional[ProgressChannel] = None,
    ) -> OperationResult:
        """Install an older release over the current one."""
        return await self._install_like(DOWNGRADE, plugin_id, host_path, tag, progress)

    async def remove(
        self,
        record: InstalledPluginRecord,
        host_path: Path,
        progress: Optional[ProgressChannel] = None,
    ) -> OperationResult:
        """Remove an installed plugin's binary, folder and data folder.

        Raises:
            HostRunningError: If OBS is running
            InvalidHostPathError: If ``host_path`` is not an OBS installation
            FilesystemError: If deletion fails (message prefixed "Removal failed")
        """
        self._begin(record.id)
        try:
            _, host = await self._precheck(REMOVE, None, host_path, progress)
            try:
                backup_path = await self._backup(host, progress)
            except PluginManagerError as e:
                raise e.with_operation(REMOVE.label) from e

            self._state = OperationState.EXECUTING
            emit(progress, ProgressStage.REMOVING, 50.0)
            layout = HostLayout.for_host(host, self.host_config)
            try:
                await asyncio.to_thread(remove_plugin, record, layout)
            except OSError as e:
                error = FilesystemError.from_os_error(e, f"remove plugin {record.id}")
                raise error.with_operation(REMOVE.label, backup_path=str(backup_path)) from e

            emit(progress, ProgressStage.COMPLETE, 100.0)
            return self._finish(REMOVE, record.id, backup_path)
        except PluginManagerError as e:
            logger.error("Plugin remove failed: %s", e)
            emit(progress, ProgressStage.FAILED)
            raise
        finally:
            self._end()

    # Internals

    def _begin(self, plugin_id: str) -> None:
        if self._processing_plugin is not None:
            raise OperationInProgressError(self._processing_plugin)
        self._processing_plugin = plugin_id
        self._state = OperationState.IDLE

    def _end(self) -> None:
        if self._state is not OperationState.DONE:
            self._state = OperationState.FAILED
        self._processing_plugin = None

    def _finish(
        self,
        operation: _Operation,
        plugin_id: str,
        backup_path: Path,
        tag: Optional[str] = None,
    ) -> OperationResult:
        self._state = OperationState.DONE
        logger.info("%s of %s finished (backup: %s)", operation.label, plugin_id, backup_path)
        return OperationResult(
            success=True,
            backup_path=str(backup_path),
            operation=operation.name,
            plugin_id=plugin_id,
            release_tag=tag,
        )

    async def _precheck(
        self,
        operation: _Operation,
        plugin_id: Optional[str],
        host_path: Path,
        progress: Optional[ProgressChannel],
    ) -> Tuple[Optional[CatalogPlugin], Path]:
        """Run the safety gates in order.

        Returns:
            The catalog plugin (None for removals) and the normalized host path
        """
        self._state = OperationState.PRECHECK_RUNNING
        emit(progress, ProgressStage.PRECHECK, 0.0)
        if await self.liveness.is_running():
            raise HostRunningError(operation.verb)

        plugin = self.catalog.get(plugin_id) if plugin_id is not None else None

        self._state = OperationState.PRECHECK_PATH
        normalized = self.locator.normalize(host_path)
        if not self.locator.is_valid(normalized):
            raise InvalidHostPathError(str(host_path))

        return plugin, normalized

    async def _backup(self, host: Path, progress: Optional[ProgressChannel]) -> Path:
        self._state = OperationState.BACKING_UP
        emit(progress, ProgressStage.BACKING_UP)
        return await self.backups.create_backup(host)

    async def _install_like(
        self,
        operation: _Operation,
        plugin_id: str,
        host_path: Path,
        tag: Optional[str],
        progress: Optional[ProgressChannel],
    ) -> OperationResult:
        self._begin(plugin_id)
        backup_path: Optional[Path] = None
        try:
            plugin, host = await self._precheck(operation, plugin_id, host_path, progress)
            try:
                emit(progress, ProgressStage.RESOLVING, PCT_RESOLVE)
                resolved = await self.resolver.resolve(plugin, tag)
                emit(progress, ProgressStage.SELECTING_ASSET, PCT_SELECT, f"Selected {resolved.asset.name}")

                backup_path = await self._backup(host, progress)

                self._state = OperationState.EXECUTING
                await self.installer.install_release(plugin, host, resolved, progress)
            except PluginManagerError as e:
                extra = {"backup_path": str(backup_path)} if backup_path else {}
                raise e.with_operation(operation.label, **extra) from e

            return self._finish(operation, plugin_id, backup_path, resolved.tag)
        except PluginManagerError as e:
            logger.error("Plugin %s failed: %s", operation.name, e)
            emit(progress, ProgressStage.FAILED)
            raise
        finally:
            self._end()
