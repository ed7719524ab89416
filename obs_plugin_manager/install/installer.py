"""Download, extract and merge plugin release archives into OBS.

Installation is deliberately not transactional: temporary files are always
cleaned up, but files already merged into the OBS directories stay in place
if a later step fails. The backup taken by the orchestrator before the
installation is the recovery path.
"""

import asyncio
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from obs_plugin_manager.catalog import CatalogPlugin
from obs_plugin_manager.config import HostConfig
from obs_plugin_manager.errors import ArchiveError, AssetResolutionError, FilesystemError
from obs_plugin_manager.host.layout import HostLayout
from obs_plugin_manager.install.events import ProgressChannel, ProgressStage, emit
from obs_plugin_manager.install.fsops import (
    extract_zip,
    find_content_root,
    merge_directory,
    remove_tree_quietly,
)
from obs_plugin_manager.network.governor import RequestGovernor
from obs_plugin_manager.releases.models import ResolvedRelease
from obs_plugin_manager.releases.resolver import ReleaseResolver, select_asset

logger = logging.getLogger(__name__)

# Progress milestones (percent of the whole installation)
PCT_RESOLVE = 0.0
PCT_SELECT = 10.0
PCT_DOWNLOAD_START = 20.0
PCT_DOWNLOAD_SPAN = 50.0
PCT_EXTRACT = 70.0
PCT_MERGE_START = 80.0
PCT_MERGE_SPAN = 20.0
PCT_COMPLETE = 100.0


@dataclass
class InstallReport:
    """What an installation wrote."""

    plugin_id: str
    tag: str
    asset_name: str
    files: List[Path] = field(default_factory=list)


class ArchiveInstaller:
    """Materializes release assets into an OBS installation.

    Example:
        installer = ArchiveInstaller(resolver, governor, config.host)
        await installer.install(plugin, Path("C:/Program Files/obs-studio"))
    """

    def __init__(
        self,
        resolver: ReleaseResolver,
        governor: RequestGovernor,
        host_config: HostConfig,
        temp_root: Optional[Path] = None,
    ) -> None:
        """Initialize the installer.

        Args:
            resolver: Release resolver
            governor: Governor used for the asset download
            host_config: User plugin locations
            temp_root: Parent of temporary working directories (system temp if None)
        """
        self._resolver = resolver
        self._governor = governor
        self._host_config = host_config
        self._temp_root = temp_root

    async def install(
        self,
        plugin: CatalogPlugin,
        host_path: Path,
        release_tag: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> InstallReport:
        """Resolve, download and install a plugin release.

        Args:
            plugin: Catalog plugin
            host_path: Validated OBS installation path
            release_tag: Release to install (latest if None)
            progress: Optional progress channel

        Returns:
            Report of the installed files

        Raises:
            AssetResolutionError: If the release has no ZIP asset
        """
        emit(progress, ProgressStage.RESOLVING, PCT_RESOLVE)
        release = await self._resolver.get_release(plugin, release_tag)

        emit(progress, ProgressStage.SELECTING_ASSET, PCT_SELECT)
        asset = select_asset(release, plugin.asset_pattern)
        if asset is None:
            raise AssetResolutionError(release.tag)

        return await self.install_release(
            plugin, host_path, ResolvedRelease(release=release, asset=asset), progress
        )

    async def install_release(
        self,
        plugin: CatalogPlugin,
        host_path: Path,
        resolved: ResolvedRelease,
        progress: Optional[ProgressChannel] = None,
    ) -> InstallReport:
        """Download, extract and merge an already resolved asset.

        Raises:
            NetworkError: If the download fails
            ArchiveError: If the archive is corrupt or has no plugin folders
            FilesystemError: On I/O failures while extracting or merging
        """
        layout = HostLayout.for_host(Path(host_path), self._host_config)
        asset = resolved.asset

        try:
            work_dir = Path(await asyncio.to_thread(
                tempfile.mkdtemp, prefix=f"obs-plugin-{plugin.id}-", dir=self._temp_root
            ))
        except OSError as e:
            raise FilesystemError.from_os_error(e, "create temporary directory") from e

        logger.info("Installing %s %s from %s", plugin.id, resolved.tag, asset.name)

        try:
            # Download
            emit(progress, ProgressStage.DOWNLOADING, PCT_DOWNLOAD_START)
            archive_path = work_dir / Path(asset.name).name

            def on_chunk(downloaded: int, total: Optional[int]) -> None:
                if total:
                    fraction = min(downloaded / total, 1.0)
                    emit(
                        progress,
                        ProgressStage.DOWNLOADING,
                        PCT_DOWNLOAD_START + fraction * PCT_DOWNLOAD_SPAN,
                    )

            await self._governor.stream_download(asset.download_url, archive_path, on_chunk)

            # Extract
            emit(progress, ProgressStage.EXTRACTING, PCT_EXTRACT)
            extract_dir = work_dir / "extracted"
            await asyncio.to_thread(extract_zip, archive_path, extract_dir)

            # Merge
            emit(progress, ProgressStage.INSTALLING, PCT_MERGE_START)
            source_root = await asyncio.to_thread(
                find_content_root, extract_dir, tuple(layout.archive_targets())
            )
            files = await self._merge_subtrees(source_root, layout, progress)

            emit(progress, ProgressStage.COMPLETE, PCT_COMPLETE)
        except OSError as e:
            raise FilesystemError.from_os_error(e, "install plugin files") from e
        finally:
            await asyncio.to_thread(remove_tree_quietly, work_dir)

        logger.info("Installed %s %s (%d files)", plugin.id, resolved.tag, len(files))
        return InstallReport(
            plugin_id=plugin.id,
            tag=resolved.tag,
            asset_name=asset.name,
            files=files,
        )

    async def _merge_subtrees(
        self,
        source_root: Path,
        layout: HostLayout,
        progress: Optional[ProgressChannel],
    ) -> List[Path]:
        """Merge every recognized archive subtree into its host location."""
        targets = [
            (source_root / name, dest)
            for name, dest in layout.archive_targets().items()
            if (source_root / name).is_dir()
        ]
        if not targets:
            raise ArchiveError(
                "Archive does not contain obs-plugins, data or plugins folders",
                details={"root": source_root.name},
            )

        written: List[Path] = []
        for index, (src, dest) in enumerate(targets):
            logger.debug("Merging %s into %s", src, dest)
            written.extend(await asyncio.to_thread(merge_directory, src, dest))
            emit(
                progress,
                ProgressStage.INSTALLING,
                PCT_MERGE_START + (index + 1) / len(targets) * PCT_MERGE_SPAN,
            )
        return written
