"""Resolve catalog plugins to concrete GitHub release assets."""

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from obs_plugin_manager.catalog import CatalogPlugin
from obs_plugin_manager.config import ManagerConfig
from obs_plugin_manager.errors import AssetResolutionError, UpstreamResponseError
from obs_plugin_manager.network.governor import RequestGovernor
from obs_plugin_manager.releases.models import Asset, Release, ResolvedRelease, UpdateCheck
from obs_plugin_manager.versions import compare_versions

logger = logging.getLogger(__name__)

DEFAULT_ASSET_PATTERN = "Windows"
ARCHIVE_EXTENSION = ".zip"
PLATFORM_TOKENS: tuple[str, ...] = ("win", "windows", "x64")


def select_asset(
    release: Release,
    pattern: Optional[str] = None,
    platform_tokens: Sequence[str] = PLATFORM_TOKENS,
) -> Optional[Asset]:
    """Pick the asset to install from a release.

    Matching runs in three tiers, each keeping the release's asset order:

    1. name contains ``pattern`` (case-insensitive) and is a ZIP archive
    2. name contains any platform token and is a ZIP archive
    3. the first ZIP archive

    Args:
        release: Release to search
        pattern: Preferred name fragment (default "Windows")
        platform_tokens: Generic platform hints for the second tier

    Returns:
        The selected asset, or None if the release has no ZIP archive
    """
    needle = (pattern or DEFAULT_ASSET_PATTERN).lower()
    archives = [a for a in release.assets if a.name.lower().endswith(ARCHIVE_EXTENSION)]

    for asset in archives:
        if needle in asset.name.lower():
            return asset

    for asset in archives:
        lowered = asset.name.lower()
        if any(token in lowered for token in platform_tokens):
            return asset

    return archives[0] if archives else None


class ReleaseResolver:
    """Typed access to the GitHub releases API through a RequestGovernor.

    All calls share the governor's cache and rate limit.

    Example:
        resolver = ReleaseResolver(governor)
        resolved = await resolver.resolve(plugin)
        print(resolved.release.tag, resolved.asset.name)
    """

    def __init__(
        self,
        governor: RequestGovernor,
        api_base_url: str = "https://api.github.com",
        token: Optional[str] = None,
    ) -> None:
        self._governor = governor
        self._api_base_url = api_base_url.rstrip("/")
        self._headers: Dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": governor.user_agent,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, governor: RequestGovernor, config: ManagerConfig) -> "ReleaseResolver":
        return cls(
            governor,
            api_base_url=config.network.api_base_url,
            token=config.network.github_token,
        )

    def _releases_url(self, owner: str, repo: str) -> str:
        return f"{self._api_base_url}/repos/{owner}/{repo}/releases"

    async def _fetch(self, url: str) -> Any:
        return await self._governor.get(url, headers=self._headers)

    @staticmethod
    def _parse_release(payload: Any, url: str) -> Release:
        if not isinstance(payload, dict):
            raise UpstreamResponseError(f"Unexpected release payload from {url}", url=url)
        try:
            return Release.from_api(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamResponseError(
                f"Malformed release payload from {url}: {e}", url=url
            ) from e

    async def get_latest_release(self, owner: str, repo: str) -> Release:
        url = f"{self._releases_url(owner, repo)}/latest"
        return self._parse_release(await self._fetch(url), url)

    async def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        # Tags may contain "/" or "#"
        url = f"{self._releases_url(owner, repo)}/tags/" + quote(tag, safe="")
        return self._parse_release(await self._fetch(url), url)

    async def get_all_releases(self, owner: str, repo: str) -> List[Release]:
        url = self._releases_url(owner, repo)
        payload = await self._fetch(url)
        if not isinstance(payload, list):
            raise UpstreamResponseError(f"Unexpected releases payload from {url}", url=url)
        return [self._parse_release(item, url) for item in payload]

    async def get_release(self, plugin: CatalogPlugin, tag: Optional[str] = None) -> Release:
        """Latest release of a plugin, or the release for ``tag``."""
        if tag:
            return await self.get_release_by_tag(plugin.source_owner, plugin.source_repo, tag)
        return await self.get_latest_release(plugin.source_owner, plugin.source_repo)

    def select_asset(self, release: Release, pattern: Optional[str] = None) -> Optional[Asset]:
        return select_asset(release, pattern)

    async def resolve(self, plugin: CatalogPlugin, tag: Optional[str] = None) -> ResolvedRelease:
        """Resolve a plugin (and optional tag) to a release and its asset.

        Raises:
            AssetResolutionError: If the release has no installable archive
        """
        release = await self.get_release(plugin, tag)
        asset = select_asset(release, plugin.asset_pattern)
        if asset is None:
            raise AssetResolutionError(release.tag)
        logger.debug("Resolved %s %s -> %s", plugin.id, release.tag, asset.name)
        return ResolvedRelease(release=release, asset=asset)

    async def check_for_update(
        self,
        plugin: CatalogPlugin,
        installed_version: Optional[str],
    ) -> UpdateCheck:
        """Compare an installed version with the plugin's latest release."""
        release = await self.get_latest_release(plugin.source_owner, plugin.source_repo)
        return UpdateCheck(
            plugin_id=plugin.id,
            installed_version=installed_version,
            latest_tag=release.tag,
            status=compare_versions(installed_version, release.tag),
        )
