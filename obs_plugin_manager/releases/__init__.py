"""GitHub release resolution."""

from obs_plugin_manager.releases.models import Asset, Release, ResolvedRelease, UpdateCheck
from obs_plugin_manager.releases.resolver import (
    ARCHIVE_EXTENSION,
    DEFAULT_ASSET_PATTERN,
    PLATFORM_TOKENS,
    ReleaseResolver,
    select_asset,
)

__all__ = [
    "ARCHIVE_EXTENSION",
    "Asset",
    "DEFAULT_ASSET_PATTERN",
    "PLATFORM_TOKENS",
    "Release",
    "ReleaseResolver",
    "ResolvedRelease",
    "UpdateCheck",
    "select_asset",
]
