"""Release and asset types built from GitHub API payloads."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from obs_plugin_manager.versions import UpdateStatus


@dataclass(frozen=True)
class Asset:
    """A downloadable file attached to a release."""

    name: str
    download_url: str
    size_bytes: int = 0

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Asset":
        return cls(
            name=data["name"],
            download_url=data["browser_download_url"],
            size_bytes=int(data.get("size") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size_bytes}


@dataclass(frozen=True)
class Release:
    """An upstream release.

    Attributes:
        tag: Git tag of the release (e.g. "v5.4.2")
        display_name: Release title
        published_at: ISO 8601 publication time as returned by GitHub
        assets: Assets in the order the API returned them
    """

    tag: str
    display_name: str
    published_at: Optional[str] = None
    assets: List[Asset] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Release":
        """Build a Release from a GitHub release object."""
        return cls(
            tag=data["tag_name"],
            display_name=data.get("name") or data["tag_name"],
            published_at=data.get("published_at"),
            assets=[Asset.from_api(a) for a in data.get("assets") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "name": self.display_name,
            "publishedAt": self.published_at,
        }


@dataclass(frozen=True)
class ResolvedRelease:
    """A release together with the asset chosen for installation."""

    release: Release
    asset: Asset

    @property
    def tag(self) -> str:
        return self.release.tag


@dataclass(frozen=True)
class UpdateCheck:
    """Installed version of a plugin compared with its latest release."""

    plugin_id: str
    installed_version: Optional[str]
    latest_tag: str
    status: UpdateStatus

    @property
    def update_available(self) -> bool:
        return self.status == "update-available"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.plugin_id,
            "installedVersion": self.installed_version,
            "latestTag": self.latest_tag,
            "status": self.status,
        }
