"""Static catalog (whitelist) of installable OBS plugins.

Each catalog entry points at a GitHub repository that publishes Windows ZIP
packages as release assets. Only plugins listed here can be installed.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

from obs_plugin_manager.errors import UnknownPluginError


@dataclass(frozen=True)
class CatalogPlugin:
    """A plugin that may be installed from its GitHub releases.

    Attributes:
        id: Unique catalog identifier
        name: Display name
        description: Short description
        source_owner: GitHub repository owner
        source_repo: GitHub repository name
        asset_pattern: Substring identifying the Windows ZIP asset
    """

    id: str
    name: str
    description: str
    source_owner: str
    source_repo: str
    asset_pattern: Optional[str] = None

    @property
    def repository_url(self) -> str:
        return f"https://github.com/{self.source_owner}/{self.source_repo}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_PLUGINS: tuple[CatalogPlugin, ...] = (
    CatalogPlugin(
        id="obs-websocket",
        name="OBS WebSocket",
        description="Remote-control OBS Studio from WebSockets",
        source_owner="obsproject",
        source_repo="obs-websocket",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-shaderfilter",
        name="Shader Filter",
        description="Apply custom shaders to sources",
        source_owner="exeldro",
        source_repo="obs-shaderfilter",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-source-record",
        name="Source Record",
        description="Record individual sources",
        source_owner="exeldro",
        source_repo="obs-source-record",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-move-transition",
        name="Move Transition",
        description="Move sources during transitions",
        source_owner="exeldro",
        source_repo="obs-move-transition",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-gradient-source",
        name="Gradient Source",
        description="Create gradient sources",
        source_owner="exeldro",
        source_repo="obs-gradient-source",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-scene-collection-manager",
        name="Scene Collection Manager",
        description="Manage scene collections",
        source_owner="exeldro",
        source_repo="obs-scene-collection-manager",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-advanced-scene-switcher",
        name="Advanced Scene Switcher",
        description="Automated scene switching",
        source_owner="WarmUpTill",
        source_repo="SceneSwitcher",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-text-pthread",
        name="Text PThread",
        description="Enhanced text source",
        source_owner="exeldro",
        source_repo="obs-text-pthread",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-source-switcher",
        name="Source Switcher",
        description="Switch between sources",
        source_owner="exeldro",
        source_repo="obs-source-switcher",
        asset_pattern="Windows",
    ),
    CatalogPlugin(
        id="obs-dynamic-delay",
        name="Dynamic Delay",
        description="Add dynamic delay to sources",
        source_owner="exeldro",
        source_repo="obs-dynamic-delay",
        asset_pattern="Windows",
    ),
)


class PluginCatalog:
    """Lookup over a fixed set of catalog plugins.

    Example:
        catalog = PluginCatalog()
        plugin = catalog.get("obs-websocket")
    """

    def __init__(self, plugins: Optional[Sequence[CatalogPlugin]] = None) -> None:
        """Initialize the catalog.

        Args:
            plugins: Catalog entries (defaults to the built-in whitelist)

        Raises:
            ValueError: If two entries share an id
        """
        entries = list(DEFAULT_PLUGINS if plugins is None else plugins)
        self._plugins: Dict[str, CatalogPlugin] = {}
        for plugin in entries:
            if plugin.id in self._plugins:
                raise ValueError(f"Duplicate catalog id: {plugin.id}")
            self._plugins[plugin.id] = plugin

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def all(self) -> List[CatalogPlugin]:
        """All catalog plugins in declaration order."""
        return list(self._plugins.values())

    def find_by_id(self, plugin_id: str) -> Optional[CatalogPlugin]:
        return self._plugins.get(plugin_id)

    def get(self, plugin_id: str) -> CatalogPlugin:
        """Return a plugin by id.

        Raises:
            UnknownPluginError: If the id is not in the catalog
        """
        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            raise UnknownPluginError(plugin_id)
        return plugin

    def find_by_name(self, name: str) -> Optional[CatalogPlugin]:
        """Find a plugin by display name or id (case-insensitive)."""
        lowered = name.lower()
        for plugin in self._plugins.values():
            if plugin.name.lower() == lowered or plugin.id.lower() == lowered:
                return plugin
        return None

    def find_by_repo(self, owner: str, repo: str) -> Optional[CatalogPlugin]:
        """Find a plugin by GitHub coordinates (case-insensitive)."""
        for plugin in self._plugins.values():
            if (
                plugin.source_owner.lower() == owner.lower()
                and plugin.source_repo.lower() == repo.lower()
            ):
                return plugin
        return None
