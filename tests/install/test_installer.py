"""Tests for the archive installer."""

from pathlib import Path

import pytest

from conftest import release_payload, zip_bytes
from obs_plugin_manager.catalog import CatalogPlugin
from obs_plugin_manager.errors import (
    ArchiveError,
    AssetResolutionError,
    NotFoundError,
)
from obs_plugin_manager.install import ArchiveInstaller, ProgressChannel, ProgressStage
from obs_plugin_manager.releases import ReleaseResolver

API = "https://api.github.com/repos/example/sample-plugin/releases"

PLUGIN = CatalogPlugin(
    id="sample-plugin",
    name="Sample Plugin",
    description="",
    source_owner="example",
    source_repo="sample-plugin",
    asset_pattern="Windows",
)


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def installer(make_governor, host_config, temp_root) -> ArchiveInstaller:
    governor = make_governor()
    return ArchiveInstaller(ReleaseResolver(governor), governor, host_config, temp_root=temp_root)


def publish(github, tag: str, archive: bytes, asset: str = "sample-plugin-windows.zip", latest: bool = True) -> None:
    payload = release_payload(tag, [asset])
    github.json(f"{API}/tags/{tag}", payload)
    if latest:
        github.json(f"{API}/latest", payload)
    github.content(f"https://dl.test/{tag}/{asset}", archive)


class TestArchiveInstaller:
    """Test ArchiveInstaller.install."""

    @pytest.mark.asyncio
    async def test_installs_all_subtrees(self, github, installer, obs_host, host_config, temp_root) -> None:
        """Test that obs-plugins, data and plugins are merged into place."""
        publish(github, "v2.0.0", zip_bytes({
            "obs-plugins/64bit/sample-plugin.dll": b"dll",
            "data/obs-plugins/sample-plugin/locale/en-US.ini": b"Name=Sample",
            "plugins/sample-plugin/bin/64bit/sample-plugin.dll": b"user",
        }))

        report = await installer.install(PLUGIN, obs_host)

        assert report.tag == "v2.0.0"
        assert report.asset_name == "sample-plugin-windows.zip"
        assert len(report.files) == 3
        assert (obs_host / "obs-plugins" / "64bit" / "sample-plugin.dll").read_bytes() == b"dll"
        assert (obs_host / "data" / "obs-plugins" / "sample-plugin" / "locale" / "en-US.ini").exists()
        assert (host_config.user_plugins_dir / "sample-plugin" / "bin" / "64bit" / "sample-plugin.dll").exists()
        assert list(temp_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_overwrites_existing_files(self, github, installer, obs_host) -> None:
        existing = obs_host / "obs-plugins" / "64bit" / "sample-plugin.dll"
        existing.write_bytes(b"old")
        unrelated = obs_host / "obs-plugins" / "64bit" / "other.dll"
        unrelated.write_bytes(b"other")
        publish(github, "v2.0.0", zip_bytes({"obs-plugins/64bit/sample-plugin.dll": b"new"}))

        await installer.install(PLUGIN, obs_host)

        assert existing.read_bytes() == b"new"
        assert unrelated.read_bytes() == b"other"

    @pytest.mark.asyncio
    async def test_unwraps_top_level_folder(self, github, installer, obs_host) -> None:
        """Test archives that wrap everything in one versioned folder."""
        publish(github, "v2.0.0", zip_bytes({
            "sample-plugin-2.0.0/obs-plugins/64bit/sample-plugin.dll": b"dll",
        }))

        await installer.install(PLUGIN, obs_host)
        assert (obs_host / "obs-plugins" / "64bit" / "sample-plugin.dll").exists()

    @pytest.mark.asyncio
    async def test_specific_tag(self, github, installer, obs_host) -> None:
        publish(github, "v1.0.0", zip_bytes({"obs-plugins/64bit/old.dll": b"1"}), latest=False)

        report = await installer.install(PLUGIN, obs_host, release_tag="v1.0.0")

        assert report.tag == "v1.0.0"
        assert (obs_host / "obs-plugins" / "64bit" / "old.dll").exists()

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, github, installer, obs_host, temp_root) -> None:
        """Test that a corrupt download fails and leaves no temp files."""
        publish(github, "v2.0.0", b"not a zip")

        with pytest.raises(ArchiveError):
            await installer.install(PLUGIN, obs_host)
        assert list(temp_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_no_recognized_folders(self, github, installer, obs_host) -> None:
        publish(github, "v2.0.0", zip_bytes({"README.md": b"hi", "sample.dll": b"x"}))

        with pytest.raises(ArchiveError) as exc_info:
            await installer.install(PLUGIN, obs_host)
        assert "obs-plugins" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_zip_asset(self, github, installer, obs_host) -> None:
        github.json(f"{API}/latest", release_payload("v2.0.0", ["sample.tar.gz"]))

        with pytest.raises(AssetResolutionError):
            await installer.install(PLUGIN, obs_host)

    @pytest.mark.asyncio
    async def test_download_failure(self, github, installer, obs_host, temp_root) -> None:
        github.json(f"{API}/latest", release_payload("v2.0.0", ["sample-plugin-windows.zip"]))

        with pytest.raises(NotFoundError):
            await installer.install(PLUGIN, obs_host)
        assert list(temp_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, github, installer, obs_host) -> None:
        """Test that progress runs from resolving to complete without going back."""
        publish(github, "v2.0.0", zip_bytes({
            "obs-plugins/64bit/sample-plugin.dll": b"d" * 4096,
            "data/obs-plugins/sample-plugin/x.txt": b"x",
        }))
        channel = ProgressChannel(PLUGIN.id)

        await installer.install(PLUGIN, obs_host, progress=channel)

        events = channel.history
        percents = [e.percent for e in events]
        assert events[0].stage is ProgressStage.RESOLVING
        assert events[-1].stage is ProgressStage.COMPLETE
        assert percents[-1] == 100.0
        assert percents == sorted(percents)
        stages = [e.stage for e in events]
        for stage in (ProgressStage.DOWNLOADING, ProgressStage.EXTRACTING, ProgressStage.INSTALLING):
            assert stage in stages
