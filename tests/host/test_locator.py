"""Tests for OBS installation detection."""

from pathlib import Path

from obs_plugin_manager.host.locator import ObsHostLocator


def make_install(root: Path, executable: str = "obs64.exe") -> Path:
    (root / "bin" / "64bit").mkdir(parents=True)
    (root / "bin" / "64bit" / executable).write_bytes(b"MZ")
    (root / "obs-plugins").mkdir()
    return root


def no_registry():
    return []


class TestIsValid:
    """Test installation validation."""

    def test_valid_install(self, obs_host: Path) -> None:
        assert ObsHostLocator(read_registry=no_registry).is_valid(obs_host)

    def test_missing_executable(self, tmp_path: Path) -> None:
        (tmp_path / "obs-plugins").mkdir()
        assert not ObsHostLocator(read_registry=no_registry).is_valid(tmp_path)

    def test_missing_plugins_dir(self, tmp_path: Path) -> None:
        """Test that the executable alone is not enough."""
        (tmp_path / "bin" / "64bit").mkdir(parents=True)
        (tmp_path / "bin" / "64bit" / "obs64.exe").write_bytes(b"MZ")
        assert not ObsHostLocator(read_registry=no_registry).is_valid(tmp_path)

    def test_empty_path(self) -> None:
        assert not ObsHostLocator(read_registry=no_registry).is_valid("")

    def test_nonexistent_path(self, tmp_path: Path) -> None:
        assert not ObsHostLocator(read_registry=no_registry).is_valid(tmp_path / "missing")


class TestNormalize:
    """Test parent-folder normalization."""

    def test_parent_folder_resolves_to_subfolder(self, tmp_path: Path) -> None:
        """Test that selecting the parent of obs-studio is accepted."""
        install = make_install(tmp_path / "obs-studio")
        locator = ObsHostLocator(read_registry=no_registry)

        assert locator.normalize(tmp_path) == install
        assert locator.is_valid(tmp_path)

    def test_install_folder_unchanged(self, obs_host: Path) -> None:
        assert ObsHostLocator(read_registry=no_registry).normalize(obs_host) == obs_host


class TestDetect:
    """Test detection order."""

    def test_configured_path_first(self, tmp_path: Path) -> None:
        configured = make_install(tmp_path / "custom")
        default = make_install(tmp_path / "default")
        locator = ObsHostLocator(configured, default_paths=[default], read_registry=no_registry)

        assert locator.detect() == configured

    def test_registry_before_defaults(self, tmp_path: Path) -> None:
        registry = make_install(tmp_path / "registry")
        default = make_install(tmp_path / "default")
        locator = ObsHostLocator(default_paths=[default], read_registry=lambda: [registry])

        assert locator.candidates() == [registry, default]
        assert locator.detect() == registry

    def test_invalid_candidates_skipped(self, tmp_path: Path) -> None:
        """Test that invalid configured paths fall through to defaults."""
        default = make_install(tmp_path / "default", executable="obs")
        locator = ObsHostLocator(tmp_path / "missing", default_paths=[default], read_registry=no_registry)

        assert locator.detect() == default

    def test_not_found(self, tmp_path: Path) -> None:
        locator = ObsHostLocator(default_paths=[tmp_path / "nope"], read_registry=no_registry)
        assert locator.detect() is None
