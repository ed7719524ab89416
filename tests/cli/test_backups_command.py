"""Tests for the backups and cache command groups."""

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from conftest import zip_bytes
from obs_plugin_manager.backup import backup_filename
from obs_plugin_manager.cli.exit_codes import ExitCode
from obs_plugin_manager.config import BackupConfig, ManagerConfig
from obs_plugin_manager.main import app

runner = CliRunner()


@pytest.fixture
def config(tmp_path: Path, host_config) -> ManagerConfig:
    config = ManagerConfig(
        cache_dir=tmp_path / "cache",
        host=host_config,
        backup=BackupConfig(backup_dir=tmp_path / "backups", max_backups=2),
    )
    with patch("obs_plugin_manager.cli.backups.get_config", return_value=config), \
            patch("obs_plugin_manager.cli.cache.get_config", return_value=config):
        yield config


def make_backups(backup_dir: Path, count: int) -> list:
    backup_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for hour in range(count):
        moment = datetime(2024, 5, 1, hour, 0, 0, tzinfo=timezone.utc)
        path = backup_dir / backup_filename(moment)
        path.write_bytes(zip_bytes({"system-plugins/64bit/p.dll": b"x"}))
        paths.append(path)
    return paths


class TestBackupsList:
    """Test backups list."""

    def test_list_json(self, config) -> None:
        paths = make_backups(config.backup.backup_dir, 2)

        result = runner.invoke(app, ["--json", "backups", "list"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [item["path"] for item in data] == [str(paths[1]), str(paths[0])]
        assert data[0]["createdAt"] == "2024-05-01T01:00:00+00:00"
        assert data[0]["size"] > 0

    def test_list_empty(self, config) -> None:
        result = runner.invoke(app, ["backups", "list"])

        assert result.exit_code == 0
        assert "No backups" in result.stdout


class TestBackupsPrune:
    """Test backups prune."""

    def test_prune_default_keep(self, config) -> None:
        paths = make_backups(config.backup.backup_dir, 4)

        result = runner.invoke(app, ["--json", "backups", "prune"])

        assert result.exit_code == 0
        deleted = json.loads(result.stdout)["deleted"]
        assert sorted(deleted) == sorted(str(p) for p in paths[:2])
        assert paths[3].exists()

    def test_prune_explicit_keep(self, config) -> None:
        paths = make_backups(config.backup.backup_dir, 3)

        result = runner.invoke(app, ["backups", "prune", "--keep", "0"])

        assert result.exit_code == 0
        assert not any(p.exists() for p in paths)

    def test_prune_rejects_negative(self, config) -> None:
        result = runner.invoke(app, ["backups", "prune", "--keep", "-1"])
        assert result.exit_code != 0


class TestBackupsRestore:
    """Test backups restore guards."""

    def test_restore_declined(self, config) -> None:
        make_backups(config.backup.backup_dir, 1)
        name = backup_filename(datetime(2024, 5, 1, 0, 0, 0, tzinfo=timezone.utc))

        result = runner.invoke(app, ["backups", "restore", name], input="n\n")

        assert result.exit_code == ExitCode.CANCELLED


class TestCacheClear:
    """Test cache clear."""

    def test_clear(self, config) -> None:
        config.cache_dir.mkdir(parents=True)
        config.cache_file.write_text(json.dumps({
            "k": {"payload": 1, "created_at": 0, "expires_at": 4102444800},
        }))

        result = runner.invoke(app, ["--json", "cache", "clear"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["removed"] == 1
        assert not config.cache_file.exists()
