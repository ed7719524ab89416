"""Tests for the OBS process check."""

from unittest.mock import Mock, patch

import psutil
import pytest

from obs_plugin_manager.host.liveness import ProcessLivenessChecker


def fake_process(name, pid: int = 100) -> Mock:
    proc = Mock()
    proc.info = {"name": name}
    proc.pid = pid
    return proc


class TestProcessLivenessChecker:
    """Test ProcessLivenessChecker.is_running."""

    @pytest.mark.asyncio
    async def test_running(self) -> None:
        processes = [fake_process("explorer.exe"), fake_process("OBS64.EXE")]
        with patch("obs_plugin_manager.host.liveness.psutil.process_iter", return_value=processes):
            assert await ProcessLivenessChecker().is_running() is True

    @pytest.mark.asyncio
    async def test_not_running(self) -> None:
        processes = [fake_process("explorer.exe"), fake_process(None)]
        with patch("obs_plugin_manager.host.liveness.psutil.process_iter", return_value=processes):
            assert await ProcessLivenessChecker().is_running() is False

    @pytest.mark.asyncio
    async def test_probe_failure_reports_not_running(self) -> None:
        """Test that a failing process scan is treated as not running."""
        with patch(
            "obs_plugin_manager.host.liveness.psutil.process_iter",
            side_effect=psutil.AccessDenied(),
        ):
            assert await ProcessLivenessChecker().is_running() is False

    @pytest.mark.asyncio
    async def test_custom_names(self) -> None:
        processes = [fake_process("obs-studio")]
        with patch("obs_plugin_manager.host.liveness.psutil.process_iter", return_value=processes):
            assert await ProcessLivenessChecker(["OBS-Studio"]).is_running() is True
