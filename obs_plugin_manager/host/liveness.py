"""Detect whether OBS Studio is running."""

import asyncio
import logging
from typing import Iterable, Protocol

import psutil

logger = logging.getLogger(__name__)

OBS_PROCESS_NAMES = ("obs64.exe", "obs.exe", "obs")


class LivenessChecker(Protocol):
    """Reports whether the host application is running."""

    async def is_running(self) -> bool:
        ...


class ProcessLivenessChecker:
    """Scans the process table for OBS executables.

    Process lookup failures are logged and reported as "not running".
    """

    def __init__(self, process_names: Iterable[str] = OBS_PROCESS_NAMES) -> None:
        self.process_names = frozenset(name.lower() for name in process_names)

    def _scan(self) -> bool:
        for proc in psutil.process_iter(["name"]):
            name = (proc.info.get("name") or "").lower()
            if name in self.process_names:
                logger.debug("Found OBS process %s (pid %s)", name, proc.pid)
                return True
        return False

    async def is_running(self) -> bool:
        try:
            return await asyncio.to_thread(self._scan)
        except (psutil.Error, OSError) as e:
            logger.error("Error checking if OBS is running: %s", e)
            return False
