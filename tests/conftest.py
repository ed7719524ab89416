"""Shared fixtures: a fake OBS installation, ZIP builders and a mock GitHub."""

import asyncio
import io
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from obs_plugin_manager.config import HostConfig
from obs_plugin_manager.network.cache import ResponseCache
from obs_plugin_manager.network.governor import RequestGovernor

API = "https://api.github.com"


class RecordingSleep:
    """Awaitable sleep replacement that records delays and only yields."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeGitHub:
    """Route table for httpx.MockTransport.

    Routes map a URL to a callable or to a fixed response. Every request is
    recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Any] = {}
        self.calls: List[str] = []

    def json(self, url: str, payload: Any, status: int = 200) -> None:
        self.routes[url] = lambda request: httpx.Response(status, json=payload)

    def status(self, url: str, status: int) -> None:
        self.routes[url] = lambda request: httpx.Response(status, json={"message": "error"})

    def content(self, url: str, data: bytes) -> None:
        self.routes[url] = lambda request: httpx.Response(200, content=data)

    def route(self, url: str, handler: Callable[[httpx.Request], Any]) -> None:
        self.routes[url] = handler

    def count(self, url: str) -> int:
        return self.calls.count(url)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url.copy_with(query=None))
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        result = route(request)
        if asyncio.iscoroutine(result):
            result = await result
        return result


def release_payload(tag: str, asset_names: List[str], base: str = "https://dl.test") -> Dict[str, Any]:
    """A GitHub release object with the given asset names."""
    return {
        "tag_name": tag,
        "name": f"Release {tag}",
        "published_at": "2024-05-01T10:00:00Z",
        "assets": [
            {
                "name": name,
                "browser_download_url": f"{base}/{tag}/{name}",
                "size": 1024,
            }
            for name in asset_names
        ],
    }


def zip_bytes(files: Dict[str, bytes]) -> bytes:
    """Build a ZIP archive in memory from relative paths to contents."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def corrupt_deflate_zip(name: str, data: bytes) -> bytes:
    """A ZIP whose single deflated member has an invalid block type.

    The directory is intact, so the archive opens; reading the member fails
    inside zlib.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(name, data)
    raw = bytearray(buffer.getvalue())
    info = zipfile.ZipFile(io.BytesIO(bytes(raw))).infolist()[0]
    name_len = int.from_bytes(raw[info.header_offset + 26:info.header_offset + 28], "little")
    extra_len = int.from_bytes(raw[info.header_offset + 28:info.header_offset + 30], "little")
    start = info.header_offset + 30 + name_len + extra_len
    raw[start:start + info.compress_size] = b"\xff" * info.compress_size
    return bytes(raw)


def encrypted_flag_zip(files: Dict[str, bytes]) -> bytes:
    """A ZIP whose members are all marked as password protected."""
    raw = bytearray(zip_bytes(files))
    # General purpose flags: offset 6 in local headers, 8 in central directory
    for signature, flags_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = raw.find(signature)
        while start != -1:
            raw[start + flags_offset] |= 0x01
            start = raw.find(signature, start + 4)
    return bytes(raw)


def directory_snapshot(path: Path) -> List[str]:
    """Sorted relative paths of all files under ``path`` (empty if missing)."""
    if not path.exists():
        return []
    return sorted(p.relative_to(path).as_posix() for p in path.rglob("*") if p.is_file())


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_governor(github: FakeGitHub, recording_sleep: RecordingSleep):
    """Factory for governors talking to the fake GitHub."""
    def _make(
        cache: Optional[ResponseCache] = None,
        **kwargs: Any,
    ) -> RequestGovernor:
        client = httpx.AsyncClient(transport=httpx.MockTransport(github.handler))
        kwargs.setdefault("sleep", recording_sleep)
        return RequestGovernor(cache if cache is not None else ResponseCache(None), client, **kwargs)

    return _make


@pytest.fixture
def host_config(tmp_path: Path) -> HostConfig:
    """User plugin locations inside the test directory."""
    appdata = tmp_path / "appdata" / "obs-studio"
    return HostConfig(
        user_plugins_dir=appdata / "plugins",
        user_plugin_config_dir=appdata / "plugin_config",
    )


@pytest.fixture
def obs_host(tmp_path: Path) -> Path:
    """A minimal valid OBS Studio installation."""
    host = tmp_path / "obs-studio"
    (host / "bin" / "64bit").mkdir(parents=True)
    (host / "bin" / "64bit" / "obs64.exe").write_bytes(b"MZ")
    (host / "obs-plugins" / "64bit").mkdir(parents=True)
    (host / "data" / "obs-plugins").mkdir(parents=True)
    return host
