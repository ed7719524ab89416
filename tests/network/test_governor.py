"""Tests for the request governor."""

import asyncio
from pathlib import Path

import httpx
import pytest

from obs_plugin_manager.errors import (
    NetworkTransientError,
    NotFoundError,
    RateLimitError,
    UpstreamResponseError,
)
from obs_plugin_manager.network.cache import ResponseCache
from obs_plugin_manager.network.governor import (
    RequestGovernor,
    classify_response,
    classify_transport_error,
)

URL = "https://api.github.com/repos/owner/repo/releases/latest"


async def settle() -> None:
    """Let every runnable task advance."""
    for _ in range(10):
        await asyncio.sleep(0)


class TestClassification:
    """Test mapping of HTTP outcomes onto the error taxonomy."""

    @pytest.mark.parametrize("status", [403, 429])
    def test_rate_limit(self, status: int) -> None:
        error = classify_response(httpx.Response(status), URL)
        assert isinstance(error, RateLimitError)
        assert error.status_code == status

    def test_not_found(self) -> None:
        """Test that 404 means the repository has no releases."""
        error = classify_response(httpx.Response(404), URL)
        assert isinstance(error, NotFoundError)
        assert "not found" in str(error).lower()

    def test_server_error_is_transient(self) -> None:
        assert isinstance(classify_response(httpx.Response(502), URL), NetworkTransientError)

    def test_other_client_error(self) -> None:
        error = classify_response(httpx.Response(422), URL)
        assert isinstance(error, UpstreamResponseError)
        assert not isinstance(error, NetworkTransientError)

    def test_success(self) -> None:
        assert classify_response(httpx.Response(200), URL) is None

    def test_timeout_message(self) -> None:
        """Test that timeouts are transient and mention the URL."""
        error = classify_transport_error(httpx.ReadTimeout("slow"), URL)
        assert isinstance(error, NetworkTransientError)
        assert str(error).startswith("Request timed out")

    def test_connect_error_is_transient(self) -> None:
        error = classify_transport_error(httpx.ConnectError("refused"), URL)
        assert isinstance(error, NetworkTransientError)


class TestGovernorCache:
    """Test cache interplay."""

    @pytest.mark.asyncio
    async def test_fresh_cache_skips_network(self, github, make_governor) -> None:
        """Test that a second call within the TTL is served from cache."""
        github.json(URL, {"tag_name": "v1"})
        governor = make_governor()

        assert await governor.get(URL) == {"tag_name": "v1"}
        assert await governor.get(URL) == {"tag_name": "v1"}
        assert github.count(URL) == 1
        assert governor.stats.cached == 1

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, github, make_governor) -> None:
        """Test that an expired entry causes a new request."""
        now = [0.0]
        cache = ResponseCache(None, ttl=60, clock=lambda: now[0])
        github.json(URL, {"tag_name": "v1"})
        governor = make_governor(cache)

        await governor.get(URL)
        now[0] = 61.0
        await governor.get(URL)
        assert github.count(URL) == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, github, make_governor) -> None:
        github.status(URL, 404)
        governor = make_governor()

        with pytest.raises(NotFoundError):
            await governor.get(URL)
        assert governor.stats.cached == 0

    @pytest.mark.asyncio
    async def test_clear_cache(self, github, make_governor, tmp_path: Path) -> None:
        """Test that clearing forces a refetch and removes the file."""
        path = tmp_path / "cache.json"
        github.json(URL, {"tag_name": "v1"})
        governor = make_governor(ResponseCache(path))

        await governor.get(URL)
        assert path.exists()

        governor.clear_cache()
        assert not path.exists()

        await governor.get(URL)
        assert github.count(URL) == 2

    @pytest.mark.asyncio
    async def test_clear_expired_cache(self, github, make_governor) -> None:
        now = [0.0]
        github.json(URL, {"tag_name": "v1"})
        github.json(URL + "/latest", {"tag_name": "v2"})
        governor = make_governor(ResponseCache(None, ttl=60, clock=lambda: now[0]))

        await governor.get(URL)
        now[0] = 30.0
        await governor.get(URL + "/latest")
        now[0] = 61.0

        assert governor.clear_expired_cache() == 1
        assert len(governor.cache) == 1


class TestGovernorRetry:
    """Test retry and backoff."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, github, make_governor, recording_sleep) -> None:
        """Test three transient failures followed by success."""
        responses = [503, 503, 503, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            status = responses.pop(0)
            return httpx.Response(status, json={"tag_name": "v2"})

        github.route(URL, handler)
        governor = make_governor(max_retries=3, retry_delay=1.0)

        assert await governor.get(URL) == {"tag_name": "v2"}
        assert github.count(URL) == 4
        assert recording_sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, github, make_governor) -> None:
        """Test that a fourth failure surfaces the transient error."""
        github.status(URL, 503)
        governor = make_governor(max_retries=3)

        with pytest.raises(NetworkTransientError):
            await governor.get(URL)
        assert github.count(URL) == 4
        assert governor.stats.active == 0

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self, github, make_governor, recording_sleep) -> None:
        """Test that 403 fails immediately without backoff."""
        github.status(URL, 403)
        governor = make_governor()

        with pytest.raises(RateLimitError):
            await governor.get(URL)
        assert github.count(URL) == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_connect_error_retried(self, github, make_governor) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, json=[])

        github.route(URL, handler)
        governor = make_governor()

        assert await governor.get(URL) == []
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_invalid_json(self, github, make_governor) -> None:
        github.route(URL, lambda request: httpx.Response(200, content=b"<html>"))
        governor = make_governor()

        with pytest.raises(UpstreamResponseError):
            await governor.get(URL)


class TestGovernorConcurrency:
    """Test the concurrency cap and FIFO admission."""

    @pytest.mark.asyncio
    async def test_cap_and_fifo_order(self, github, make_governor) -> None:
        """Test that at most two requests run and waiters start in order."""
        gates = {}
        started = []

        async def handler(request: httpx.Request) -> httpx.Response:
            name = request.url.path.rsplit("/", 1)[-1]
            started.append(name)
            gate = gates.setdefault(name, asyncio.Event())
            await gate.wait()
            return httpx.Response(200, json={"name": name})

        urls = {name: f"https://api.github.com/repos/o/{name}" for name in "abcde"}
        for url in urls.values():
            github.route(url, handler)
        for name in "abcde":
            gates[name] = asyncio.Event()

        governor = make_governor(max_concurrent=2, request_delay=0)
        tasks = []
        for name in "abcde":
            tasks.append(asyncio.create_task(governor.get(urls[name])))
            await settle()

        assert started == ["a", "b"]
        assert governor.stats.active == 2
        assert governor.stats.queued == 3

        gates["b"].set()
        await settle()
        assert started == ["a", "b", "c"]
        assert governor.stats.active == 2

        gates["a"].set()
        await settle()
        assert started == ["a", "b", "c", "d"]

        for gate in gates.values():
            gate.set()
        results = await asyncio.gather(*tasks)

        assert [r["name"] for r in results] == list("abcde")
        assert started == list("abcde")
        assert governor.stats.active == 0
        assert governor.stats.queued == 0

    @pytest.mark.asyncio
    async def test_pacing_delay_when_others_active(self, github, make_governor, recording_sleep) -> None:
        """Test that the second concurrent request waits request_delay first."""
        release = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200, json={})

        github.route("https://api.github.com/a", slow)
        github.json("https://api.github.com/b", {})
        governor = make_governor(max_concurrent=2, request_delay=0.5)

        first = asyncio.create_task(governor.get("https://api.github.com/a"))
        await settle()
        await governor.get("https://api.github.com/b")
        release.set()
        await first

        assert recording_sleep.delays == [0.5]

    def test_invalid_max_concurrent(self) -> None:
        with pytest.raises(ValueError):
            RequestGovernor(ResponseCache(None), max_concurrent=0)


class TestStreamDownload:
    """Test binary downloads."""

    @pytest.mark.asyncio
    async def test_writes_file_and_reports_progress(self, github, make_governor, tmp_path: Path) -> None:
        url = "https://dl.test/v1/plugin.zip"
        data = b"x" * 5000
        github.content(url, data)
        governor = make_governor()
        progress = []

        dest = tmp_path / "plugin.zip"
        written = await governor.stream_download(url, dest, lambda done, total: progress.append((done, total)))

        assert written == len(data)
        assert dest.read_bytes() == data
        assert progress[-1] == (len(data), len(data))

    @pytest.mark.asyncio
    async def test_download_error_classified(self, github, make_governor, tmp_path: Path) -> None:
        github.status("https://dl.test/missing.zip", 404)
        governor = make_governor()

        with pytest.raises(NotFoundError):
            await governor.stream_download("https://dl.test/missing.zip", tmp_path / "x.zip")
