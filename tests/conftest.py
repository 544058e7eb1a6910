"""Shared test fixtures for offlinecache.

Provides isolated config environments, output state management, scripted
network fetchers and content stores, and a CLI runner.  These fixtures
are automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import pytest

from offlinecache.client.fetcher import Fetcher
from offlinecache.exceptions import FetchError, StoreError
from offlinecache.models import Request, Response
from offlinecache.output import OutputFormat, OutputManager, reset_output, set_output
from offlinecache.store.memory import MemoryContentStore, MemoryNamespace


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config or the real content store. Clears all OFFLINECACHE_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("offlinecache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "OFFLINECACHE_APP_NAME",
        "OFFLINECACHE_VERSION",
        "OFFLINECACHE_STRATEGY",
        "OFFLINECACHE_BASE_URL",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Scripted network
# ---------------------------------------------------------------------------


class Route:
    """Canned network behaviour for one URL."""

    def __init__(
        self,
        body: bytes = b"",
        status: int = 200,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.body = body
        self.status = status
        self.delay = delay
        self.error = error
        self.gate = gate


class FakeFetcher(Fetcher):
    """In-memory :class:`Fetcher` answering from registered routes.

    Unknown URLs fail like an unreachable host.  ``calls`` records every
    request in issue order.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.calls: list[Request] = []

    def add(self, url: str, body: bytes = b"", **kwargs) -> Route:
        route = Route(body, **kwargs)
        self.routes[url] = route
        return route

    def fail(self, url: str, message: str = "connection refused", **kwargs) -> Route:
        return self.add(url, error=FetchError(f"{url}: {message}"), **kwargs)

    async def fetch(self, request: Request) -> Response:
        self.calls.append(request)
        route = self.routes.get(request.url)
        if route is None:
            raise FetchError(f"{request.url}: no route to host")
        if route.gate is not None:
            await route.gate.wait()
        if route.delay:
            await asyncio.sleep(route.delay)
        if route.error is not None:
            raise route.error
        return Response(
            status_code=route.status,
            reason_phrase="OK" if route.status < 400 else "Error",
            headers={"Content-Type": "text/html"},
            content=route.body,
            url=request.url,
        )


@pytest.fixture
def fetcher() -> FakeFetcher:
    """A scripted fetcher with no routes; every request fails until one is added."""
    return FakeFetcher()


# ---------------------------------------------------------------------------
# Scripted content stores
# ---------------------------------------------------------------------------


class SlowNamespace(MemoryNamespace):
    """Memory namespace whose lookups take ``lookup_delay`` seconds."""

    lookup_delay = 0.0

    async def _get(self, key: str) -> Optional[Response]:
        await asyncio.sleep(self.lookup_delay)
        return await super()._get(key)


class SlowMemoryStore(MemoryContentStore):
    namespace_class = SlowNamespace

    def __init__(self, lookup_delay: float = 0.0) -> None:
        super().__init__()
        self.lookup_delay = lookup_delay

    async def open(self, namespace: str) -> SlowNamespace:
        handle = await super().open(namespace)
        handle.lookup_delay = self.lookup_delay
        return handle


class BrokenNamespace(MemoryNamespace):
    """Memory namespace whose reads and writes fail."""

    async def _get(self, key: str) -> Optional[Response]:
        raise StoreError("disk I/O error")

    async def _set(self, key: str, request: Request, response: Response) -> None:
        raise StoreError("disk full")


class BrokenMemoryStore(MemoryContentStore):
    namespace_class = BrokenNamespace


class FlakyDeleteStore(MemoryContentStore):
    """Memory store whose deletion of the names in ``failing`` raises."""

    def __init__(self, failing: set[str]) -> None:
        super().__init__()
        self.failing = failing

    async def delete(self, namespace: str) -> bool:
        if namespace in self.failing:
            raise StoreError(f"cannot delete {namespace}")
        return await super().delete(namespace)


@pytest.fixture
def store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture
def slow_store():
    """Factory for a memory store whose lookups take the given number of seconds."""
    return SlowMemoryStore


@pytest.fixture
def broken_store() -> BrokenMemoryStore:
    """A memory store whose namespaces fail every read and write."""
    return BrokenMemoryStore()


@pytest.fixture
def flaky_delete_store():
    """Factory for a memory store failing to delete the given namespaces."""
    return FlakyDeleteStore


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner with the built-in commands registered."""
    from typer.testing import CliRunner

    from offlinecache.app import register_commands

    register_commands()
    return CliRunner()
