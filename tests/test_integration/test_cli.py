"""End-to-end tests of the offlinecache CLI.

The network is an httpx.MockTransport serving a small site; the content
store is the real disk backend inside an isolated XDG cache directory.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import httpx
import pytest

from offlinecache.app import app, main
from offlinecache.client.fetcher import HttpFetcher

PAGES = {
    "/index.html": b"<h1>Tasks</h1>",
    "/app.js": b"console.log('tasks')",
    "/auth/login": b"<form>login</form>",
    "/about.html": b"<h1>About</h1>",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Site:
    """A fake origin that can be taken offline."""

    def __init__(self) -> None:
        self.pages = dict(PAGES)
        self.online = True
        self.hits: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if not self.online:
            raise httpx.ConnectError("network unreachable", request=request)
        self.hits.append(request.url.path)
        body = self.pages.get(request.url.path)
        if body is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(200, headers={"content-type": "text/html"}, content=body)


@pytest.fixture
def site(isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> _Site:
    """Project config for tasknet version 1 plus a mock origin behind every fetcher."""
    fake = _Site()

    def _fetcher(config, transport=None):
        return HttpFetcher(config, transport=httpx.MockTransport(fake.handler))

    monkeypatch.setattr("offlinecache.runtime.HttpFetcher", _fetcher)
    (isolated_config / "offlinecache.json").write_text(
        json.dumps(
            {
                "app_name": "tasknet",
                "version": "1",
                "content": ["/index.html", "/app.js"],
                "network": {"base_url": "https://app.example.com"},
            }
        ),
        encoding="utf-8",
    )
    return fake


def _invoke(cli_runner, *args: str):
    return cli_runner.invoke(app, ["--quiet", *args])


def _json(cli_runner, *args: str):
    result = _invoke(cli_runner, "--json", *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def _exit_code(monkeypatch: pytest.MonkeyPatch, *args: str) -> int:
    """Run the console-script entry point and return its exit code."""
    monkeypatch.setattr("offlinecache.app._setup_signal_handlers", lambda: None)
    monkeypatch.setattr(sys, "argv", ["offlinecache", "--quiet", *args])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


# ---------------------------------------------------------------------------
# install / activate
# ---------------------------------------------------------------------------


class TestInstall:
    def test_install_seeds_current_namespace(self, cli_runner, site: _Site) -> None:
        report = _json(cli_runner, "install")
        assert report == {
            "namespace": "tasknet-1",
            "seeded": ["/index.html", "/app.js"],
            "evicted": [],
        }
        assert sorted(site.hits) == ["/app.js", "/index.html"]

    def test_upgrade_evicts_previous_version(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        report = _json(cli_runner, "--app-version", "2", "install")
        assert report["evicted"] == ["tasknet-1"]

        listing = _json(cli_runner, "--app-version", "2", "namespaces", "list")
        assert listing == [{"namespace": "tasknet-2", "entries": "2", "status": "current"}]

    def test_failed_install_exits_with_lifecycle_code(
        self, cli_runner, site: _Site, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        del site.pages["/app.js"]
        assert _exit_code(monkeypatch, "install") == 3

    def test_activate_requires_install(
        self, cli_runner, site: _Site, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        assert _exit_code(monkeypatch, "activate") == 3

    def test_activate_installed_version(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        assert _json(cli_runner, "activate") == {"namespace": "tasknet-1", "evicted": []}


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


class TestFetch:
    def test_first_fetch_installs_and_serves(self, cli_runner, site: _Site) -> None:
        result = _invoke(cli_runner, "fetch", "/index.html")
        assert result.exit_code == 0, result.output
        assert result.stdout == "<h1>Tasks</h1>"

    def test_cached_page_is_served_offline(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        site.online = False

        result = _invoke(cli_runner, "fetch", "/index.html")
        assert result.exit_code == 0, result.output
        assert result.stdout == "<h1>Tasks</h1>"

    def test_race_strategy_serves_cached_page_offline(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        site.online = False

        result = _invoke(cli_runner, "--strategy", "race", "fetch", "/app.js")
        assert result.exit_code == 0, result.output
        assert result.stdout == "console.log('tasks')"

    def test_uncached_page_offline_is_unavailable(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        site.online = False

        result = _invoke(cli_runner, "fetch", "/about.html")
        assert result.exit_code == 5
        assert result.stdout == "<h1>Service Unavailable</h1>"

    def test_fetched_page_is_cached_for_later(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        assert _invoke(cli_runner, "fetch", "/about.html").exit_code == 0

        site.online = False
        result = _invoke(cli_runner, "fetch", "/about.html")
        assert result.stdout == "<h1>About</h1>"

    def test_excluded_path_bypasses_the_cache(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        result = _invoke(cli_runner, "fetch", "/auth/login")
        assert result.stdout == "<form>login</form>"

        stored = _json(cli_runner, "namespaces", "show")
        assert "/auth/login" not in [row["url"] for row in stored]
        assert "/auth/login" in site.hits

    def test_offline_first_run_cannot_start(
        self, cli_runner, site: _Site, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        site.online = False
        assert _exit_code(monkeypatch, "fetch", "/index.html") == 3

    def test_invalid_header(
        self, cli_runner, site: _Site, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        assert _exit_code(monkeypatch, "fetch", "/index.html", "-H", "no-colon") == 2


# ---------------------------------------------------------------------------
# namespaces
# ---------------------------------------------------------------------------


class TestNamespaces:
    def test_list_reports_status(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "--app-version", "0", "install")
        _json(cli_runner, "--app", "other-app", "--app-version", "5", "install")

        listing = _json(cli_runner, "namespaces", "list")
        assert listing == [
            {"namespace": "other-app-5", "entries": "2", "status": "other"},
            {"namespace": "tasknet-0", "entries": "2", "status": "stale"},
        ]

    def test_evict(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "--app-version", "0", "install")
        assert _json(cli_runner, "namespaces", "evict") == {
            "namespace": "tasknet-1",
            "evicted": ["tasknet-0"],
        }
        assert _json(cli_runner, "namespaces", "evict")["evicted"] == []

    def test_show_current(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        rows = _json(cli_runner, "namespaces", "show")
        assert sorted(row["url"] for row in rows) == ["/app.js", "/index.html"]
        assert {row["method"] for row in rows} == {"GET"}

    def test_show_missing(self, site: _Site, monkeypatch: pytest.MonkeyPatch) -> None:
        assert _exit_code(monkeypatch, "namespaces", "show", "tasknet-9") == 2

    def test_delete(self, cli_runner, site: _Site) -> None:
        _json(cli_runner, "install")
        result = _invoke(cli_runner, "--force", "namespaces", "delete", "tasknet-1")
        assert result.exit_code == 0, result.output
        assert _json(cli_runner, "namespaces", "list") == []

    def test_delete_missing(self, site: _Site, monkeypatch: pytest.MonkeyPatch) -> None:
        assert _exit_code(monkeypatch, "--force", "namespaces", "delete", "tasknet-9") == 2


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_set_and_show(self, cli_runner, isolated_config: Path) -> None:
        assert _invoke(cli_runner, "config", "set", "strategy", "race").exit_code == 0
        assert _invoke(cli_runner, "config", "set", "network.max_retries", "2").exit_code == 0
        assert (
            _invoke(cli_runner, "config", "set", "content", "index.html, app.js").exit_code == 0
        )

        shown = _json(cli_runner, "config", "show")
        assert shown["strategy"] == "race"
        assert shown["network"]["max_retries"] == 2
        assert shown["content"] == ["index.html", "app.js"]

    def test_flags_override_saved_config(self, cli_runner, isolated_config: Path) -> None:
        _invoke(cli_runner, "config", "set", "version", "4")
        assert _json(cli_runner, "--app-version", "5", "config", "show")["version"] == "5"

    @pytest.mark.parametrize(
        "key, value",
        [
            ("nonexistent", "x"),
            ("network.nonexistent", "x"),
            ("network.max_retries", "many"),
            ("strategy", "network_only"),
        ],
    )
    def test_set_rejects_invalid(self, cli_runner, isolated_config: Path, key, value) -> None:
        assert _invoke(cli_runner, "config", "set", key, value).exit_code == 2

    def test_reset(self, cli_runner, isolated_config: Path) -> None:
        _invoke(cli_runner, "config", "set", "version", "4")
        assert _invoke(cli_runner, "--force", "config", "reset").exit_code == 0
        assert _json(cli_runner, "config", "show")["version"] == "0"


def test_version_flag(cli_runner) -> None:
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.startswith("offlinecache ")
