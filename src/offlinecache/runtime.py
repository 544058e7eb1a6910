"""Assembly of a running worker from resolved configuration.

:func:`open_worker` wires a content store, an :class:`HttpFetcher`, a
:class:`~offlinecache.lifecycle.LifecycleController`, and a
:class:`~offlinecache.host.LifecycleHost` together for one CLI
invocation, and tears them down (draining background work first) when the
block exits.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
import typer

from offlinecache.client.fetcher import HttpFetcher
from offlinecache.config import resolve_config, resolve_content
from offlinecache.host import LifecycleHost
from offlinecache.lifecycle import LifecycleController
from offlinecache.models import WorkerConfig
from offlinecache.store import ContentStore, create_store


class Worker:
    """The components of one running worker."""

    def __init__(
        self,
        config: WorkerConfig,
        store: ContentStore,
        fetcher: HttpFetcher,
        controller: LifecycleController,
        host: LifecycleHost,
    ) -> None:
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.controller = controller
        self.host = host


def config_from_context(ctx: typer.Context) -> WorkerConfig:
    """Resolve the effective configuration using the root CLI flags in ``ctx.obj``."""
    obj: dict[str, Any] = ctx.obj or {}
    return resolve_config(
        cli_app_name=obj.get("app_name"),
        cli_version=obj.get("app_version"),
        cli_strategy=obj.get("strategy"),
        cli_base_url=obj.get("base_url"),
    )


@asynccontextmanager
async def open_worker(
    config: WorkerConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[Worker]:
    """Build a :class:`Worker` for *config* and release it afterwards.

    Args:
        config: Resolved worker configuration.
        transport: Optional :mod:`httpx` transport for the fetcher.
    """
    content = resolve_content(config)
    store = create_store(config)
    try:
        async with HttpFetcher(config.network, transport=transport) as fetcher:
            controller = LifecycleController(config, store, fetcher, content=content)
            host = LifecycleHost(fetcher)
            controller.register(host)
            try:
                yield Worker(config, store, fetcher, controller, host)
            finally:
                await controller.close()
    finally:
        await store.close()
