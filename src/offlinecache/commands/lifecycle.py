"""Lifecycle commands -- install and activate the current application version.

``offlinecache install`` seeds the current namespace from the content
list and then activates it, evicting the namespaces of older versions.
``offlinecache activate`` re-runs eviction for a version that is already
installed.
"""

from __future__ import annotations

import asyncio

import typer

from offlinecache.output import format_response


def install_command(ctx: typer.Context) -> None:
    """Install and activate the current version.

    Fetches every path of the content list, stores the responses in the
    ``{app}-{version}`` namespace, then deletes the namespaces of every
    other version of the application.  Nothing is stored when any path
    fails to fetch.

    Example::

        offlinecache install
        offlinecache --app-version 2 install
    """
    from offlinecache.runtime import config_from_context, open_worker

    config = config_from_context(ctx)

    async def _run() -> dict:
        async with open_worker(config) as worker:
            seeded = await worker.controller.install()
            evicted = await worker.controller.activate()
            return {
                "namespace": worker.controller.namespace,
                "seeded": seeded,
                "evicted": evicted,
            }

    format_response(asyncio.run(_run()))


def activate_command(ctx: typer.Context) -> None:
    """Evict stale namespaces for the installed current version.

    Raises:
        LifecycleError: If the current version has not been installed.

    Example::

        offlinecache activate
    """
    from offlinecache.exceptions import LifecycleError
    from offlinecache.runtime import config_from_context, open_worker

    config = config_from_context(ctx)

    async def _run() -> dict:
        async with open_worker(config) as worker:
            if not await worker.controller.resume():
                raise LifecycleError(
                    f"Namespace {worker.controller.namespace} is not installed; "
                    "run 'offlinecache install' first"
                )
            evicted = await worker.controller.activate()
            return {"namespace": worker.controller.namespace, "evicted": evicted}

    format_response(asyncio.run(_run()))
