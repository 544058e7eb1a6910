"""Namespace commands -- inspect and clean the content store.

Provides the ``offlinecache namespaces`` sub-command group.  Every
namespace in the store is reported with its status relative to the
configured application:

* ``current`` -- the namespace of the configured version.
* ``stale`` -- same application prefix, any other version; removed by
  ``evict`` or the next activation.
* ``other`` -- belongs to a different application; never touched by
  eviction.
"""

from __future__ import annotations

import asyncio

import typer

from offlinecache.output import format_response, info, print_table, success

namespaces_app = typer.Typer(no_args_is_help=True)


def _status(name: str, app_name: str, current: str) -> str:
    from offlinecache.namespaces import stale_namespaces

    if name == current:
        return "current"
    if stale_namespaces([name], app_name, current):
        return "stale"
    return "other"


@namespaces_app.command("list")
def namespaces_list(ctx: typer.Context) -> None:
    """List every namespace in the store with its entry count and status.

    Example::

        offlinecache namespaces list
        offlinecache --json namespaces list
    """
    from offlinecache.namespaces import current_namespace
    from offlinecache.runtime import config_from_context
    from offlinecache.store import create_store

    config = config_from_context(ctx)
    current = current_namespace(config.app_name, config.version)

    async def _run() -> list[list[str]]:
        store = create_store(config)
        try:
            rows = []
            for name in await store.keys():
                handle = await store.open(name)
                count = len(await handle.requests())
                rows.append([name, str(count), _status(name, config.app_name, current)])
            return rows
        finally:
            await store.close()

    rows = asyncio.run(_run())
    if not rows:
        info("No cache namespaces.")
        return
    print_table(["namespace", "entries", "status"], rows, title="Cache namespaces")


@namespaces_app.command("show")
def namespaces_show(
    ctx: typer.Context,
    name: str = typer.Argument(None, help="Namespace to show (defaults to the current one)."),
) -> None:
    """List the requests stored in a namespace.

    Example::

        offlinecache namespaces show
        offlinecache namespaces show tasknet-0
    """
    from offlinecache.exceptions import InvalidUsageError
    from offlinecache.namespaces import current_namespace
    from offlinecache.runtime import config_from_context
    from offlinecache.store import create_store

    config = config_from_context(ctx)
    target = name or current_namespace(config.app_name, config.version)

    async def _run() -> list[list[str]]:
        store = create_store(config)
        try:
            if not await store.has(target):
                raise InvalidUsageError(f"Namespace '{target}' does not exist")
            handle = await store.open(target)
            return [[request.method, request.url] for request in await handle.requests()]
        finally:
            await store.close()

    print_table(["method", "url"], asyncio.run(_run()), title=target)


@namespaces_app.command("evict")
def namespaces_evict(ctx: typer.Context) -> None:
    """Delete every stale namespace of the configured application.

    Example::

        offlinecache namespaces evict
        offlinecache --app-version 3 namespaces evict
    """
    from offlinecache.namespaces import current_namespace, evict_stale
    from offlinecache.runtime import config_from_context
    from offlinecache.store import create_store

    config = config_from_context(ctx)
    current = current_namespace(config.app_name, config.version)

    async def _run() -> list[str]:
        store = create_store(config)
        try:
            return await evict_stale(store, config.app_name, current)
        finally:
            await store.close()

    deleted = asyncio.run(_run())
    format_response({"namespace": current, "evicted": deleted})


@namespaces_app.command("delete")
def namespaces_delete(
    ctx: typer.Context,
    name: str = typer.Argument(help="Namespace to delete."),
) -> None:
    """Delete one namespace, whatever application it belongs to.

    Asks for confirmation unless ``--force`` is active.

    Example::

        offlinecache --force namespaces delete other-app-5
    """
    from offlinecache.exceptions import InvalidUsageError
    from offlinecache.runtime import config_from_context
    from offlinecache.store import create_store

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        if not typer.confirm(f"Delete namespace '{name}'?"):
            info("Cancelled.")
            raise typer.Exit()

    config = config_from_context(ctx)

    async def _run() -> bool:
        store = create_store(config)
        try:
            return await store.delete(name)
        finally:
            await store.close()

    if not asyncio.run(_run()):
        raise InvalidUsageError(f"Namespace '{name}' does not exist")
    success(f"Deleted namespace {name}")
