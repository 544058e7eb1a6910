"""Namespace naming and stale namespace eviction.

A namespace is the content store partition of one application version,
named ``{app_name}-{version}``.  Exactly one namespace is current; every
other namespace whose name starts with ``app_name`` is stale and is
reclaimed when the current version activates.

Stale detection is a plain prefix match on the application name, so an
unrelated namespace such as ``tasknet-extra-1`` is also treated as stale
for ``app_name="tasknet"``.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Optional

from offlinecache.output import info, warning
from offlinecache.store.base import ContentStore

EvictionErrorHandler = Callable[[str, BaseException], None]


def current_namespace(app_name: str, version: str) -> str:
    """Return the namespace name for *app_name* at *version*."""
    return f"{app_name}-{version}"


def stale_namespaces(names: Iterable[str], app_name: str, current: str) -> list[str]:
    """Filter *names* down to those eligible for eviction, preserving order."""
    return [name for name in names if name.startswith(app_name) and name != current]


def _report_eviction_error(namespace: str, exc: BaseException) -> None:
    warning(f"Failed to delete cache namespace {namespace}: {exc}")


async def evict_stale(
    store: ContentStore,
    app_name: str,
    current: str,
    on_error: Optional[EvictionErrorHandler] = None,
) -> list[str]:
    """Delete every stale namespace of *app_name* from *store*.

    Deletions run concurrently and independently: one failing deletion is
    reported through *on_error* and leaves its namespace for the next
    activation, without aborting its siblings.  Calling this twice in a
    row deletes nothing the second time.

    Args:
        store: The content store to clean.
        app_name: Application prefix scoping the eviction.
        current: The namespace to keep.
        on_error: Called as ``on_error(namespace, exc)`` for each failed
            deletion.  Defaults to a warning diagnostic.

    Returns:
        The namespaces actually deleted, in listing order.

    Raises:
        StoreError: If the namespaces cannot be enumerated.
    """
    report = on_error or _report_eviction_error
    candidates = stale_namespaces(await store.keys(), app_name, current)

    async def _delete(name: str) -> bool:
        info(f"Deleting cache namespace {name}")
        return await store.delete(name)

    results = await asyncio.gather(*(_delete(name) for name in candidates), return_exceptions=True)

    deleted: list[str] = []
    for name, result in zip(candidates, results):
        if isinstance(result, Exception):
            report(name, result)
        elif isinstance(result, BaseException):
            raise result
        elif result:
            deleted.append(name)
    return deleted
