"""In-process content store backed by plain dictionaries.

Nothing survives the process; useful for short-lived runtimes and tests.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from offlinecache.models import Request, Response
from offlinecache.store.base import ContentStore, NamespaceHandle


class MemoryNamespace(NamespaceHandle):
    def __init__(self, name: str, vary: Optional[list[str]] = None) -> None:
        super().__init__(name, vary)
        self._entries: dict[str, tuple[Request, Response]] = {}

    async def requests(self) -> list[Request]:
        await asyncio.sleep(0)
        return [request for request, _ in self._entries.values()]

    async def delete(self, request: Request) -> bool:
        await asyncio.sleep(0)
        return self._entries.pop(self.key_for(request), None) is not None

    async def _get(self, key: str) -> Optional[Response]:
        await asyncio.sleep(0)
        entry = self._entries.get(key)
        return entry[1].duplicate() if entry is not None else None

    async def _set(self, key: str, request: Request, response: Response) -> None:
        await asyncio.sleep(0)
        self._entries[key] = (request, response)


class MemoryContentStore(ContentStore):
    """Dictionary-backed :class:`~offlinecache.store.base.ContentStore`.

    Every operation yields to the event loop once so callers observe the
    same suspension points as with the disk backend.

    Example::

        store = MemoryContentStore()
        handle = await store.open("tasknet-0")
        await handle.put(Request(url="/index.html"), Response(content=b"<html>"))
    """

    namespace_class: type[MemoryNamespace] = MemoryNamespace

    def __init__(self, vary: Optional[list[str]] = None) -> None:
        super().__init__(vary)
        self._namespaces: dict[str, MemoryNamespace] = {}

    async def open(self, namespace: str) -> MemoryNamespace:
        await asyncio.sleep(0)
        handle = self._namespaces.get(namespace)
        if handle is None:
            handle = self.namespace_class(namespace, self._vary)
            self._namespaces[namespace] = handle
        return handle

    async def has(self, namespace: str) -> bool:
        await asyncio.sleep(0)
        return namespace in self._namespaces

    async def delete(self, namespace: str) -> bool:
        await asyncio.sleep(0)
        return self._namespaces.pop(namespace, None) is not None

    async def keys(self) -> list[str]:
        await asyncio.sleep(0)
        return sorted(self._namespaces)
