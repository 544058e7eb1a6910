"""Disk-backed content store built on :mod:`diskcache`.

Each namespace is a :class:`diskcache.Cache` living in its own
sub-directory of the store root, so deleting a namespace is a directory
removal and enumerating namespaces is a directory listing::

    <root>/
        tasknet-0/      cache.db + value files
        tasknet-1/

Entries are stored under the SHA-256 key produced by
:meth:`~offlinecache.models.Request.cache_key` as a dict with ``request``
and ``response`` keys.  No expiry is set: entries live exactly as long as
their namespace.

:mod:`diskcache` is synchronous, so every call runs in a worker thread via
:func:`asyncio.to_thread`; failures surface as
:class:`~offlinecache.exceptions.StoreError`.
"""

from __future__ import annotations

import asyncio
import shutil
import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import diskcache
from pydantic import ValidationError

from offlinecache.exceptions import StoreError
from offlinecache.models import Request, Response
from offlinecache.store.base import ContentStore, NamespaceHandle

T = TypeVar("T")

_BACKEND_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


async def _run(description: str, func: Callable[..., T], *args: Any) -> T:
    """Run a blocking diskcache call off the event loop, mapping backend errors."""
    try:
        return await asyncio.to_thread(func, *args)
    except _BACKEND_ERRORS as exc:
        raise StoreError(f"Failed to {description}: {exc}") from exc


def _validate_namespace(name: str) -> str:
    if not name or name in (".", "..") or name.startswith("."):
        raise StoreError(f"Invalid namespace name: {name!r}")
    if "/" in name or "\\" in name or "\x00" in name:
        raise StoreError(f"Invalid namespace name: {name!r}")
    return name


class DiskNamespace(NamespaceHandle):
    """A namespace stored in one :class:`diskcache.Cache` directory."""

    def __init__(self, name: str, cache: diskcache.Cache, vary: Optional[list[str]] = None) -> None:
        super().__init__(name, vary)
        self._cache = cache

    async def requests(self) -> list[Request]:
        def _collect() -> list[Request]:
            found = []
            for key in list(self._cache.iterkeys()):
                entry = self._cache.get(key)
                if entry is not None:
                    found.append(Request.model_validate(entry["request"]))
            return found

        return await _run(f"list entries of {self.name}", _collect)

    async def delete(self, request: Request) -> bool:
        return await _run(
            f"delete {request.url} from {self.name}", self._cache.delete, self.key_for(request)
        )

    async def _get(self, key: str) -> Optional[Response]:
        entry = await _run(f"read from {self.name}", self._cache.get, key)
        if entry is None:
            return None
        try:
            return Response.model_validate(entry["response"])
        except (KeyError, TypeError, ValidationError) as exc:
            raise StoreError(f"Corrupt entry in {self.name}: {exc}") from exc

    async def _set(self, key: str, request: Request, response: Response) -> None:
        entry = {"request": request.model_dump(), "response": response.model_dump()}
        await _run(f"write {request.url} to {self.name}", self._cache.set, key, entry)


class DiskContentStore(ContentStore):
    """:class:`~offlinecache.store.base.ContentStore` persisted under a root directory.

    Args:
        root: Store root directory; created when missing.
        vary: Request headers that take part in cache identity.

    Example::

        store = DiskContentStore("/tmp/offlinecache")
        handle = await store.open("tasknet-0")
        hit = await handle.match(Request(url="https://app.example.com/index.html"))
    """

    def __init__(self, root: str | Path, vary: Optional[list[str]] = None) -> None:
        super().__init__(vary)
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._open: dict[str, diskcache.Cache] = {}

    @property
    def root(self) -> Path:
        return self._root

    async def open(self, namespace: str) -> DiskNamespace:
        _validate_namespace(namespace)
        cache = self._open.get(namespace)
        if cache is None:
            opened = await _run(
                f"open namespace {namespace}", diskcache.Cache, str(self._root / namespace)
            )
            # A concurrent open of the same namespace may have finished first.
            cache = self._open.setdefault(namespace, opened)
            if cache is not opened:
                opened.close()
        return DiskNamespace(namespace, cache, self._vary)

    async def has(self, namespace: str) -> bool:
        _validate_namespace(namespace)
        return await _run(f"check namespace {namespace}", (self._root / namespace).is_dir)

    async def delete(self, namespace: str) -> bool:
        _validate_namespace(namespace)
        cache = self._open.pop(namespace, None)
        if cache is not None:
            cache.close()
        path = self._root / namespace

        def _remove() -> bool:
            if not path.is_dir():
                return False
            shutil.rmtree(path)
            return True

        return await _run(f"delete namespace {namespace}", _remove)

    async def keys(self) -> list[str]:
        def _list() -> list[str]:
            return sorted(
                p.name for p in self._root.iterdir() if p.is_dir() and not p.name.startswith(".")
            )

        return await _run("list namespaces", _list)

    async def close(self) -> None:
        """Close every opened :class:`diskcache.Cache`."""
        while self._open:
            _, cache = self._open.popitem()
            cache.close()
