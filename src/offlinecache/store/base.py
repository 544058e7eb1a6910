"""Abstract interfaces of the content store.

The content store is an async key-value store of
:class:`~offlinecache.models.Request` to
:class:`~offlinecache.models.Response`, partitioned into named
namespaces (one per application version).  Two types make up the
interface:

- :class:`ContentStore` -- enumerates, opens, and deletes namespaces.
- :class:`NamespaceHandle` -- reads and writes entries inside one opened
  namespace.

Only ``GET`` requests are stored or matched; lookups for any other method
miss and writes for them raise :class:`~offlinecache.exceptions.StoreError`.
Concurrent writes to the same key are last-write-wins.

See Also:
    :mod:`offlinecache.store.disk` and :mod:`offlinecache.store.memory`
    for the concrete backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from offlinecache.exceptions import StoreError
from offlinecache.models import Request, Response


class NamespaceHandle(ABC):
    """An opened namespace of a :class:`ContentStore`.

    Args:
        name: The namespace name (``{app_name}-{version}``).
        vary: Request headers that take part in cache identity.
    """

    def __init__(self, name: str, vary: Optional[list[str]] = None) -> None:
        self.name = name
        self._vary = list(vary or [])

    def key_for(self, request: Request) -> str:
        """Return the storage key for *request* within this namespace."""
        return request.cache_key(self._vary)

    async def match(self, request: Request) -> Optional[Response]:
        """Return the stored response for *request*, or ``None`` on a miss."""
        if not request.is_cacheable:
            return None
        return await self._get(self.key_for(request))

    async def put(self, request: Request, response: Response) -> None:
        """Store *response* under *request*, replacing any existing entry.

        Raises:
            StoreError: If the request is not a ``GET`` or the write fails.
        """
        if not request.is_cacheable:
            raise StoreError(f"Cannot cache {request.method} request for {request.url}")
        await self._set(self.key_for(request), request, response)

    @abstractmethod
    async def requests(self) -> list[Request]:
        """Return the requests currently stored in this namespace."""

    @abstractmethod
    async def delete(self, request: Request) -> bool:
        """Remove the entry for *request*.  Returns whether one existed."""

    @abstractmethod
    async def _get(self, key: str) -> Optional[Response]:
        """Backend lookup by storage key."""

    @abstractmethod
    async def _set(self, key: str, request: Request, response: Response) -> None:
        """Backend write by storage key."""


class ContentStore(ABC):
    """Namespaced async content store.

    Concrete stores implement :meth:`open`, :meth:`has`, :meth:`delete`,
    and :meth:`keys`; :meth:`close` releases any backend resources.
    """

    def __init__(self, vary: Optional[list[str]] = None) -> None:
        self._vary = list(vary or [])

    @abstractmethod
    async def open(self, namespace: str) -> NamespaceHandle:
        """Open *namespace*, creating it when it does not exist yet."""

    @abstractmethod
    async def has(self, namespace: str) -> bool:
        """Return whether *namespace* exists."""

    @abstractmethod
    async def delete(self, namespace: str) -> bool:
        """Delete *namespace* and every entry in it.  Returns whether it existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return the names of all existing namespaces, sorted."""

    async def close(self) -> None:
        """Release backend resources.  The default does nothing."""
