"""Resolution strategies -- how cache lookup and network fetch combine into one response.

Two interchangeable strategies share the :class:`ResolutionStrategy`
interface:

* :class:`CacheFirstStrategy` (``cache_first``, the default) -- answer from
  the cache when it has the entry and refresh it from the network in the
  background; otherwise wait for the network, and fall back to a
  synthesized ``503 Service Unavailable`` page when the network fails.
  Requests whose path matches the excluded pattern are not intercepted.
* :class:`RaceStrategy` (``race``) -- run the cache lookup and the network
  fetch side by side and return whichever produces a usable response
  first.  A cache miss never wins.

Both strategies fill the cache after every successful network fetch with
a :meth:`~offlinecache.models.Response.duplicate` of the response, and
neither lets a store failure fail the request.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from typing import Optional

from offlinecache.client.fetcher import Fetcher
from offlinecache.exceptions import ConfigError, FetchError, StoreError
from offlinecache.models import Request, Response, StrategyName
from offlinecache.output import debug, info, warning
from offlinecache.policy.race import BackgroundTasks, first_successful
from offlinecache.store.base import ContentStore

UNAVAILABLE_STATUS = 503
UNAVAILABLE_REASON = "Service Unavailable"
UNAVAILABLE_BODY = b"<h1>Service Unavailable</h1>"


def unavailable_response() -> Response:
    """Build the response served when neither cache nor network can answer."""
    return Response(
        status_code=UNAVAILABLE_STATUS,
        reason_phrase=UNAVAILABLE_REASON,
        headers={"Content-Type": "text/html"},
        content=UNAVAILABLE_BODY,
    )


class ResolutionStrategy(ABC):
    """Produces exactly one response for a request, filling the cache on the way.

    Args:
        store: Content store holding the namespace.
        namespace: Name of the current namespace.
        fetcher: Network request issuer.
        background: Sink owning detached work (background refreshes,
            losing race branches).  A private sink is created when omitted.
    """

    name: StrategyName

    def __init__(
        self,
        store: ContentStore,
        namespace: str,
        fetcher: Fetcher,
        background: Optional[BackgroundTasks] = None,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._fetcher = fetcher
        self._background = background or BackgroundTasks()

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def background(self) -> BackgroundTasks:
        return self._background

    @abstractmethod
    async def resolve(self, request: Request) -> Optional[Response]:
        """Resolve *request*.

        Returns:
            The response, or ``None`` when the request is not intercepted
            and must go to the network untouched.
        """

    # ------------------------------------------------------------------ #
    # Shared building blocks
    # ------------------------------------------------------------------ #

    async def _lookup(self, request: Request) -> Optional[Response]:
        """Look *request* up in the current namespace.  Store failures count as a miss."""
        try:
            handle = await self._store.open(self._namespace)
            return await handle.match(request)
        except StoreError as exc:
            warning(f"Cache lookup failed for {request.url}: {exc}")
            return None

    async def _fill(self, request: Request, copy: Response) -> None:
        """Store *copy* under *request*; failures are reported, never raised."""
        if not request.is_cacheable:
            return
        try:
            handle = await self._store.open(self._namespace)
            await handle.put(request, copy)
        except StoreError as exc:
            warning(f"Failed to store {request.url} in cache: {exc}")
            return
        debug(f"Fetch response stored in cache: {request.url}")

    async def _fetch_and_fill(self, request: Request) -> Response:
        """Fetch *request* from the network, then fill the cache with a duplicate."""
        response = await self._fetcher.fetch(request)
        debug(f"Fetch response from network: {request.url}")
        await self._fill(request, response.duplicate())
        return response


class CacheFirstStrategy(ResolutionStrategy):
    """Cache first, network fallback, background refresh.

    The network fetch starts together with the cache lookup.  On a hit the
    cached response is returned at once and the fetch finishes in the
    background, overwriting the entry with a fresh copy.  On a miss the
    fetch is awaited; if it fails, :func:`unavailable_response` is returned.

    Args:
        excluded_pattern: Regex matched against the request path; matching
            requests are passed through (:meth:`resolve` returns ``None``).
    """

    name = StrategyName.CACHE_FIRST

    def __init__(
        self,
        store: ContentStore,
        namespace: str,
        fetcher: Fetcher,
        background: Optional[BackgroundTasks] = None,
        excluded_pattern: Optional[str] = r"^/auth/.*$",
    ) -> None:
        super().__init__(store, namespace, fetcher, background)
        try:
            self._excluded = re.compile(excluded_pattern) if excluded_pattern else None
        except re.error as exc:
            raise ConfigError(f"Invalid excluded pattern {excluded_pattern!r}: {exc}") from exc

    def is_excluded(self, request: Request) -> bool:
        """Whether *request* bypasses interception."""
        return self._excluded is not None and self._excluded.search(request.path) is not None

    async def resolve(self, request: Request) -> Optional[Response]:
        if self.is_excluded(request):
            debug(f"Not intercepting excluded path: {request.url}")
            return None

        network = asyncio.ensure_future(self._fetch_and_fill(request))
        cached = await self._lookup(request)
        debug(f"Fetch event {'(cached)' if cached is not None else '(network)'}: {request.url}")

        if cached is not None:
            self._background.spawn(self._refresh(request, network), f"refresh {request.url}")
            return cached

        try:
            return await network
        except FetchError as exc:
            info(f"Fetch request failed in both cache and network: {request.url} ({exc})")
            return unavailable_response()

    async def _refresh(self, request: Request, network: asyncio.Future[Response]) -> None:
        try:
            await network
        except FetchError as exc:
            debug(f"Background refresh failed for {request.url}: {exc}")


class RaceStrategy(ResolutionStrategy):
    """First-to-resolve race between cache lookup and network fetch.

    The network branch fills the cache before it resolves, so even when
    the cache wins, the slower fetch still refreshes the entry.

    Raises:
        AllFailedError: From :meth:`resolve`, when the cache missed and the
            network failed.
    """

    name = StrategyName.RACE

    async def resolve(self, request: Request) -> Optional[Response]:
        return await first_successful(
            lambda: self._lookup(request),
            lambda: self._fetch_and_fill(request),
            background=self._background,
            label=f"resolve {request.url}",
        )


def create_strategy(
    name: StrategyName | str,
    store: ContentStore,
    namespace: str,
    fetcher: Fetcher,
    background: Optional[BackgroundTasks] = None,
    excluded_pattern: Optional[str] = r"^/auth/.*$",
) -> ResolutionStrategy:
    """Build the strategy called *name*.

    Raises:
        ConfigError: If *name* is not a known strategy.
    """
    try:
        strategy = StrategyName(name)
    except ValueError as exc:
        raise ConfigError(f"Unknown strategy: {name}") from exc

    if strategy == StrategyName.RACE:
        return RaceStrategy(store, namespace, fetcher, background)
    return CacheFirstStrategy(
        store, namespace, fetcher, background, excluded_pattern=excluded_pattern
    )
