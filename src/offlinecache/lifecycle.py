"""Install / activate / intercept state machine for one application version.

:class:`LifecycleController` owns the namespace of a single
``(app_name, version)`` pair, passed in explicitly through
:class:`~offlinecache.models.WorkerConfig`.  The owning runtime (see
:mod:`offlinecache.host`) drives it through three phases:

1. **install** -- seed the content list into the current namespace.  All
   or nothing: a failed install leaves the version ``redundant`` and it
   never replaces the previous one.
2. **activate** -- evict the namespaces of every other version of the
   application.  Interception waits until this has completed.
3. **intercept** -- resolve each request with the configured
   :class:`~offlinecache.policy.strategies.ResolutionStrategy`.

Phase transitions::

    pending -> installing -> installed -> activating -> activated
                    |
                    +-> redundant
"""

from __future__ import annotations

import asyncio
import enum
from typing import TYPE_CHECKING, Optional

from offlinecache.client.fetcher import Fetcher
from offlinecache.exceptions import AllFailedError, FetchError, InstallError, LifecycleError, StoreError
from offlinecache.models import Request, Response, WorkerConfig
from offlinecache.namespaces import current_namespace, evict_stale
from offlinecache.output import debug, info, success, warning
from offlinecache.policy.race import BackgroundTasks
from offlinecache.policy.strategies import ResolutionStrategy, create_strategy, unavailable_response
from offlinecache.store.base import ContentStore

if TYPE_CHECKING:
    from offlinecache.host import LifecycleHost


class LifecyclePhase(str, enum.Enum):
    """Where a version stands in its lifecycle."""

    PENDING = "pending"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class LifecycleController:
    """Drives namespace seeding, stale eviction, and request resolution.

    Args:
        config: Application name, version, strategy selection, and the
            excluded path pattern.
        store: The shared content store.
        fetcher: Network request issuer used for seeding and resolution.
        strategy: Resolution strategy; built from ``config.strategy`` when
            omitted.
        content: Paths seeded at install time; ``config.content`` when
            omitted.
        background: Sink for detached work; shared with the strategy.

    Example::

        controller = LifecycleController(WorkerConfig(version="1"), store, fetcher)
        await controller.install()
        await controller.activate()
        response = await controller.intercept(Request(url="/index.html"))
    """

    def __init__(
        self,
        config: WorkerConfig,
        store: ContentStore,
        fetcher: Fetcher,
        strategy: Optional[ResolutionStrategy] = None,
        content: Optional[list[str]] = None,
        background: Optional[BackgroundTasks] = None,
    ) -> None:
        self._config = config
        self._store = store
        self._fetcher = fetcher
        self._namespace = current_namespace(config.app_name, config.version)
        if strategy is None:
            self._background = background or BackgroundTasks()
            strategy = create_strategy(
                config.strategy,
                store,
                self._namespace,
                fetcher,
                self._background,
                excluded_pattern=config.excluded_pattern,
            )
        else:
            self._background = background or strategy.background
        self._strategy = strategy
        self._content = list(content) if content is not None else list(config.content)
        self._phase = LifecyclePhase.PENDING
        self._activated = asyncio.Event()

    @property
    def namespace(self) -> str:
        """The current namespace, ``{app_name}-{version}``."""
        return self._namespace

    @property
    def phase(self) -> LifecyclePhase:
        return self._phase

    @property
    def strategy(self) -> ResolutionStrategy:
        return self._strategy

    @property
    def content(self) -> list[str]:
        return list(self._content)

    # ------------------------------------------------------------------ #
    # Install
    # ------------------------------------------------------------------ #

    async def install(self) -> list[str]:
        """Seed the content list into the current namespace.

        Every path is fetched concurrently and must come back with a 2xx
        status before anything is stored.  Seeding an already seeded
        namespace again overwrites the same entries.

        Returns:
            The seeded request URLs, in content list order.

        Raises:
            InstallError: If a fetch fails, a response is not successful,
                or the store cannot be written.  The version becomes
                ``redundant``.
            LifecycleError: If called while a phase is in progress or
                after activation.
        """
        if self._phase in (
            LifecyclePhase.INSTALLING,
            LifecyclePhase.ACTIVATING,
            LifecyclePhase.ACTIVATED,
        ):
            raise LifecycleError(f"Cannot install {self._namespace}: version is {self._phase.value}")

        self._phase = LifecyclePhase.INSTALLING
        info(f"Install: {self._namespace}")
        try:
            seeded = await self._seed()
        except BaseException:
            self._phase = LifecyclePhase.REDUNDANT
            raise
        self._phase = LifecyclePhase.INSTALLED
        success(f"Install complete: {self._namespace} ({len(seeded)} resources)")
        return seeded

    async def _seed(self) -> list[str]:
        requests = [Request(url=path) for path in self._content]
        info(f"Caching {len(requests)} resources for offline use")

        results = await asyncio.gather(
            *(self._fetcher.fetch(request) for request in requests),
            return_exceptions=True,
        )
        for request, result in zip(requests, results):
            if isinstance(result, FetchError):
                raise InstallError(f"Failed to fetch {request.url}: {result}") from result
            if isinstance(result, BaseException):
                raise result
            if not result.ok:
                raise InstallError(
                    f"Failed to fetch {request.url}: HTTP {result.status_code} {result.reason_phrase}"
                )

        existed = await self._safe_has()
        try:
            handle = await self._store.open(self._namespace)
            for request, response in zip(requests, results):
                await handle.put(request, response)
        except StoreError as exc:
            if not existed:
                await self._discard_namespace()
            raise InstallError(f"Failed to seed {self._namespace}: {exc}") from exc

        return [request.url for request in requests]

    async def _safe_has(self) -> bool:
        try:
            return await self._store.has(self._namespace)
        except StoreError:
            return True

    async def _discard_namespace(self) -> None:
        try:
            await self._store.delete(self._namespace)
        except StoreError as exc:
            warning(f"Failed to discard partially seeded {self._namespace}: {exc}")

    async def resume(self) -> bool:
        """Adopt a namespace installed by an earlier run of the same version.

        Returns:
            ``True`` (and moves to ``installed``) when the current
            namespace already exists; ``False`` otherwise.
        """
        if self._phase != LifecyclePhase.PENDING:
            return self._phase in (LifecyclePhase.INSTALLED, LifecyclePhase.ACTIVATED)
        if await self._store.has(self._namespace):
            debug(f"Resuming installed namespace {self._namespace}")
            self._phase = LifecyclePhase.INSTALLED
            return True
        return False

    # ------------------------------------------------------------------ #
    # Activate
    # ------------------------------------------------------------------ #

    async def activate(self) -> list[str]:
        """Evict stale namespaces of the application, then open interception.

        An enumeration failure is reported and activation still
        completes; the stale namespaces are retried on the next activation.

        Returns:
            The deleted namespaces.

        Raises:
            LifecycleError: If the version has not been installed.
        """
        if self._phase not in (LifecyclePhase.INSTALLED, LifecyclePhase.ACTIVATED):
            raise LifecycleError(
                f"Cannot activate {self._namespace}: version is {self._phase.value}"
            )

        self._phase = LifecyclePhase.ACTIVATING
        info(f"Activate: {self._namespace}")
        try:
            deleted = await evict_stale(self._store, self._config.app_name, self._namespace)
        except StoreError as exc:
            warning(f"Could not enumerate cache namespaces: {exc}")
            deleted = []

        self._phase = LifecyclePhase.ACTIVATED
        self._activated.set()
        success(f"Activate complete: {self._namespace}")
        return deleted

    # ------------------------------------------------------------------ #
    # Intercept
    # ------------------------------------------------------------------ #

    async def intercept(self, request: Request) -> Optional[Response]:
        """Resolve *request* once activation has completed.

        Returns:
            The response -- the synthesized 503 page when neither cache nor
            network can answer -- or ``None`` when the request is excluded
            from interception.

        Raises:
            LifecycleError: If the version is ``redundant``.
        """
        if self._phase == LifecyclePhase.REDUNDANT:
            raise LifecycleError(f"Version {self._namespace} is redundant")
        await self._activated.wait()
        try:
            return await self._strategy.resolve(request)
        except AllFailedError as exc:
            info(f"Fetch request failed in both cache and network: {request.url} ({exc})")
            return unavailable_response()

    # ------------------------------------------------------------------ #
    # Wiring
    # ------------------------------------------------------------------ #

    def register(self, host: LifecycleHost) -> None:
        """Bind this controller's phases to *host* triggers."""
        host.on("resume", self.resume)
        host.on("install", self.install)
        host.on("activate", self.activate)
        host.on("fetch", self.intercept)

    async def close(self) -> None:
        """Wait for detached work (background refreshes, losing race branches)."""
        await self._background.drain()
