"""In-process runtime that owns a lifecycle and gates version transitions.

:class:`LifecycleHost` plays the part a browser plays for a service
worker: handlers are registered for the ``resume``, ``install``,
``activate``, and ``fetch`` triggers; the host runs each phase to completion before moving
on, refuses to activate a version whose install failed, holds intercepted
requests until activation has completed, and sends requests the handler
declines straight to the network.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from offlinecache.client.fetcher import Fetcher
from offlinecache.exceptions import InvalidUsageError, OfflineCacheError
from offlinecache.models import Request, Response
from offlinecache.output import debug, error

PhaseHandler = Callable[[], Awaitable[Any]]
FetchHandler = Callable[[Request], Awaitable[Optional[Response]]]

TRIGGERS = ("resume", "install", "activate", "fetch")


class LifecycleHost:
    """Drives registered lifecycle handlers.

    Args:
        network: Fetcher used for requests that are not intercepted.

    Example::

        host = LifecycleHost(fetcher)
        controller.register(host)
        if await host.start():
            response = await host.fetch(Request(url="/index.html"))
    """

    def __init__(self, network: Fetcher) -> None:
        self._network = network
        self._handlers: dict[str, Callable[..., Awaitable[Any]]] = {}
        self._installed = False
        self._active = asyncio.Event()

    @property
    def is_active(self) -> bool:
        return self._active.is_set()

    def on(self, trigger: str, handler: Callable[..., Awaitable[Any]]) -> None:
        """Register *handler* for *trigger* (``resume``, ``install``, ``activate``, ``fetch``)."""
        if trigger not in TRIGGERS:
            raise InvalidUsageError(f"Unknown lifecycle trigger: {trigger}")
        self._handlers[trigger] = handler

    async def install(self) -> bool:
        """Run the install handler.  Returns whether the version may activate."""
        self._installed = await self._wait_until("install")
        return self._installed

    async def activate(self) -> bool:
        """Run the activate handler, then release held fetches.

        Returns ``False`` without running the handler when install has not
        succeeded.
        """
        if not self._installed:
            error("Cannot activate: install has not completed successfully")
            return False
        if not await self._wait_until("activate"):
            return False
        self._active.set()
        return True

    async def start(self) -> bool:
        """Bring the version up: resume or install it, then activate.

        The ``resume`` handler, when registered, reports whether the version
        was installed by an earlier run; install is skipped in that case.

        Returns:
            Whether the version is active.
        """
        resume: Optional[Callable[[], Awaitable[bool]]] = self._handlers.get("resume")
        try:
            resumed = resume is not None and await resume()
        except OfflineCacheError as exc:
            error(f"Resume failed: {exc}")
            return False
        if resumed:
            self._installed = True
        elif not await self.install():
            return False
        return await self.activate()

    async def fetch(self, request: Request) -> Response:
        """Dispatch *request* to the fetch handler once the version is active.

        Requests the handler declines (``None``) go to the network as is.

        Raises:
            FetchError: If a request that was not intercepted fails on the
                network.
        """
        handler: Optional[FetchHandler] = self._handlers.get("fetch")
        if handler is not None:
            await self._active.wait()
            response = await handler(request)
            if response is not None:
                return response
        debug(f"Passing request through to the network: {request.url}")
        return await self._network.fetch(request)

    async def _wait_until(self, trigger: str) -> bool:
        """Run the *trigger* handler to completion and report its outcome."""
        handler: Optional[PhaseHandler] = self._handlers.get(trigger)
        if handler is None:
            return True
        try:
            await handler()
        except OfflineCacheError as exc:
            error(f"{trigger.capitalize()} failed: {exc}")
            return False
        return True
