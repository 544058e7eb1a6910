"""Network fetchers -- the async request issuer behind the cache.

This module provides :class:`Fetcher`, the interface the resolution
strategies and the lifecycle controller consume, and :class:`HttpFetcher`,
its implementation on top of :class:`httpx.AsyncClient`.

A fetch *fails* only when the network cannot produce a response at all
(connection refused, DNS failure, timeout).  An HTTP error status is a
successful fetch of an error response, exactly as a browser ``fetch``
resolves for a 404.

See Also:
    :mod:`offlinecache.policy.strategies` -- where fetch failures turn into
    the synthesized Service Unavailable response.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from offlinecache.exceptions import FetchError
from offlinecache.models import NetworkConfig, Request, Response
from offlinecache.output import debug


class Fetcher(ABC):
    """Abstract async request issuer.

    Subclasses implement :meth:`fetch`, returning a
    :class:`~offlinecache.models.Response` or raising
    :class:`~offlinecache.exceptions.FetchError`.
    """

    @abstractmethod
    async def fetch(self, request: Request) -> Response:
        """Issue *request* over the network.

        Raises:
            FetchError: On network-level failure.
        """


class HttpFetcher(Fetcher):
    """Fetcher backed by :class:`httpx.AsyncClient`.

    Relative request URLs resolve against ``config.base_url``.  Redirects
    are followed.  Transport failures are retried ``config.max_retries``
    times with exponential backoff (1 s, 2 s, 4 s, ...).  Must be used as
    an async context manager.

    Args:
        config: Network settings (base URL, timeout, SSL verification,
            retries).
        transport: Optional custom :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with HttpFetcher(NetworkConfig(base_url="https://app.example.com")) as fetcher:
            response = await fetcher.fetch(Request(url="/index.html"))
    """

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or NetworkConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HttpFetcher:
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url or "",
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    async def fetch(self, request: Request) -> Response:
        """Send *request* and read the whole body.

        Raises:
            FetchError: On connection, timeout, or protocol errors after
                all retries, or when the URL is unusable.
        """
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"

        max_retries = self._config.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = await self._client.request(
                    request.method, request.url, headers=request.headers
                )
            except httpx.TransportError as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    debug(
                        f"Network error for {request.url}: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise FetchError(
                    f"Fetch of {request.url} failed after {max_retries + 1} attempts: {exc}"
                ) from exc
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise FetchError(f"Fetch of {request.url} failed: {exc}") from exc

            return _to_response(response)

        raise FetchError(f"Fetch of {request.url} failed")  # pragma: no cover


def _to_response(response: httpx.Response) -> Response:
    """Copy an :class:`httpx.Response` into an immutable :class:`Response`."""
    return Response(
        status_code=response.status_code,
        reason_phrase=response.reason_phrase or "",
        headers=dict(response.headers),
        content=response.content,
        url=str(response.url),
    )
