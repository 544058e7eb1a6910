"""Network fetcher module for offlinecache.

Classes:
    :class:`Fetcher` -- the async request issuer interface.
    :class:`HttpFetcher` -- implementation backed by :class:`httpx.AsyncClient`.
"""

from offlinecache.client.fetcher import Fetcher, HttpFetcher

__all__ = ["Fetcher", "HttpFetcher"]
