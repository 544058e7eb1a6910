"""Canonical Pydantic models shared across all offlinecache modules.

This is the single source of truth for data shapes in the project.  The
models fall into two groups:

**Exchange models** -- the values that flow through the engine:
    :class:`Request` (the cache key) and :class:`Response` (an immutable
    byte payload with an explicit :meth:`~Response.duplicate`).

**Configuration models** -- serialised as JSON in the user's config
directory:
    :class:`StrategyName`, :class:`NetworkConfig`, :class:`StoreConfig`,
    :class:`OutputConfig`, and :class:`WorkerConfig`.

All models use Pydantic v2.  Exchange models are frozen so that a request
or response cannot change after it has been issued or stored.
"""

from __future__ import annotations

import enum
import hashlib
import io
import json
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Exchange models ---


class Request(BaseModel):
    """An outgoing resource request, used as the cache key.

    Identity is ``(method, url, headers named in the vary list)``.  Only
    ``GET`` requests can be stored in or matched from the content store.

    Example::

        req = Request(url="https://app.example.com/index.html")
        key = req.cache_key()
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @property
    def path(self) -> str:
        """The URL path component (``/auth/login`` for ``https://h/auth/login?x=1``)."""
        path = urlsplit(self.url).path
        return path or "/"

    @property
    def is_cacheable(self) -> bool:
        """Whether this request may be stored in the content store."""
        return self.method == "GET"

    def cache_key(self, vary: Optional[list[str]] = None) -> str:
        """Generate a cache key from method, URL, and the selected headers.

        Header names are compared case-insensitively; headers absent from
        *vary* do not take part in the identity.
        """
        parts = [self.method, self.url]
        if vary:
            lowered = {k.lower(): v for k, v in self.headers.items()}
            selected = {name.lower(): lowered.get(name.lower()) for name in vary}
            parts.append(json.dumps(selected, sort_keys=True))
        raw = "|".join(parts)
        return hashlib.sha256(raw.encode()).hexdigest()


class Response(BaseModel):
    """A resource response owning an immutable byte payload.

    The payload is consumed in two independent places -- returned to the
    caller and stored in the cache -- so the cache path always receives
    :meth:`duplicate`, never the instance handed to the caller.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int = 200
    reason_phrase: str = "OK"
    headers: dict[str, str] = Field(default_factory=dict)
    content: bytes = b""
    url: Optional[str] = None

    @property
    def ok(self) -> bool:
        """``True`` for 2xx status codes."""
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        """The payload decoded as UTF-8 (undecodable bytes are replaced)."""
        return self.content.decode("utf-8", errors="replace")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return default

    def duplicate(self) -> Response:
        """Return a distinct, independently readable copy of this response."""
        return self.model_copy(deep=True)

    def stream(self) -> io.BytesIO:
        """Return a fresh reader over the payload; readers never share a position."""
        return io.BytesIO(self.content)


# --- Configuration models ---


class StrategyName(str, enum.Enum):
    """Selectable resolution strategies.

    ``CACHE_FIRST`` answers from the cache when it can and refreshes it in
    the background; ``RACE`` returns whichever of cache and network answers
    first.
    """

    CACHE_FIRST = "cache_first"
    RACE = "race"


class NetworkConfig(BaseModel):
    """Settings for the network fetcher."""

    base_url: Optional[str] = Field(
        default=None, description="Base URL that relative request URLs resolve against"
    )
    timeout: Optional[float] = Field(
        default=None, description="Request timeout in seconds (none by default)"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(
        default=0, description="Retries after transport failures"
    )


class StoreConfig(BaseModel):
    """Content store backend selection."""

    backend: str = Field(default="disk", description="Store backend: disk, memory")
    directory: Optional[str] = Field(
        default=None, description="Store root directory (defaults to the cache dir)"
    )


class OutputConfig(BaseModel):
    """Default output format preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class WorkerConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/offlinecache/config.json``.

    Names the application and version whose namespace is current, the
    resolution strategy, and the content list seeded at install time.
    Loaded by :func:`~offlinecache.config.load_worker_config` and merged
    with project config, environment variables, and CLI flags by
    :func:`~offlinecache.config.resolve_config`.

    Example::

        WorkerConfig(app_name="tasknet", version="1", strategy="race")
    """

    app_name: str = Field(default="tasknet", description="Application identifier")
    version: str = Field(default="0", description="Application version")
    strategy: StrategyName = Field(
        default=StrategyName.CACHE_FIRST, description="Resolution strategy"
    )
    excluded_pattern: Optional[str] = Field(
        default=r"^/auth/.*$",
        description="Request paths matching this regex are never intercepted",
    )
    content: list[str] = Field(
        default_factory=lambda: ["index.html"],
        description="Paths seeded into the namespace at install time",
    )
    content_file: Optional[str] = Field(
        default=None, description="JSON or YAML file holding the content list"
    )
    vary_headers: list[str] = Field(
        default_factory=list, description="Request headers that take part in cache identity"
    )
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value
