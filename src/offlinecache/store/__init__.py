"""Namespaced content stores for offlinecache.

This package provides the :class:`ContentStore` interface and two
backends:

* :class:`DiskContentStore` -- one :mod:`diskcache` directory per
  namespace; survives restarts.  The default.
* :class:`MemoryContentStore` -- plain dictionaries; gone with the process.

:func:`create_store` picks the backend named by the ``store`` section of
a :class:`~offlinecache.models.WorkerConfig`.
"""

from __future__ import annotations

from offlinecache.exceptions import ConfigError
from offlinecache.models import WorkerConfig
from offlinecache.store.base import ContentStore, NamespaceHandle
from offlinecache.store.disk import DiskContentStore
from offlinecache.store.memory import MemoryContentStore


def create_store(config: WorkerConfig) -> ContentStore:
    """Build the content store selected by ``config.store.backend``.

    Raises:
        ConfigError: If the backend name is unknown.
    """
    backend = config.store.backend.lower()
    if backend == "disk":
        from offlinecache.config import get_store_dir

        return DiskContentStore(get_store_dir(config), vary=config.vary_headers)
    if backend == "memory":
        return MemoryContentStore(vary=config.vary_headers)
    raise ConfigError(f"Unknown store backend: {config.store.backend}")


__all__ = [
    "ContentStore",
    "NamespaceHandle",
    "DiskContentStore",
    "MemoryContentStore",
    "create_store",
]
