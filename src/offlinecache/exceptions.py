"""Exception hierarchy for offlinecache.

All exceptions inherit from :class:`OfflineCacheError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`offlinecache.exit_codes`.  The top-level error handler in
:func:`offlinecache.app.main` catches ``OfflineCacheError`` and exits with
the appropriate code, while unexpected exceptions produce a crash log and
exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    OfflineCacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- InstallError        (exit 3)
    +-- LifecycleError      (exit 3)
    +-- StoreError          (exit 4)
    +-- AllFailedError      (exit 5)
    +-- FetchError          (exit 6)

:class:`CacheMissError` is not raised on its own: it records a cache miss
inside an :class:`AllFailedError` so that the aggregate lists one entry
per raced operation.
"""

from __future__ import annotations

from typing import Sequence

from offlinecache.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_LIFECYCLE_FAILURE,
    EXIT_STORE_ERROR,
    EXIT_UNAVAILABLE,
)


class OfflineCacheError(Exception):
    """Base exception for all offlinecache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`offlinecache.exit_codes`.  The entry point
    catches this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OfflineCacheError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(OfflineCacheError):
    """Raised for configuration problems (invalid JSON, unreadable content lists)."""

    exit_code = EXIT_GENERIC_FAILURE


class InstallError(OfflineCacheError):
    """Raised when seeding the current namespace fails.

    A failed install is fatal to the version being installed: it never
    becomes eligible to replace the previous one.
    """

    exit_code = EXIT_LIFECYCLE_FAILURE


class LifecycleError(OfflineCacheError):
    """Raised when a lifecycle phase is triggered out of order."""

    exit_code = EXIT_LIFECYCLE_FAILURE


class StoreError(OfflineCacheError):
    """Raised when a content store operation (open, match, put, delete, list) fails."""

    exit_code = EXIT_STORE_ERROR


class FetchError(OfflineCacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    An HTTP error status is *not* a fetch failure: the network answered.
    """

    exit_code = EXIT_CONNECTION_ERROR


class CacheMissError(Exception):
    """Placeholder recorded in an aggregate failure for a lookup that found nothing."""


class AllFailedError(OfflineCacheError):
    """Raised when every operation in a race failed or missed.

    Args:
        errors: One exception per raced operation, in completion order.
            Misses are represented by :class:`CacheMissError`.
    """

    exit_code = EXIT_UNAVAILABLE

    def __init__(self, errors: Sequence[BaseException], message: str = "All failed"):
        detail = "; ".join(f"{type(e).__name__}: {e}" for e in errors)
        super().__init__(f"{message} ({detail})" if detail else message)
        self.errors = list(errors)
