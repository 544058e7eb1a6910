"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~offlinecache.exceptions.OfflineCacheError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ offlinecache fetch /index.html
    $ echo $?
    5   # EXIT_UNAVAILABLE -- neither cache nor network could answer
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_LIFECYCLE_FAILURE = 3
"""Installing or activating an application version failed."""

EXIT_STORE_ERROR = 4
"""The content store could not be opened, read, or written."""

EXIT_UNAVAILABLE = 5
"""The request could be answered by neither the cache nor the network."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
