"""Built-in CLI sub-commands for offlinecache.

This package groups the Typer sub-command modules of the CLI:

* :mod:`~offlinecache.commands.lifecycle` -- ``install`` and ``activate``
  the current application version.
* :mod:`~offlinecache.commands.fetch` -- intercept a single request.
* :mod:`~offlinecache.commands.namespaces` -- list, inspect, evict, and
  delete cache namespaces.
* :mod:`~offlinecache.commands.config` -- view and modify settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``namespaces`` and ``config``) or a plain
callback function registered directly on the root app.
"""
