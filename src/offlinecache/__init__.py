"""offlinecache -- versioned offline caching for resource fetches.

This package intercepts resource requests and answers them from a local,
versioned cache when possible, falling back to (or racing against) the
network, while keeping the cache namespace consistent across application
upgrades.

Typical workflow::

    offlinecache install                  # seed the current version
    offlinecache fetch /index.html        # intercept a request
    offlinecache --app-version 1 install  # upgrade, evicting version 0

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration resolution.
    lifecycle: Install / activate / intercept state machine.
    host: In-process runtime that drives the lifecycle.
    namespaces: Namespace naming and stale namespace eviction.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
