"""Fetch command -- resolve one request through the cache.

Brings the current version up the way a runtime would (resume it when
already installed, install it otherwise, then activate) and dispatches a
single request through the :class:`~offlinecache.host.LifecycleHost`.  The
status line goes to stderr and the payload to stdout, so the command can
be piped like ``curl``.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from offlinecache.exit_codes import EXIT_LIFECYCLE_FAILURE, EXIT_UNAVAILABLE
from offlinecache.exceptions import InvalidUsageError
from offlinecache.models import Request, Response
from offlinecache.output import info, print_bytes


def _parse_headers(values: Optional[list[str]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise InvalidUsageError(f"Invalid header {value!r}; expected 'Name: value'")
        headers[name.strip()] = content.strip()
    return headers


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL or path to request (relative to --base-url)."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Request header 'Name: value' (repeatable)."
    ),
) -> None:
    """Resolve a request through the cache and print the response body.

    Exits with code 5 when neither the cache nor the network could answer
    and the synthesized Service Unavailable page was served.

    Example::

        offlinecache --base-url https://app.example.com fetch /index.html
        offlinecache fetch /api/tasks -H "Accept: application/json"
    """
    from offlinecache.policy.strategies import unavailable_response
    from offlinecache.runtime import config_from_context, open_worker

    config = config_from_context(ctx)
    request = Request(method=method, url=url, headers=_parse_headers(header))

    async def _run() -> Optional[Response]:
        async with open_worker(config) as worker:
            if not await worker.host.start():
                return None
            return await worker.host.fetch(request)

    response = asyncio.run(_run())
    if response is None:
        raise typer.Exit(code=EXIT_LIFECYCLE_FAILURE)

    info(f"HTTP {response.status_code} {response.reason_phrase}")
    print_bytes(response.content)
    if response == unavailable_response():
        raise typer.Exit(code=EXIT_UNAVAILABLE)
