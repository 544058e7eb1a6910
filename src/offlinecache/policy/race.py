"""Racing and detached-task primitives for the resolution strategies.

:func:`first_successful` runs several async operations at once and returns
the first *usable* result.  An operation that returns ``None`` (a cache
miss) or raises does not resolve the race; when every operation has done
one or the other, the race fails with
:class:`~offlinecache.exceptions.AllFailedError`.

Operations that lose the race are never cancelled.  They are handed to a
:class:`BackgroundTasks` sink, which keeps them alive until they finish and
reports their failures instead of leaving them unobserved.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

from offlinecache.exceptions import AllFailedError, CacheMissError, FetchError
from offlinecache.output import debug, warning

T = TypeVar("T")

Operation = Callable[[], Awaitable[Optional[T]]]
ErrorSink = Callable[[str, BaseException], None]


def _report_background_error(label: str, exc: BaseException) -> None:
    if isinstance(exc, FetchError):
        # Expected for every losing network branch while offline.
        debug(f"Background task '{label}' failed: {exc}")
        return
    warning(f"Background task '{label}' failed: {exc}")


class BackgroundTasks:
    """Owner of detached tasks: keeps them referenced and observes their outcome.

    Args:
        on_error: Called as ``on_error(label, exc)`` when a task fails.
            Defaults to a warning diagnostic (network failures are
            reported at debug level).

    Example::

        tasks = BackgroundTasks()
        tasks.spawn(refresh_entry(request), label="refresh /index.html")
        ...
        await tasks.drain()
    """

    def __init__(self, on_error: Optional[ErrorSink] = None) -> None:
        self._on_error = on_error or _report_background_error
        self._tasks: dict[asyncio.Future[Any], str] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task[Any]:
        """Schedule *coro* as a detached task."""
        task = asyncio.ensure_future(coro)
        self.adopt(task, label)
        return task

    def adopt(self, task: asyncio.Future[Any], label: str) -> None:
        """Take ownership of an already running *task*."""
        if task.done():
            self._settle(task, label)
            return
        self._tasks[task] = label
        task.add_done_callback(self._on_done)

    async def drain(self) -> None:
        """Wait until every task, including ones spawned meanwhile, has finished."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    def _on_done(self, task: asyncio.Future[Any]) -> None:
        label = self._tasks.pop(task, "task")
        self._settle(task, label)

    def _settle(self, task: asyncio.Future[Any], label: str) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._on_error(label, exc)


async def first_successful(
    *operations: Operation[T],
    background: Optional[BackgroundTasks] = None,
    label: str = "race",
) -> T:
    """Return the first non-``None`` result among *operations*.

    All operations start at once.  Results are considered in completion
    order; operations completing in the same loop iteration are considered
    in argument order.  Once a winner is found the remaining operations
    keep running, owned by *background* (a private sink when omitted).

    Raises:
        AllFailedError: If every operation raised or returned ``None``.
            ``errors`` holds one exception per operation, misses recorded as
            :class:`~offlinecache.exceptions.CacheMissError`.
    """
    tasks = [asyncio.ensure_future(operation()) for operation in operations]
    errors: list[BaseException] = []
    pending = set(tasks)

    while pending:
        done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        for task in (t for t in tasks if t in done):
            if task.cancelled():
                errors.append(asyncio.CancelledError())
                continue
            exc = task.exception()
            if exc is not None:
                errors.append(exc)
                continue
            result = task.result()
            if result is None:
                errors.append(CacheMissError("no usable result"))
                continue

            sink = background or BackgroundTasks()
            for other in tasks:
                if other is not task:
                    sink.adopt(other, f"{label} (losing branch)")
            return result

    raise AllFailedError(errors)
