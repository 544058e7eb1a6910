"""Tests for the first-to-resolve race and the background task sink."""

from __future__ import annotations

import asyncio

import pytest

from offlinecache.exceptions import AllFailedError, CacheMissError, FetchError
from offlinecache.policy.race import BackgroundTasks, first_successful


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _after(delay: float, value=None, error: Exception | None = None):
    """Build an operation resolving to *value* (or raising *error*) after *delay*."""

    async def _operation():
        await asyncio.sleep(delay)
        if error is not None:
            raise error
        return value

    return _operation


# ------------------------------------------------------------------ #
# first_successful
# ------------------------------------------------------------------ #


class TestFirstSuccessful:
    def test_fastest_usable_result_wins(self) -> None:
        async def scenario():
            return await first_successful(_after(0.1, "slow"), _after(0.01, "fast"))

        assert asyncio.run(scenario()) == "fast"

    def test_miss_never_wins(self) -> None:
        """An operation resolving to None immediately does not beat a slower value."""

        async def scenario():
            return await first_successful(_after(0, None), _after(0.02, "network"))

        assert asyncio.run(scenario()) == "network"

    def test_failure_does_not_win(self) -> None:
        async def scenario():
            return await first_successful(
                _after(0, error=FetchError("offline")), _after(0.02, "cached")
            )

        assert asyncio.run(scenario()) == "cached"

    def test_same_tick_results_follow_argument_order(self) -> None:
        async def scenario():
            return await first_successful(_after(0, "first"), _after(0, "second"))

        assert asyncio.run(scenario()) == "first"

    def test_all_failed_carries_every_error(self) -> None:
        async def scenario():
            return await first_successful(
                _after(0, None), _after(0.01, error=FetchError("offline"))
            )

        with pytest.raises(AllFailedError) as exc_info:
            asyncio.run(scenario())

        errors = exc_info.value.errors
        assert len(errors) == 2
        assert isinstance(errors[0], CacheMissError)
        assert isinstance(errors[1], FetchError)

    def test_all_failed_exit_code(self) -> None:
        assert AllFailedError([]).exit_code == 5
        assert str(AllFailedError([])) == "All failed"

    def test_loser_keeps_running_after_winner(self) -> None:
        finished: list[str] = []

        async def slow_fill():
            await asyncio.sleep(0.05)
            finished.append("fill")
            return "network"

        async def scenario():
            background = BackgroundTasks()
            winner = await first_successful(_after(0, "cached"), slow_fill, background=background)
            assert finished == []
            assert len(background) == 1
            await background.drain()
            return winner

        assert asyncio.run(scenario()) == "cached"
        assert finished == ["fill"]

    def test_losing_failure_is_reported_not_raised(self) -> None:
        reported: list[tuple[str, BaseException]] = []

        async def scenario():
            background = BackgroundTasks(on_error=lambda label, exc: reported.append((label, exc)))
            winner = await first_successful(
                _after(0, "cached"),
                _after(0.01, error=FetchError("offline")),
                background=background,
                label="resolve /index.html",
            )
            await background.drain()
            return winner

        assert asyncio.run(scenario()) == "cached"
        assert len(reported) == 1
        assert reported[0][0] == "resolve /index.html (losing branch)"
        assert isinstance(reported[0][1], FetchError)


# ------------------------------------------------------------------ #
# BackgroundTasks
# ------------------------------------------------------------------ #


class TestBackgroundTasks:
    def test_spawned_task_completes_on_drain(self) -> None:
        done: list[int] = []

        async def work():
            await asyncio.sleep(0.01)
            done.append(1)

        async def scenario():
            tasks = BackgroundTasks()
            tasks.spawn(work(), "work")
            assert len(tasks) == 1
            await tasks.drain()
            assert len(tasks) == 0

        asyncio.run(scenario())
        assert done == [1]

    def test_failure_goes_to_error_sink(self) -> None:
        reported: list[str] = []

        async def boom():
            raise FetchError("offline")

        async def scenario():
            tasks = BackgroundTasks(on_error=lambda label, exc: reported.append(f"{label}: {exc}"))
            tasks.spawn(boom(), "refresh /index.html")
            await tasks.drain()

        asyncio.run(scenario())
        assert reported == ["refresh /index.html: offline"]

    def test_drain_waits_for_tasks_spawned_meanwhile(self) -> None:
        order: list[str] = []

        async def scenario():
            tasks = BackgroundTasks()

            async def child():
                await asyncio.sleep(0.01)
                order.append("child")

            async def parent():
                tasks.spawn(child(), "child")
                order.append("parent")

            tasks.spawn(parent(), "parent")
            await tasks.drain()

        asyncio.run(scenario())
        assert order == ["parent", "child"]

    def test_adopting_finished_task_reports_immediately(self) -> None:
        reported: list[str] = []

        async def boom():
            raise FetchError("late")

        async def scenario():
            task = asyncio.ensure_future(boom())
            await asyncio.wait([task])
            tasks = BackgroundTasks(on_error=lambda label, exc: reported.append(label))
            tasks.adopt(task, "finished")
            assert len(tasks) == 0

        asyncio.run(scenario())
        assert reported == ["finished"]

    def test_cancelled_task_is_not_reported(self) -> None:
        reported: list[str] = []

        async def scenario():
            tasks = BackgroundTasks(on_error=lambda label, exc: reported.append(label))
            task = tasks.spawn(asyncio.sleep(10), "sleeper")
            task.cancel()
            await tasks.drain()

        asyncio.run(scenario())
        assert reported == []
