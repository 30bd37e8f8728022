# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Coroutine scheduler for asyncio with automatic cleanup.

Wraps asyncio's ``call_at`` so that:

1. **Coroutine lifecycle**: Unawaited coroutines are closed on cancellation, which
   avoids "coroutine was never awaited" warnings.

2. **Fixed schedules**: ``schedule_at`` takes absolute ``loop.time()`` deadlines, so a
   periodic caller can compute ``anchor + n * interval`` without drift.

3. **Centralized cleanup**: All pending timers and running tasks are cancelled at once
   on shutdown.

Example::

    scheduler = LoopScheduler()
    scheduler.schedule_at(anchor + interval, run_pass())

    # Shutdown
    cancelled_tasks = scheduler.cancel_all()
    await asyncio.gather(*cancelled_tasks, return_exceptions=True)
"""

import asyncio
from collections.abc import Callable, Coroutine
from typing import TypeAlias

HandleId: TypeAlias = int
"""Identifier of a pending timer, keyed by the id of its asyncio handle."""


class LoopScheduler:
    """
    Schedule coroutines with automatic tracking and cleanup.

    Two-state model:
        - **Pending**: Timer scheduled, not yet fired (in _handles dict)
        - **Running**: Timer fired, coroutine executing (in _tasks set)

    Thread Safety: NOT thread-safe. Call from event loop thread only.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        exception_handler: Callable[[asyncio.Task], None] | None = None,
    ) -> None:
        """
        Args:
            loop: Event loop to use. If None, uses asyncio.get_running_loop().
            exception_handler: Called when a task raises an unhandled exception.
        """
        self._loop: asyncio.AbstractEventLoop = loop or asyncio.get_running_loop()
        self._tasks: set[asyncio.Task] = set()
        # Keyed by id(handle); the handle container holds a reference back to the handle.
        self._handles: dict[
            HandleId, tuple[asyncio.TimerHandle | asyncio.Handle, Coroutine]
        ] = {}
        self._exception_handler = exception_handler

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def _done_callback(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        # cancelled() first: exception() raises CancelledError on a cancelled task
        if (
            not task.cancelled()
            and task.exception() is not None
            and self._exception_handler is not None
        ):
            self._exception_handler(task)

    def _safe_callback(
        self,
        handle_container: list[asyncio.TimerHandle | asyncio.Handle | None],
        coro: Coroutine,
    ) -> None:
        """Timer callback: move the coroutine from pending to running.

        ``handle_container`` is filled in after ``call_at`` returns, since the
        handle does not exist yet when the callback arguments are bound.
        """
        if handle_container[0] is not None:
            self._handles.pop(id(handle_container[0]), None)
        self._start_task(coro)

    def _start_task(self, coro: Coroutine) -> asyncio.Task:
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._done_callback)
        return task

    def _track(
        self, handle: asyncio.TimerHandle | asyncio.Handle, coro: Coroutine
    ) -> HandleId:
        handle_id = id(handle)
        self._handles[handle_id] = (handle, coro)
        return handle_id

    def schedule_at(self, loop_time: float, coro: Coroutine) -> HandleId:
        """
        Schedule coroutine at an absolute loop.time() timestamp.

        A timestamp in the past fires on the next loop iteration.

        Returns:
            Identifier of the pending timer. The coroutine is closed if
            :meth:`cancel_all` runs before the timer fires.
        """
        handle_container: list = [None]
        handle = self._loop.call_at(
            loop_time, self._safe_callback, handle_container, coro
        )
        handle_container[0] = handle
        return self._track(handle, coro)

    def cancel_all(self) -> list[asyncio.Task]:
        """Cancel all pending timers and running tasks. Returns cancelled tasks.

        Pending coroutines are closed without running. Running tasks are
        returned so the caller can await their cleanup.
        """
        pending = list(self._handles.values())
        self._handles.clear()
        for handle, coro in pending:
            handle.cancel()
            coro.close()

        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        return tasks
