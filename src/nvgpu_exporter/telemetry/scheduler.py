# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Fixed-interval polling of registered collect functions."""

import asyncio
from collections.abc import Callable
from typing import TypeAlias

from nvgpu_exporter.common.enums import SchedulerState
from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.exceptions import InvalidStateError
from nvgpu_exporter.common.loop_scheduler import LoopScheduler
from nvgpu_exporter.common.mixins import ExporterLoggerMixin

__all__ = ["CollectFunction", "PollingScheduler"]

CollectFunction: TypeAlias = Callable[[], None]
"""A blocking collection pass. Runs in a worker thread."""


class PollingScheduler(ExporterLoggerMixin):
    """Runs every registered collect function on a fixed interval.

    ``start()`` runs one full pass before returning, then pass ``n`` is fired
    at ``anchor + n * interval`` where ``anchor`` is the time ``start()`` was
    called. A pass that outlasts the interval does not delay the schedule:
    the next pass still fires on time and the two overlap, unless
    ``skip_if_running`` is set, in which case the tick is skipped.

    Functions run in registration order inside a worker thread. An exception
    from one function is logged and the remaining functions still run.

    Args:
        interval: Seconds between passes (default: from Environment)
        skip_if_running: Skip a tick while the previous pass is still running
            (default: from Environment)
    """

    def __init__(
        self,
        interval: float | None = None,
        skip_if_running: bool | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.interval = (
            interval
            if interval is not None
            else Environment.COLLECTOR.COLLECTION_INTERVAL
        )
        if self.interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.interval}")
        self.skip_if_running = (
            skip_if_running
            if skip_if_running is not None
            else Environment.COLLECTOR.SKIP_IF_RUNNING
        )
        self._collectors: list[tuple[str, CollectFunction]] = []
        self._state = SchedulerState.IDLE
        self._loop_scheduler: LoopScheduler | None = None
        self._anchor = 0.0
        self._tick = 0
        self._passes_running = 0
        self.passes_completed = 0
        self.ticks_skipped = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_pass_running(self) -> bool:
        return self._passes_running > 0

    def register(self, collect: CollectFunction, name: str | None = None) -> None:
        """Add a collect function. Must be called before :meth:`start`."""
        if self._state != SchedulerState.IDLE:
            raise InvalidStateError(
                f"Cannot register collectors while the scheduler is {self._state}"
            )
        self._collectors.append((name or _callable_name(collect), collect))

    async def start(self) -> None:
        """Run the first pass immediately, then start the periodic schedule."""
        if self._state != SchedulerState.IDLE:
            raise InvalidStateError(f"Cannot start a scheduler that is {self._state}")

        self._loop_scheduler = LoopScheduler(
            exception_handler=self._on_task_exception
        )
        self._anchor = self._loop_scheduler.loop.time()
        self._state = SchedulerState.RUNNING
        self.info(
            f"Starting polling of {len(self._collectors)} collectors every {self.interval}s"
        )
        await self.run_pass()
        if self._state == SchedulerState.RUNNING:
            self._schedule_next()

    async def stop(self) -> None:
        """Stop the schedule and cancel any pass that is still being awaited.

        A pass already running in a worker thread finishes in the background;
        its results are still written to the sink.
        """
        if self._state == SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED
        if self._loop_scheduler is not None:
            tasks = self._loop_scheduler.cancel_all()
            await asyncio.gather(*tasks, return_exceptions=True)
        self.info("Polling stopped")

    async def run_pass(self) -> None:
        """Run every registered collect function once, in registration order."""
        self._passes_running += 1
        try:
            await asyncio.to_thread(self._run_collectors)
        finally:
            self._passes_running -= 1
        self.passes_completed += 1

    def _run_collectors(self) -> None:
        for name, collect in self._collectors:
            try:
                collect()
            except Exception as e:
                self.exception(f"Collector {name} failed: {e!r}")

    def _schedule_next(self) -> None:
        self._tick += 1
        self._loop_scheduler.schedule_at(
            self._anchor + self._tick * self.interval, self._on_tick()
        )

    async def _on_tick(self) -> None:
        if self._state != SchedulerState.RUNNING:
            return
        self._schedule_next()

        if self.skip_if_running and self.is_pass_running:
            self.ticks_skipped += 1
            self.warning(
                f"Skipping polling tick {self._tick - 1}: previous pass still running"
            )
            return
        await self.run_pass()

    def _on_task_exception(self, task: asyncio.Task) -> None:
        self.error(f"Polling task failed: {task.exception()!r}")


def _callable_name(func: Callable) -> str:
    owner = getattr(func, "__self__", None)
    name = getattr(func, "__name__", repr(func))
    if owner is not None:
        return f"{owner.__class__.__name__}.{name}"
    return name
