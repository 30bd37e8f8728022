# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Critical fault (Xid) event subscription and counting."""

import asyncio
import threading
from collections.abc import Callable, Sequence
from typing import TypeAlias

from nvgpu_exporter.common.enums import SchedulerState
from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.exceptions import (
    FatalInitError,
    InvalidStateError,
    NvGpuExporterError,
)
from nvgpu_exporter.common.mixins import ExporterLoggerMixin
from nvgpu_exporter.common.models import FaultEvent
from nvgpu_exporter.common.protocols import (
    DeviceProtocol,
    FaultEventSourceProtocol,
    ObservationSinkProtocol,
)
from nvgpu_exporter.telemetry.constants import EVENT_TYPE_XID_CRITICAL_ERROR
from nvgpu_exporter.telemetry.metrics import XID_ERRORS

__all__ = ["EventCollector", "FaultCountTable", "FaultSubscriber"]

FaultSubscriber: TypeAlias = Callable[
    [Sequence[DeviceProtocol]], FaultEventSourceProtocol
]
"""Creates one event subscription covering every given device."""


class FaultCountTable:
    """Occurrences per (device UUID, fault code).

    Entries are created on first occurrence and only ever incremented.
    All access goes through one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[tuple[str, int], int] = {}

    def increment(self, uuid: str, fault_code: int) -> int:
        """Count one occurrence and return the new total."""
        key = (uuid, fault_code)
        with self._lock:
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            return count

    def get(self, uuid: str, fault_code: int) -> int:
        with self._lock:
            return self._counts.get((uuid, fault_code), 0)

    def snapshot(self) -> dict[tuple[str, int], int]:
        with self._lock:
            return dict(self._counts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)


class EventCollector(ExporterLoggerMixin):
    """Waits for critical fault events and counts them per device and fault code.

    :meth:`start` subscribes every device and then runs the wait loop as an
    asyncio task; each blocking wait runs in a worker thread and returns after
    at most ``wait_timeout`` seconds. A timeout simply re-enters the wait. Any
    other wait failure is logged and the loop pauses for ``error_backoff`` seconds
    before waiting again. :meth:`stop` ends the loop after the wait in progress
    returns and closes the subscription.

    Args:
        devices: Devices to subscribe
        sink: Observation sink receiving the ``xid_errors_total`` counter
        subscribe: Creates the event subscription for ``devices``
        wait_timeout: Seconds per blocking wait (default: from Environment)
        error_backoff: Pause after a failed wait (default: from Environment)
        event_type_mask: Event type bits that qualify as a fault
        table: Fault count table (default: a new table)
    """

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        subscribe: FaultSubscriber,
        wait_timeout: float | None = None,
        error_backoff: float | None = None,
        event_type_mask: int = EVENT_TYPE_XID_CRITICAL_ERROR,
        table: FaultCountTable | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.devices = list(devices)
        self.sink = sink
        self._subscribe = subscribe
        self.wait_timeout = (
            wait_timeout
            if wait_timeout is not None
            else Environment.EVENTS.WAIT_TIMEOUT
        )
        self.error_backoff = (
            error_backoff
            if error_backoff is not None
            else Environment.EVENTS.ERROR_BACKOFF
        )
        self.event_type_mask = event_type_mask
        self.table = table if table is not None else FaultCountTable()
        self._source: FaultEventSourceProtocol | None = None
        self._task: asyncio.Task | None = None
        self._stop_requested = threading.Event()
        self._state = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    def subscribe(self) -> FaultEventSourceProtocol:
        """Create the event subscription.

        Raises:
            FatalInitError: If the subscription cannot be created.
        """
        if self._source is not None:
            return self._source
        try:
            self._source = self._subscribe(self.devices)
        except FatalInitError:
            raise
        except NvGpuExporterError as e:
            raise FatalInitError(f"Failed to subscribe to fault events: {e}") from e
        self.info(f"Subscribed {len(self.devices)} devices to Xid events")
        return self._source

    async def start(self) -> None:
        """Subscribe and start the wait loop in the background."""
        if self._state != SchedulerState.IDLE:
            raise InvalidStateError(
                f"Cannot start an event collector that is {self._state}"
            )
        self.subscribe()
        self._state = SchedulerState.RUNNING
        self._task = asyncio.create_task(self._run(), name="xid-event-collector")

    async def stop(self) -> None:
        """Stop the wait loop and close the subscription.

        Returns once the wait in progress has returned, which takes at most
        ``wait_timeout`` seconds.
        """
        if self._state == SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED
        self._stop_requested.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._source is not None:
            self._source.close()
            self._source = None
        self.info("Xid event collector stopped")

    async def _run(self) -> None:
        self.info("Started Xid event collector")
        while not self._stop_requested.is_set():
            try:
                await asyncio.to_thread(self.poll_once)
            except Exception as e:
                self.exception(f"Unexpected error in Xid event loop: {e!r}")

    def poll_once(self) -> FaultEvent | None:
        """Wait for one event and handle it if it qualifies.

        Returns the handled event, or None on timeout, on a wait error or when
        the event type does not qualify. A wait error is followed by a pause of
        ``error_backoff`` seconds, cut short by :meth:`stop`.
        """
        try:
            event = self.subscribe().wait_next(self.wait_timeout)
        except NvGpuExporterError as e:
            self.error(f"Error waiting for events: {e}")
            self._stop_requested.wait(self.error_backoff)
            return None

        if event is None:
            return None
        if not event.event_type & self.event_type_mask:
            self.debug(lambda: f"Ignoring event type {event.event_type:#x}")
            return None
        self.handle_event(event)
        return event

    def handle_event(self, event: FaultEvent) -> None:
        """Count one fault event and export it."""
        try:
            uuid = event.device.uuid
            pci_bus_id = event.device.pci_bus_id
        except NvGpuExporterError as e:
            self.error(f"Failed to identify device for Xid event: {e}")
            return

        self.table.increment(uuid, event.fault_code)
        self.sink.increment_counter(
            XID_ERRORS.name,
            {"UUID": uuid, "pci_bus_id": pci_bus_id, "xid": str(event.fault_code)},
        )
        self.warning(
            f"Xid error detected - UUID: {uuid}, PCI Bus ID: {pci_bus_id}, Xid: {event.fault_code}"
        )
