# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Wiring of collectors, the polling scheduler and the event collector."""

import asyncio
from collections.abc import Sequence

from nvgpu_exporter.common.enums import TopologyMode
from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.log_suppressor import LogSuppressor
from nvgpu_exporter.common.mixins import ExporterLoggerMixin
from nvgpu_exporter.common.protocols import DeviceProtocol, ObservationSinkProtocol
from nvgpu_exporter.telemetry.collectors import (
    BaseCollector,
    ClockEventCollector,
    FabricHealthCollector,
    InventoryCollector,
    NVLinkErrorCollector,
    TopologyCollector,
    VersionsProvider,
)
from nvgpu_exporter.telemetry.events import EventCollector, FaultSubscriber
from nvgpu_exporter.telemetry.scheduler import PollingScheduler

__all__ = ["TelemetryEngine"]


class TelemetryEngine(ExporterLoggerMixin):
    """Runs periodic collection and fault event counting for a fixed device set.

    The polling scheduler and the event collector run independently and share
    only the device list and the sink. GPU inventory is written once
    before polling starts. Topology is collected according to
    ``topology_mode``: once before polling starts, as the first collector of
    every pass, or not at all. Events are only collected when a ``subscribe``
    function is given and events are enabled.

    Args:
        devices: Ordered device list with stable identity
        sink: Destination for all observations
        subscribe: Creates the fault event subscription (None disables events)
        versions: Reads host driver versions for the exporter info gauge
        interval: Seconds between polling passes (default: from Environment)
        topology_mode: When to collect topology (default: from Environment)
        skip_if_running: Skip ticks while a pass is running (default: from Environment)
        events_enabled: Collect fault events (default: from Environment)
        max_links: NVLinks scanned per device (default: from Environment)
    """

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        subscribe: FaultSubscriber | None = None,
        versions: VersionsProvider | None = None,
        interval: float | None = None,
        topology_mode: TopologyMode | None = None,
        skip_if_running: bool | None = None,
        events_enabled: bool | None = None,
        max_links: int | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.devices = list(devices)
        self.sink = sink
        self.topology_mode = TopologyMode(
            topology_mode
            if topology_mode is not None
            else Environment.COLLECTOR.TOPOLOGY_MODE
        )
        suppressor = LogSuppressor()
        self.inventory_collector = InventoryCollector(
            self.devices, sink, versions=versions, suppressor=suppressor
        )

        self.collectors: list[BaseCollector] = [
            NVLinkErrorCollector(
                self.devices, sink, max_links=max_links, suppressor=suppressor
            ),
            FabricHealthCollector(self.devices, sink, suppressor=suppressor),
            ClockEventCollector(self.devices, sink, suppressor=suppressor),
        ]
        self.topology_collector: TopologyCollector | None = None
        if self.topology_mode != TopologyMode.DISABLED:
            self.topology_collector = TopologyCollector(
                self.devices, sink, max_links=max_links, suppressor=suppressor
            )
            if self.topology_mode == TopologyMode.EVERY_TICK:
                self.collectors.insert(0, self.topology_collector)

        self.scheduler = PollingScheduler(
            interval=interval, skip_if_running=skip_if_running
        )
        for collector in self.collectors:
            self.scheduler.register(collector.collect, collector.__class__.__name__)

        if events_enabled is None:
            events_enabled = Environment.EVENTS.ENABLED
        self.event_collector: EventCollector | None = None
        if events_enabled and subscribe is not None:
            self.event_collector = EventCollector(self.devices, sink, subscribe)

    async def start(self) -> None:
        """Subscribe to events, write inventory and topology, then start polling.

        Raises:
            FatalInitError: If the event subscription cannot be created.
        """
        self.info(f"Starting telemetry for {len(self.devices)} devices")
        if self.event_collector is not None:
            await self.event_collector.start()

        try:
            await asyncio.to_thread(self.inventory_collector.collect)
        except Exception as e:
            self.exception(f"Inventory collection failed: {e!r}")

        if self.topology_mode == TopologyMode.ONCE:
            try:
                await asyncio.to_thread(self.topology_collector.collect)
            except Exception as e:
                self.exception(f"Topology collection failed: {e!r}")

        await self.scheduler.start()

    async def stop(self) -> None:
        """Stop polling and event collection."""
        stops = [self.scheduler.stop()]
        if self.event_collector is not None:
            stops.append(self.event_collector.stop())
        await asyncio.gather(*stops)
        self.info("Telemetry stopped")
