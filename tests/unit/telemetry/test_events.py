# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
import threading

import pytest

from nvgpu_exporter.common.enums import SchedulerState
from nvgpu_exporter.common.exceptions import (
    FatalInitError,
    InvalidStateError,
    TransientQueryError,
)
from nvgpu_exporter.common.models import FaultEvent
from nvgpu_exporter.telemetry.constants import EVENT_TYPE_XID_CRITICAL_ERROR
from nvgpu_exporter.telemetry.events import EventCollector, FaultCountTable
from tests.unit.conftest import GPU0_UUID, FakeDevice, FakeEventSource


def xid(device: FakeDevice, code: int) -> FaultEvent:
    return FaultEvent(
        device=device, event_type=EVENT_TYPE_XID_CRITICAL_ERROR, fault_code=code
    )


def make_collector(
    devices, sink, source: FakeEventSource, error_backoff: float = 0.01
) -> EventCollector:
    return EventCollector(
        devices,
        sink,
        lambda _: source,
        wait_timeout=0.01,
        error_backoff=error_backoff,
    )


class TestFaultCountTable:
    """Tests for the per (device, fault code) count table."""

    def test_increment_returns_running_total(self):
        table = FaultCountTable()
        assert table.increment("GPU-a", 79) == 1
        assert table.increment("GPU-a", 79) == 2
        assert table.get("GPU-a", 79) == 2

    def test_keys_are_independent(self):
        table = FaultCountTable()
        table.increment("GPU-a", 79)
        table.increment("GPU-a", 48)
        table.increment("GPU-b", 79)

        assert table.snapshot() == {("GPU-a", 79): 1, ("GPU-a", 48): 1, ("GPU-b", 79): 1}
        assert len(table) == 3

    def test_missing_key_is_zero(self):
        assert FaultCountTable().get("GPU-a", 13) == 0

    def test_concurrent_increments_are_not_lost(self):
        table = FaultCountTable()

        def worker():
            for _ in range(1000):
                table.increment("GPU-a", 79)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert table.get("GPU-a", 79) == 8000


class TestEventCollectorPollOnce:
    """Tests for handling one wait result."""

    def test_event_is_counted_and_exported(self, sink, fake_device, caplog):
        source = FakeEventSource([xid(fake_device, 79)])
        collector = make_collector([fake_device], sink, source)

        event = collector.poll_once()

        assert event is not None
        assert collector.table.get(GPU0_UUID, 79) == 1
        assert (
            sink.counter(
                "xid_errors_total",
                UUID=GPU0_UUID,
                pci_bus_id=fake_device.pci_bus_id,
                xid="79",
            )
            == 1.0
        )
        assert f"Xid error detected - UUID: {GPU0_UUID}" in caplog.text
        assert "Xid: 79" in caplog.text

    def test_repeated_events_accumulate(self, sink, fake_device):
        source = FakeEventSource([xid(fake_device, 48), xid(fake_device, 48)])
        collector = make_collector([fake_device], sink, source)

        collector.poll_once()
        collector.poll_once()

        assert collector.table.get(GPU0_UUID, 48) == 2
        assert sink.samples("xid_errors_total")[0][1] == 2.0

    def test_timeout_counts_and_logs_nothing(self, sink, fake_device, caplog):
        source = FakeEventSource([None])
        collector = make_collector([fake_device], sink, source)
        collector.subscribe()
        caplog.set_level(logging.DEBUG)
        caplog.clear()

        assert collector.poll_once() is None

        assert len(collector.table) == 0
        assert sink.samples("xid_errors_total") == []
        assert caplog.records == []

    def test_other_event_types_are_ignored(self, sink, fake_device):
        event = FaultEvent(device=fake_device, event_type=0x1, fault_code=0)
        collector = make_collector([fake_device], sink, FakeEventSource([event]))

        assert collector.poll_once() is None
        assert len(collector.table) == 0

    def test_wait_error_is_logged_and_survived(self, sink, fake_device, caplog):
        source = FakeEventSource([TransientQueryError("driver busy"), xid(fake_device, 31)])
        collector = make_collector([fake_device], sink, source)

        assert collector.poll_once() is None
        assert "Error waiting for events" in caplog.text

        assert collector.poll_once() is not None
        assert collector.table.get(GPU0_UUID, 31) == 1

    def test_unidentifiable_device_is_not_counted(self, sink, fake_device, caplog):
        fake_device.errors["uuid"] = TransientQueryError("gpu lost")
        collector = make_collector(
            [fake_device], sink, FakeEventSource([xid(fake_device, 79)])
        )

        collector.poll_once()

        assert len(collector.table) == 0
        assert "Failed to identify device" in caplog.text


class TestEventCollectorSubscribe:
    """Tests for subscription failures."""

    def test_fatal_init_error_propagates(self, sink, fake_device):
        def subscribe(_):
            raise FatalInitError("no event set")

        collector = EventCollector([fake_device], sink, subscribe)
        with pytest.raises(FatalInitError, match="no event set"):
            collector.subscribe()

    def test_query_error_becomes_fatal(self, sink, fake_device):
        def subscribe(_):
            raise TransientQueryError("registration failed")

        collector = EventCollector([fake_device], sink, subscribe)
        with pytest.raises(FatalInitError, match="registration failed"):
            collector.subscribe()

    def test_subscribes_once(self, sink, fake_device):
        calls = []

        def subscribe(devices):
            calls.append(list(devices))
            return FakeEventSource()

        collector = EventCollector([fake_device], sink, subscribe)
        collector.subscribe()
        collector.subscribe()

        assert calls == [[fake_device]]

    async def test_start_raises_on_subscription_failure(self, sink, fake_device):
        def subscribe(_):
            raise FatalInitError("no event set")

        collector = EventCollector([fake_device], sink, subscribe)
        with pytest.raises(FatalInitError):
            await collector.start()
        assert collector.state == SchedulerState.IDLE


class TestEventCollectorLoop:
    """Tests for the background wait loop."""

    async def test_loop_counts_events_until_stopped(self, sink, gpu_pair):
        gpu0, gpu1 = gpu_pair
        source = FakeEventSource(
            [xid(gpu0, 79), None, xid(gpu1, 79), TransientQueryError("busy"), xid(gpu0, 79)]
        )
        collector = make_collector(gpu_pair, sink, source)

        await collector.start()
        await asyncio.sleep(0.1)
        await collector.stop()

        assert collector.table.get(gpu0.uuid, 79) == 2
        assert collector.table.get(gpu1.uuid, 79) == 1
        assert source.closed
        assert collector.state == SchedulerState.STOPPED

    async def test_stop_returns_within_wait_timeout(self, sink, fake_device):
        collector = make_collector([fake_device], sink, FakeEventSource())
        await collector.start()
        await asyncio.sleep(0.02)

        await asyncio.wait_for(collector.stop(), timeout=1.0)

        assert collector.state == SchedulerState.STOPPED

    async def test_start_twice_raises(self, sink, fake_device):
        collector = make_collector([fake_device], sink, FakeEventSource())
        await collector.start()
        try:
            with pytest.raises(InvalidStateError):
                await collector.start()
        finally:
            await collector.stop()

    async def test_repeated_wait_errors_are_paced(self, sink, fake_device):
        source = FakeEventSource([TransientQueryError("GPU is lost")] * 50)
        collector = make_collector([fake_device], sink, source, error_backoff=0.05)

        await collector.start()
        await asyncio.sleep(0.12)
        await collector.stop()

        assert 1 <= source.wait_calls <= 4

    async def test_stop_interrupts_error_backoff(self, sink, fake_device):
        source = FakeEventSource([TransientQueryError("GPU is lost")] * 5)
        collector = make_collector([fake_device], sink, source, error_backoff=30.0)

        await collector.start()
        await asyncio.sleep(0.02)
        await asyncio.wait_for(collector.stop(), timeout=1.0)

        assert source.wait_calls == 1
        assert collector.state == SchedulerState.STOPPED
