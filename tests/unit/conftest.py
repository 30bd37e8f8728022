# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures and fakes for unit tests.

The fakes implement the device and event source protocols in memory, so the
telemetry engine can be exercised without NVML or a GPU.
"""

import threading
import time
from collections.abc import Iterable, Sequence

import pytest

from nvgpu_exporter.common.enums import (
    FieldStatus,
    FieldValueType,
    LinkState,
    NvLinkEndpointType,
    TopologyLevel,
)
from nvgpu_exporter.common.exceptions import NotSupportedError, TransientQueryError
from nvgpu_exporter.common.log_suppressor import LogSuppressor
from nvgpu_exporter.common.models import (
    DeviceDetails,
    FabricInfo,
    FaultEvent,
    FieldRequest,
    FieldResult,
    LinkRemoteEndpoint,
)
from nvgpu_exporter.telemetry.codec import encode_field_value
from nvgpu_exporter.telemetry.sink import InMemoryObservationSink

GPU0_UUID = "GPU-ef6ef310-f8e2-cef9-036e-8f12d59b5ffc"
GPU1_UUID = "GPU-a1b2c3d4-e5f6-7890-abcd-ef1234567890"
CLUSTER_UUID = "4a1c0f7e-9b3d-4e2a-8c6f-1d2e3f405162"


def ok_result(
    value: float | int, value_type: FieldValueType = FieldValueType.UNSIGNED_LONG_LONG
) -> FieldResult:
    """A successful field result carrying ``value`` encoded as ``value_type``."""
    return FieldResult(
        status=FieldStatus.SUCCESS,
        value_type=value_type,
        raw=encode_field_value(value_type, value),
    )


def status_result(status: FieldStatus) -> FieldResult:
    """A failed field result with an empty value buffer."""
    return FieldResult(
        status=status,
        value_type=FieldValueType.UNSIGNED_LONG_LONG,
        raw=bytes(8),
    )


def device_details(**overrides: str) -> DeviceDetails:
    """Board identity of an H100, with any field overridden."""
    fields = {
        "name": "NVIDIA H100 80GB HBM3",
        "brand": "14",
        "serial": "1654922006536",
        "board_id": "6400",
        "vbios_version": "96.00.74.00.01",
        "oem_inforom_version": "2.1",
        "ecc_inforom_version": "7.16",
        "power_inforom_version": "",
        "inforom_image_version": "G520.0200.00.05",
    }
    fields.update(overrides)
    return DeviceDetails(**fields)


def ber_raw(mantissa: int, exponent: int) -> int:
    """Pack a bit error rate the way the device reports it."""
    return (mantissa << 8) | exponent


def fabric_health_mask(
    degraded_bandwidth: int = 0,
    route_recovery: int = 0,
    route_unhealthy: int = 0,
    access_timeout_recovery: int = 0,
    incorrect_configuration: int = 0,
) -> int:
    """Build a fabric health mask. Flags: 0 = not supported, 1 = true, 2 = false."""
    return (
        degraded_bandwidth
        | route_recovery << 2
        | route_unhealthy << 4
        | access_timeout_recovery << 6
        | incorrect_configuration << 8
    )


class FakeDevice:
    """In-memory :class:`DeviceProtocol` implementation.

    Every query records its call. Any method can be made to fail by putting an
    exception in ``errors`` under the method name.

    Args:
        uuid: Device UUID
        pci_bus_id: Device PCI bus id
        active_links: Links reported as enabled
        field_values: Results by (field id, scope id). Missing pairs report NOT_SUPPORTED.
        remote_endpoints: Remote NVLink endpoints by link. Missing links are not supported.
        ancestors: Common ancestor level by the other device's UUID
        cpu_affinity: CPU affinity words
        memory_affinity: NUMA affinity words
        fabric_info: Fabric info. None means the fabric query is not supported.
        details: Board identity (default: :func:`device_details`)
    """

    def __init__(
        self,
        uuid: str = GPU0_UUID,
        pci_bus_id: str = "00000000:3B:00.0",
        active_links: Iterable[int] = (),
        field_values: dict[tuple[int, int], FieldResult] | None = None,
        remote_endpoints: dict[int, LinkRemoteEndpoint] | None = None,
        ancestors: dict[str, TopologyLevel] | None = None,
        cpu_affinity: Sequence[int] = (),
        memory_affinity: Sequence[int] = (),
        fabric_info: FabricInfo | None = None,
        details: DeviceDetails | None = None,
    ) -> None:
        self._uuid = uuid
        self._pci_bus_id = pci_bus_id
        self.active_links = set(active_links)
        self.field_values = dict(field_values or {})
        self.remote_endpoints = dict(remote_endpoints or {})
        self.ancestors = dict(ancestors or {})
        self.cpu_affinity = list(cpu_affinity)
        self.memory_affinity = list(memory_affinity)
        self.fabric_info = fabric_info
        self.details = details if details is not None else device_details()
        self.errors: dict[str, Exception] = {}
        self.link_state_errors: dict[int, Exception] = {}
        self.field_value_calls: list[list[FieldRequest]] = []
        self.ancestor_calls: list[str] = []
        self.short_results = False
        self.handle = object()

    def __repr__(self) -> str:
        return f"FakeDevice({self._uuid})"

    def _maybe_raise(self, method: str) -> None:
        error = self.errors.get(method)
        if error is not None:
            raise error

    @property
    def uuid(self) -> str:
        self._maybe_raise("uuid")
        return self._uuid

    @property
    def pci_bus_id(self) -> str:
        self._maybe_raise("pci_bus_id")
        return self._pci_bus_id

    def get_link_state(self, link: int) -> LinkState:
        self._maybe_raise("get_link_state")
        if link in self.link_state_errors:
            raise self.link_state_errors[link]
        return LinkState.ENABLED if link in self.active_links else LinkState.DISABLED

    def get_field_values(self, requests: Sequence[FieldRequest]) -> list[FieldResult]:
        self.field_value_calls.append(list(requests))
        self._maybe_raise("get_field_values")
        results = [
            self.field_values.get(
                (request.field_id, request.scope_id),
                status_result(FieldStatus.NOT_SUPPORTED),
            )
            for request in requests
        ]
        return results[:-1] if self.short_results else results

    def get_common_ancestor(self, other) -> TopologyLevel:
        self.ancestor_calls.append(other.uuid)
        self._maybe_raise("get_common_ancestor")
        return self.ancestors.get(other.uuid, TopologyLevel.SYSTEM)

    def get_link_remote_endpoint(self, link: int) -> LinkRemoteEndpoint:
        self._maybe_raise("get_link_remote_endpoint")
        if link not in self.remote_endpoints:
            raise NotSupportedError(f"No NVLink {link}")
        return self.remote_endpoints[link]

    def get_cpu_affinity(self) -> list[int]:
        self._maybe_raise("get_cpu_affinity")
        return list(self.cpu_affinity)

    def get_memory_affinity(self) -> list[int]:
        self._maybe_raise("get_memory_affinity")
        return list(self.memory_affinity)

    def get_fabric_info(self) -> FabricInfo:
        self._maybe_raise("get_fabric_info")
        if self.fabric_info is None:
            raise NotSupportedError("Fabric info not supported")
        return self.fabric_info

    def get_device_details(self) -> DeviceDetails:
        self._maybe_raise("get_device_details")
        return self.details


def nvlink_to(device: FakeDevice, *links: int) -> dict[int, LinkRemoteEndpoint]:
    """Remote endpoints connecting ``links`` to GPU ``device``."""
    endpoint = LinkRemoteEndpoint(
        endpoint_type=NvLinkEndpointType.GPU,
        pci_bus_id=device.pci_bus_id,
    )
    return {link: endpoint for link in links}


class FakeEventSource:
    """Scripted :class:`FaultEventSourceProtocol` implementation.

    ``wait_next`` returns the scripted items in order: a :class:`FaultEvent` is
    returned, an exception is raised and None is a timeout. Once the script is
    exhausted every wait times out after a short sleep.
    """

    def __init__(self, script: Iterable[FaultEvent | Exception | None] = ()) -> None:
        self._script = list(script)
        self._lock = threading.Lock()
        self.wait_calls = 0
        self.closed = False

    def wait_next(self, timeout: float) -> FaultEvent | None:
        with self._lock:
            self.wait_calls += 1
            item = self._script.pop(0) if self._script else None
            exhausted = not self._script and item is None
        if exhausted:
            time.sleep(min(timeout, 0.01))
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sink() -> InMemoryObservationSink:
    return InMemoryObservationSink()


@pytest.fixture
def suppressor() -> LogSuppressor:
    """A log suppressor with suppression disabled, so every failure is logged."""
    return LogSuppressor(window=0)


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def gpu_pair() -> tuple[FakeDevice, FakeDevice]:
    """Two GPUs joined by two NVLinks, with links 0 and 1 active on both."""
    gpu0 = FakeDevice(
        uuid=GPU0_UUID,
        pci_bus_id="00000000:3B:00.0",
        active_links=(0, 1),
        cpu_affinity=[0b1111],
        memory_affinity=[0b1],
    )
    gpu1 = FakeDevice(
        uuid=GPU1_UUID,
        pci_bus_id="00000000:5E:00.0",
        active_links=(0, 1),
        cpu_affinity=[0b1111],
        memory_affinity=[0b1],
    )
    gpu0.remote_endpoints = nvlink_to(gpu1, 0, 1)
    gpu1.remote_endpoints = nvlink_to(gpu0, 0, 1)
    return gpu0, gpu1


@pytest.fixture
def transient_error() -> TransientQueryError:
    return TransientQueryError("GPU is lost")
