# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from nvgpu_exporter.common.enums import LinkState, TopologyLevel
    from nvgpu_exporter.common.models import (
        DeviceDetails,
        FabricInfo,
        FaultEvent,
        FieldRequest,
        FieldResult,
        LinkRemoteEndpoint,
    )


@runtime_checkable
class DeviceProtocol(Protocol):
    """Query capability for one GPU.

    Methods raise :class:`~nvgpu_exporter.common.exceptions.NotSupportedError`
    when the hardware lacks the capability and
    :class:`~nvgpu_exporter.common.exceptions.TransientQueryError` for any other
    failure.
    """

    @property
    def uuid(self) -> str: ...

    @property
    def pci_bus_id(self) -> str: ...

    def get_link_state(self, link: int) -> LinkState: ...

    def get_field_values(
        self, requests: Sequence[FieldRequest]
    ) -> list[FieldResult]:
        """Query all requests in one call. Results are returned 1:1 in request order."""
        ...

    def get_common_ancestor(self, other: DeviceProtocol) -> TopologyLevel: ...

    def get_link_remote_endpoint(self, link: int) -> LinkRemoteEndpoint: ...

    def get_cpu_affinity(self) -> list[int]:
        """CPU affinity bitmask as a list of 64-bit words."""
        ...

    def get_memory_affinity(self) -> list[int]:
        """NUMA node affinity bitmask as a list of 64-bit words."""
        ...

    def get_fabric_info(self) -> FabricInfo: ...

    def get_device_details(self) -> DeviceDetails:
        """Board, serial and firmware versions. Read once at startup."""
        ...


@runtime_checkable
class FaultEventSourceProtocol(Protocol):
    """A subscription to critical fault events for a set of devices."""

    def wait_next(self, timeout: float) -> FaultEvent | None:
        """Block for up to ``timeout`` seconds. Returns None on timeout."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class ObservationSinkProtocol(Protocol):
    """Destination for exported observations. Must be safe for concurrent use."""

    def set_gauge(
        self, name: str, labels: Mapping[str, str], value: float
    ) -> None: ...

    def increment_counter(
        self, name: str, labels: Mapping[str, str], amount: float = 1.0
    ) -> None: ...
