# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import Field

from nvgpu_exporter.common.enums import NvLinkEndpointType
from nvgpu_exporter.common.models.base_models import ExporterBaseModel

if TYPE_CHECKING:
    from nvgpu_exporter.common.protocols import DeviceProtocol


@dataclass(frozen=True, slots=True)
class FieldRequest:
    """One telemetry counter on one scope (NVLink index) of a device."""

    field_id: int
    scope_id: int = 0


@dataclass(frozen=True, slots=True)
class FieldResult:
    """Raw result for one :class:`FieldRequest`, returned in request order.

    ``status`` is the per-request return code, distinct from the status of the
    batched call itself.
    """

    status: int
    value_type: int
    raw: bytes


@dataclass(frozen=True, slots=True)
class FabricInfo:
    """GPU fabric registration state (``nvmlGpuFabricInfo_v2_t``)."""

    cluster_uuid: str
    clique_id: int
    state: int
    status: int
    health_mask: int


@dataclass(frozen=True, slots=True)
class DeviceDetails:
    """Static board and firmware identity of one GPU.

    ``board_id`` is ``unknown`` and ``power_inforom_version`` is empty when
    the device does not report them.
    """

    name: str
    brand: str
    serial: str
    board_id: str
    vbios_version: str
    oem_inforom_version: str
    ecc_inforom_version: str
    power_inforom_version: str
    inforom_image_version: str


@dataclass(frozen=True, slots=True)
class DriverVersions:
    """Host driver, NVML library and CUDA driver versions."""

    driver_version: str
    nvml_version: str
    cuda_version: str


@dataclass(frozen=True, slots=True)
class LinkRemoteEndpoint:
    """The device at the far end of an NVLink."""

    endpoint_type: NvLinkEndpointType
    pci_bus_id: str


@dataclass(frozen=True, slots=True)
class FaultEvent:
    """A critical fault event delivered by an event source."""

    device: DeviceProtocol
    event_type: int
    fault_code: int


class NicAdjacency(ExporterBaseModel):
    """A NIC or switch endpoint reachable over NVLink from one GPU."""

    pci_bus_id: str = Field(description="PCI bus id of the remote endpoint")
    endpoint_type: NvLinkEndpointType = Field(
        description="Type of the remote endpoint"
    )
    link_count: int = Field(
        ge=1, description="Number of links from the GPU to this endpoint"
    )


class GpuTopologyInfo(ExporterBaseModel):
    """Per-GPU identity and affinity used to label topology metrics."""

    index: int = Field(ge=0, description="Position of the GPU in the device list")
    uuid: str = Field(description="GPU UUID")
    pci_bus_id: str = Field(description="GPU PCI bus id")
    cpu_affinity: str = Field(description="CPU affinity as a range list, e.g. 0-35")
    numa_affinity: str = Field(description="NUMA node affinity as a range list")
    gpu_numa_id: str = Field(
        description="NUMA node the GPU memory is attached to, when it is a single node"
    )

    @property
    def gpu_id(self) -> str:
        return f"GPU{self.index}"


class TopologySnapshot(ExporterBaseModel):
    """Result of one topology reconstruction."""

    gpus: list[GpuTopologyInfo] = Field(
        description="GPU identities in device order, without GPUs whose identity is unreadable"
    )
    matrix: list[list[str]] = Field(
        description="Symmetric N x N connection labels; X on the diagonal"
    )
    nic_adjacency: dict[int, list[NicAdjacency]] = Field(
        default_factory=dict,
        description="GPU index to the NIC/switch endpoints reachable over NVLink",
    )

    def connection(self, i: int, j: int) -> str:
        return self.matrix[i][j]
