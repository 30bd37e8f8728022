# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""pynvml-backed implementation of :class:`DeviceProtocol`."""

import ctypes
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from functools import cached_property

import pynvml

from nvgpu_exporter.common.enums import LinkState, NvLinkEndpointType, TopologyLevel
from nvgpu_exporter.common.exceptions import (
    FatalInitError,
    NotSupportedError,
    TransientQueryError,
)
from nvgpu_exporter.common.models import (
    DeviceDetails,
    DriverVersions,
    FabricInfo,
    FieldRequest,
    FieldResult,
    LinkRemoteEndpoint,
)
from nvgpu_exporter.common.protocols import DeviceProtocol
from nvgpu_exporter.nvml.conv import (
    cuda_version_to_string,
    pci_bus_id_to_string,
    struct_field_bytes,
    text,
    uuid_bytes_to_string,
)

__all__ = [
    "AFFINITY_WORDS",
    "NvmlDevice",
    "get_driver_versions",
    "nvml_errors",
    "nvml_session",
]

AFFINITY_WORDS = 16
"""64-bit words requested for CPU and NUMA affinity masks (up to 1024 ids)."""


@contextmanager
def nvml_errors(operation: str) -> Iterator[None]:
    """Translate pynvml errors raised inside the block.

    Not supported and invalid argument (e.g. a link index past the device's
    link count) become :class:`NotSupportedError`; anything else becomes
    :class:`TransientQueryError`.
    """
    try:
        yield
    except (pynvml.NVMLError_NotSupported, pynvml.NVMLError_InvalidArgument) as e:
        raise NotSupportedError(f"{operation}: {e}") from e
    except pynvml.NVMLError as e:
        raise TransientQueryError(f"{operation}: {e}") from e


@contextmanager
def nvml_session() -> Iterator[None]:
    """Initialize NVML for the duration of the block.

    Raises:
        FatalInitError: If NVML cannot be initialized.
    """
    try:
        pynvml.nvmlInit()
    except pynvml.NVMLError as e:
        raise FatalInitError(f"Failed to initialize NVML: {e}") from e
    try:
        yield
    finally:
        pynvml.nvmlShutdown()


def get_driver_versions() -> DriverVersions:
    """Driver, NVML and CUDA driver versions of the host. Requires an open session.

    Raises:
        NvGpuExporterError: If any version cannot be read.
    """
    with nvml_errors("Failed to get driver version"):
        driver_version = text(pynvml.nvmlSystemGetDriverVersion())
    with nvml_errors("Failed to get NVML version"):
        nvml_version = text(pynvml.nvmlSystemGetNVMLVersion())
    with nvml_errors("Failed to get CUDA version"):
        cuda_version = pynvml.nvmlSystemGetCudaDriverVersion()
    return DriverVersions(
        driver_version=driver_version,
        nvml_version=nvml_version,
        cuda_version=cuda_version_to_string(cuda_version),
    )


class NvmlDevice:
    """One GPU handle.

    UUID and PCI bus id are read on first access and cached for the lifetime
    of the object.
    """

    def __init__(self, handle) -> None:
        self.handle = handle

    def __repr__(self) -> str:
        return f"NvmlDevice(handle={self.address:#x})"

    @property
    def address(self) -> int:
        """Address of the underlying handle, used to match event devices."""
        return ctypes.cast(self.handle, ctypes.c_void_p).value or 0

    @cached_property
    def uuid(self) -> str:
        with nvml_errors("Failed to get UUID"):
            return text(pynvml.nvmlDeviceGetUUID(self.handle))

    @cached_property
    def pci_bus_id(self) -> str:
        with nvml_errors("Failed to get PCI info"):
            info = pynvml.nvmlDeviceGetPciInfo(self.handle)
        return pci_bus_id_to_string(info.busIdLegacy)

    def get_link_state(self, link: int) -> LinkState:
        with nvml_errors(f"Failed to get NVLink state for link {link}"):
            state = pynvml.nvmlDeviceGetNvLinkState(self.handle, link)
        if state == pynvml.NVML_FEATURE_ENABLED:
            return LinkState.ENABLED
        return LinkState.DISABLED

    def get_field_values(
        self, requests: Sequence[FieldRequest]
    ) -> list[FieldResult]:
        with nvml_errors("Failed to get field values"):
            values = pynvml.nvmlDeviceGetFieldValues(
                self.handle,
                [(request.field_id, request.scope_id) for request in requests],
            )
        return [
            FieldResult(
                status=value.nvmlReturn,
                value_type=value.valueType,
                raw=bytes(value.value),
            )
            for value in values
        ]

    def get_common_ancestor(self, other: DeviceProtocol) -> TopologyLevel:
        with nvml_errors("Failed to get topology common ancestor"):
            level = pynvml.nvmlDeviceGetTopologyCommonAncestor(
                self.handle, other.handle
            )
        try:
            return TopologyLevel(level)
        except ValueError:
            raise TransientQueryError(f"Unknown topology level: {level}") from None

    def get_link_remote_endpoint(self, link: int) -> LinkRemoteEndpoint:
        with nvml_errors(f"Failed to get NVLink remote PCI info for link {link}"):
            info = pynvml.nvmlDeviceGetNvLinkRemotePciInfo(self.handle, link)
        try:
            with nvml_errors(f"Failed to get NVLink remote device type for link {link}"):
                remote_type = pynvml.nvmlDeviceGetNvLinkRemoteDeviceType(
                    self.handle, link
                )
            endpoint_type = NvLinkEndpointType(remote_type)
        except (NotSupportedError, ValueError):
            endpoint_type = NvLinkEndpointType.UNKNOWN
        return LinkRemoteEndpoint(
            endpoint_type=endpoint_type,
            pci_bus_id=f"{info.domain:04X}:{info.bus:02X}:{info.device:02X}.0",
        )

    def get_cpu_affinity(self) -> list[int]:
        with nvml_errors("Failed to get CPU affinity"):
            return list(
                pynvml.nvmlDeviceGetCpuAffinityWithinScope(
                    self.handle, AFFINITY_WORDS, pynvml.NVML_AFFINITY_SCOPE_NODE
                )
            )

    def get_memory_affinity(self) -> list[int]:
        with nvml_errors("Failed to get NUMA affinity"):
            return list(
                pynvml.nvmlDeviceGetMemoryAffinity(
                    self.handle, AFFINITY_WORDS, pynvml.NVML_AFFINITY_SCOPE_NODE
                )
            )

    def get_fabric_info(self) -> FabricInfo:
        info = pynvml.c_nvmlGpuFabricInfoV_t()
        info.version = pynvml.nvmlGpuFabricInfo_v2
        with nvml_errors("Failed to get fabric info"):
            pynvml.nvmlDeviceGetGpuFabricInfoV(self.handle, ctypes.byref(info))
        return FabricInfo(
            cluster_uuid=uuid_bytes_to_string(struct_field_bytes(info, "clusterUuid")),
            clique_id=info.cliqueId,
            state=info.state,
            status=info.status,
            health_mask=info.healthMask,
        )

    def get_device_details(self) -> DeviceDetails:
        with nvml_errors("Failed to get name"):
            name = text(pynvml.nvmlDeviceGetName(self.handle))
        with nvml_errors("Failed to get brand"):
            brand = pynvml.nvmlDeviceGetBrand(self.handle)
        with nvml_errors("Failed to get serial"):
            serial = text(pynvml.nvmlDeviceGetSerial(self.handle))
        try:
            with nvml_errors("Failed to get board ID"):
                board_id = str(pynvml.nvmlDeviceGetBoardId(self.handle))
        except NotSupportedError:
            board_id = "unknown"
        with nvml_errors("Failed to get VBIOS version"):
            vbios_version = text(pynvml.nvmlDeviceGetVbiosVersion(self.handle))
        with nvml_errors("Failed to get OEM InfoROM version"):
            oem_version = text(
                pynvml.nvmlDeviceGetInforomVersion(self.handle, pynvml.NVML_INFOROM_OEM)
            )
        with nvml_errors("Failed to get ECC InfoROM version"):
            ecc_version = text(
                pynvml.nvmlDeviceGetInforomVersion(self.handle, pynvml.NVML_INFOROM_ECC)
            )
        try:
            with nvml_errors("Failed to get Power InfoROM version"):
                power_version = text(
                    pynvml.nvmlDeviceGetInforomVersion(
                        self.handle, pynvml.NVML_INFOROM_POWER
                    )
                )
        except NotSupportedError:
            power_version = ""
        with nvml_errors("Failed to get InfoROM image version"):
            image_version = text(pynvml.nvmlDeviceGetInforomImageVersion(self.handle))
        return DeviceDetails(
            name=name,
            brand=str(int(brand)),
            serial=serial,
            board_id=board_id,
            vbios_version=vbios_version,
            oem_inforom_version=oem_version,
            ecc_inforom_version=ecc_version,
            power_inforom_version=power_version,
            inforom_image_version=image_version,
        )
