# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Periodic collectors that turn device queries into observations.

Every collector isolates failures per device, per link and per field: a failing
query is logged (rate limited by a :class:`LogSuppressor`) and skipped, and the
rest of the pass carries on.
"""

from collections.abc import Callable, Hashable, Sequence
from typing import TypeAlias

from nvgpu_exporter import __version__
from nvgpu_exporter.common.constants import NANOS_PER_SECOND, NVLINK_LABEL_PREFIX
from nvgpu_exporter.common.enums import MaskFlag
from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.exceptions import (
    DecodeError,
    NotSupportedError,
    NvGpuExporterError,
    TransientQueryError,
)
from nvgpu_exporter.common.log_suppressor import LogSuppressor
from nvgpu_exporter.common.mixins import ExporterLoggerMixin
from nvgpu_exporter.common.models import (
    DriverVersions,
    FieldRequest,
    FieldResult,
    TopologySnapshot,
)
from nvgpu_exporter.common.protocols import DeviceProtocol, ObservationSinkProtocol
from nvgpu_exporter.telemetry.bitmask import (
    FABRIC_HEALTH_MASK_FIELDS,
    INCORRECT_CONFIGURATION,
    decode_mask,
    summarize_fabric_health,
)
from nvgpu_exporter.telemetry.codec import decode_field_result
from nvgpu_exporter.telemetry.constants import CLOCK_EVENT_FIELDS, NVLINK_FIELDS
from nvgpu_exporter.telemetry.field_index import (
    FieldDescriptor,
    build_device_field_batch,
    build_link_field_batch,
)
from nvgpu_exporter.telemetry.metrics import (
    CLOCK_EVENT_DURATION,
    EXPORTER_INFO,
    FABRIC_HEALTH,
    FABRIC_HEALTH_SUMMARY,
    FABRIC_INCORRECT_CONFIGURATION,
    FABRIC_STATE,
    FABRIC_STATUS,
    GPU_INFO,
    GPU_TOPOLOGY,
    NIC_TOPOLOGY,
    NVLINK_ERRORS,
)
from nvgpu_exporter.telemetry.topology import TopologyGraphBuilder

__all__ = [
    "BaseCollector",
    "ClockEventCollector",
    "FabricHealthCollector",
    "InventoryCollector",
    "NVLinkErrorCollector",
    "TopologyCollector",
    "VersionsProvider",
]

VersionsProvider: TypeAlias = Callable[[], DriverVersions]
"""Reads the host driver, NVML and CUDA versions."""


class BaseCollector(ExporterLoggerMixin):
    """Runs :meth:`collect_device` for every device, isolating failures per device.

    Args:
        devices: Devices to collect from
        sink: Destination for observations
        suppressor: Shared rate limiter for repeated failure logs
    """

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        suppressor: LogSuppressor | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.devices = list(devices)
        self.sink = sink
        self.suppressor = suppressor if suppressor is not None else LogSuppressor()

    def collect(self) -> None:
        """One collection pass over every device."""
        for index, device in enumerate(self.devices):
            name = f"GPU{index}"
            try:
                name = device.uuid
                self.collect_device(device)
            except NotSupportedError as e:
                self.debug(lambda: f"Skipping device {name}: {e}")
            except NvGpuExporterError as e:
                self.warn_suppressed(
                    (self.__class__.__name__, index),
                    f"Failed to collect from device {name}: {e}",
                )

    def collect_device(self, device: DeviceProtocol) -> None:
        raise NotImplementedError

    def warn_suppressed(self, key: Hashable, message: str) -> None:
        """Log ``message`` at warning level unless ``key`` was logged recently."""
        allowed, suppressed = self.suppressor.should_log(key)
        if not allowed:
            return
        if suppressed:
            message = f"{message} ({suppressed} similar messages suppressed)"
        self.warning(message)

    def query(
        self, device: DeviceProtocol, requests: Sequence[FieldRequest], what: str
    ) -> list[FieldResult] | None:
        """Issue one batched field query. Returns None when it failed or is not supported."""
        try:
            results = device.get_field_values(requests)
        except NotSupportedError:
            return None
        except TransientQueryError as e:
            self.warn_suppressed(
                (self.__class__.__name__, device.uuid, "query"),
                f"Failed to get {what} fields for device {device.uuid}: {e}",
            )
            return None

        if len(results) != len(requests):
            self.warn_suppressed(
                (self.__class__.__name__, device.uuid, "query"),
                f"Expected {len(requests)} {what} field results for device "
                f"{device.uuid}, got {len(results)}",
            )
            return None
        return results

    def decode(
        self,
        result: FieldResult,
        descriptor: FieldDescriptor,
        device: DeviceProtocol,
        link: int | None = None,
    ) -> float | None:
        """Decode one field result, logging and returning None on failure."""
        try:
            return decode_field_result(result, descriptor.group)
        except (TransientQueryError, DecodeError) as e:
            where = f" link {link}" if link is not None else ""
            self.warn_suppressed(
                (descriptor.field_id, device.uuid, link),
                f"Field {descriptor.name} unavailable for device {device.uuid}{where}: {e}",
            )
            return None


class NVLinkErrorCollector(BaseCollector):
    """NVLink error and FEC history counters, one batched query per device."""

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        descriptors: Sequence[FieldDescriptor] = NVLINK_FIELDS,
        max_links: int | None = None,
        **kwargs,
    ) -> None:
        super().__init__(devices, sink, **kwargs)
        self.descriptors = list(descriptors)
        self.max_links = (
            max_links
            if max_links is not None
            else Environment.COLLECTOR.MAX_NVLINK_LINKS
        )

    def collect_device(self, device: DeviceProtocol) -> None:
        batch = build_link_field_batch(device, self.descriptors, self.max_links)
        if batch.is_empty:
            self.debug(lambda: f"No active NVLinks on device {device.uuid}")
            return

        results = self.query(device, batch.requests, "NVLink")
        if results is None:
            return

        for link in batch.active_links:
            for descriptor in self.descriptors:
                result = batch.result_for(results, descriptor.field_id, link)
                value = self.decode(result, descriptor, device, link)
                if value is None:
                    continue
                self.sink.set_gauge(
                    NVLINK_ERRORS.name,
                    {
                        "uuid": device.uuid,
                        "pci_bus_id": device.pci_bus_id,
                        "link": str(link),
                        "error_type": descriptor.name,
                    },
                    value,
                )


class ClockEventCollector(BaseCollector):
    """Accumulated clock event (throttle) durations, converted to seconds."""

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        descriptors: Sequence[FieldDescriptor] = CLOCK_EVENT_FIELDS,
        **kwargs,
    ) -> None:
        super().__init__(devices, sink, **kwargs)
        self.descriptors = list(descriptors)
        self.batch = build_device_field_batch(self.descriptors)

    def collect_device(self, device: DeviceProtocol) -> None:
        results = self.query(device, self.batch.requests, "clock event")
        if results is None:
            return

        for descriptor in self.descriptors:
            result = self.batch.result_for(results, descriptor.field_id)
            value = self.decode(result, descriptor, device)
            if value is None:
                continue
            self.sink.set_gauge(
                CLOCK_EVENT_DURATION.name,
                {
                    "UUID": device.uuid,
                    "pci_bus_id": device.pci_bus_id,
                    "reason": descriptor.name,
                },
                value / NANOS_PER_SECOND,
            )


class FabricHealthCollector(BaseCollector):
    """GPU fabric state, status and decoded health mask."""

    def collect_device(self, device: DeviceProtocol) -> None:
        info = device.get_fabric_info()
        labels = {
            "UUID": device.uuid,
            "pci_bus_id": device.pci_bus_id,
            "clique_id": str(info.clique_id),
            "cluster_uuid": info.cluster_uuid,
        }
        self.sink.set_gauge(FABRIC_STATE.name, labels, info.state)
        self.sink.set_gauge(FABRIC_STATUS.name, labels, info.status)

        decoded = decode_mask(info.health_mask, FABRIC_HEALTH_MASK_FIELDS)
        for name, value in decoded.items():
            if value.flag is None or value.flag == MaskFlag.NOT_SUPPORTED:
                continue
            self.sink.set_gauge(
                FABRIC_HEALTH.name,
                {**labels, "health_field": name},
                1.0 if value.flag == MaskFlag.FALSE else 0.0,
            )

        self.sink.set_gauge(
            FABRIC_INCORRECT_CONFIGURATION.name,
            labels,
            decoded[INCORRECT_CONFIGURATION].raw,
        )
        self.sink.set_gauge(
            FABRIC_HEALTH_SUMMARY.name, labels, summarize_fabric_health(decoded)
        )


class TopologyCollector(BaseCollector):
    """GPU connection matrix and NVLink NIC adjacency as info gauges.

    Every pass rebuilds the topology from scratch with a new
    :class:`TopologyGraphBuilder`.
    """

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        max_links: int | None = None,
        **kwargs,
    ) -> None:
        super().__init__(devices, sink, **kwargs)
        self.max_links = max_links
        self.snapshot: TopologySnapshot | None = None

    def collect(self) -> None:
        builder = TopologyGraphBuilder(self.devices, max_links=self.max_links)
        self.snapshot = builder.build()
        self.emit(self.snapshot)

    def emit(self, snapshot: TopologySnapshot) -> None:
        for gpu in snapshot.gpus:
            for peer in snapshot.gpus:
                self.sink.set_gauge(
                    GPU_TOPOLOGY.name,
                    {
                        "UUID": gpu.uuid,
                        "pci_bus_id": gpu.pci_bus_id,
                        "gpu_id": gpu.gpu_id,
                        "cpu_affinity": gpu.cpu_affinity,
                        "numa_affinity": gpu.numa_affinity,
                        "gpu_numa_id": gpu.gpu_numa_id,
                        "peer_type": "gpu",
                        "peer_id": peer.gpu_id,
                        "connection": snapshot.connection(gpu.index, peer.index),
                    },
                    1,
                )

        gpu_ids = {gpu.index: gpu.gpu_id for gpu in snapshot.gpus}
        nic_ids: dict[str, str] = {}
        for gpu_index, endpoints in snapshot.nic_adjacency.items():
            gpu_id = gpu_ids.get(gpu_index)
            if gpu_id is None:
                continue
            for endpoint in endpoints:
                nic_id = nic_ids.setdefault(endpoint.pci_bus_id, f"NIC{len(nic_ids)}")
                self.sink.set_gauge(
                    NIC_TOPOLOGY.name,
                    {
                        "nic_name": endpoint.pci_bus_id,
                        "nic_id": nic_id,
                        "peer_type": "gpu",
                        "peer_id": gpu_id,
                        "connection": f"{NVLINK_LABEL_PREFIX}{endpoint.link_count}",
                    },
                    1,
                )


class InventoryCollector(BaseCollector):
    """Static GPU identity and host driver versions as info gauges.

    Board and firmware identity does not change while the exporter runs, so
    this collector is run once at startup rather than on every pass.

    Args:
        devices: Devices to collect from
        sink: Destination for observations
        versions: Reads host driver versions. None skips the exporter info gauge.
        version: Exporter version label (default: the package version)
    """

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        sink: ObservationSinkProtocol,
        versions: VersionsProvider | None = None,
        version: str = __version__,
        **kwargs,
    ) -> None:
        super().__init__(devices, sink, **kwargs)
        self.versions = versions
        self.version = version

    def collect(self) -> None:
        self.collect_versions()
        super().collect()

    def collect_versions(self) -> None:
        if self.versions is None:
            return
        try:
            versions = self.versions()
        except NvGpuExporterError as e:
            self.warning(f"Failed to get driver versions: {e}")
            return
        self.info(
            f"Driver {versions.driver_version}, NVML {versions.nvml_version}, "
            f"CUDA {versions.cuda_version}"
        )
        self.sink.set_gauge(
            EXPORTER_INFO.name,
            {
                "version": self.version,
                "driver_version": versions.driver_version,
                "nvml_version": versions.nvml_version,
                "cuda_version": versions.cuda_version,
            },
            1,
        )

    def collect_device(self, device: DeviceProtocol) -> None:
        details = device.get_device_details()
        self.info(f"Device {device.uuid}: {details.name}")
        if not details.power_inforom_version:
            self.debug(lambda: f"Power InfoROM not supported on device {device.uuid}")
        self.sink.set_gauge(
            GPU_INFO.name,
            {
                "UUID": device.uuid,
                "pci_bus_id": device.pci_bus_id,
                "name": details.name,
                "brand": details.brand,
                "serial": details.serial,
                "board_id": details.board_id,
                "vbios_version": details.vbios_version,
                "oem_inforom_version": details.oem_inforom_version,
                "ecc_inforom_version": details.ecc_inforom_version,
                "power_inforom_version": details.power_inforom_version,
                "inforom_image_version": details.inforom_image_version,
            },
            1,
        )
