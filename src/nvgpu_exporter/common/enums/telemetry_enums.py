# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from enum import IntEnum

from nvgpu_exporter.common.enums.base_enums import CaseInsensitiveStrEnum


class FieldValueType(IntEnum):
    """Type tag of an NVML field value union. Values match ``nvmlValueType_t``."""

    DOUBLE = 0
    UNSIGNED_INT = 1
    UNSIGNED_LONG = 2
    UNSIGNED_LONG_LONG = 3
    SIGNED_LONG_LONG = 4
    SIGNED_INT = 5


class FieldStatus(IntEnum):
    """Per-request status codes returned alongside field values (subset of ``nvmlReturn_t``)."""

    SUCCESS = 0
    UNINITIALIZED = 1
    INVALID_ARGUMENT = 2
    NOT_SUPPORTED = 3
    NO_PERMISSION = 4
    NOT_FOUND = 6
    TIMEOUT = 10
    GPU_IS_LOST = 15
    UNKNOWN = 999


class FieldGroup(CaseInsensitiveStrEnum):
    """Logical group of a telemetry field, which selects how its value is decoded."""

    ERROR_COUNTER = "error_counter"
    BER = "ber"
    FEC_HISTORY = "fec_history"
    CLOCK_EVENT = "clock_event"


class LinkState(IntEnum):
    """NVLink state as reported by the device (``nvmlEnableState_t``)."""

    DISABLED = 0
    ENABLED = 1


class MaskFlag(CaseInsensitiveStrEnum):
    """Classification of a two-bit health mask flag."""

    NOT_SUPPORTED = "not_supported"
    TRUE = "true"
    FALSE = "false"


class FabricHealthSummary(IntEnum):
    """Overall fabric health. Values are exported as the summary gauge."""

    NOT_SUPPORTED = 0
    HEALTHY = 1
    UNHEALTHY = 2
    LIMITED_CAPACITY = 3


class TopologyLevel(IntEnum):
    """PCIe common-ancestor distance between two devices (``nvmlGpuTopologyLevel_t``)."""

    INTERNAL = 0
    SINGLE = 10
    MULTIPLE = 20
    HOSTBRIDGE = 30
    NODE = 40
    SYSTEM = 50

    @property
    def label(self) -> str:
        """The short label used by ``nvidia-smi topo -m``."""
        return _TOPOLOGY_LABELS[self]


_TOPOLOGY_LABELS = {
    TopologyLevel.INTERNAL: "INTERNAL",
    TopologyLevel.SINGLE: "PIX",
    TopologyLevel.MULTIPLE: "PXB",
    TopologyLevel.HOSTBRIDGE: "PHB",
    TopologyLevel.NODE: "NODE",
    TopologyLevel.SYSTEM: "SYS",
}


class NvLinkEndpointType(IntEnum):
    """Type of the device on the remote end of an NVLink (``nvmlIntNvLinkDeviceType_t``)."""

    GPU = 0
    IBMNPU = 1
    SWITCH = 2
    UNKNOWN = 255


class TopologyMode(CaseInsensitiveStrEnum):
    """How often the topology collector runs."""

    ONCE = "once"
    """Collect topology once when the scheduler starts."""

    EVERY_TICK = "every_tick"
    """Collect topology on every polling tick."""

    DISABLED = "disabled"
    """Never collect topology."""


class MetricKind(CaseInsensitiveStrEnum):
    """Kind of exported metric family."""

    GAUGE = "gauge"
    COUNTER = "counter"


class SchedulerState(CaseInsensitiveStrEnum):
    """Lifecycle of the polling scheduler."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
