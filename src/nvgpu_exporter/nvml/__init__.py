# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from nvgpu_exporter.nvml.conv import (
    cuda_version_to_string,
    pci_bus_id_to_string,
    struct_field_bytes,
    text,
    uuid_bytes_to_string,
)
from nvgpu_exporter.nvml.device import (
    AFFINITY_WORDS,
    NvmlDevice,
    get_driver_versions,
    nvml_errors,
    nvml_session,
)
from nvgpu_exporter.nvml.events import NvmlFaultEventSource, subscribe_fault_events

__all__ = [
    "AFFINITY_WORDS",
    "NvmlDevice",
    "NvmlFaultEventSource",
    "cuda_version_to_string",
    "get_driver_versions",
    "nvml_errors",
    "nvml_session",
    "pci_bus_id_to_string",
    "struct_field_bytes",
    "subscribe_fault_events",
    "text",
    "uuid_bytes_to_string",
]
