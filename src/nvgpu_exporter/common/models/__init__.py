# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from nvgpu_exporter.common.models.base_models import ExporterBaseModel
from nvgpu_exporter.common.models.telemetry_models import (
    DeviceDetails,
    DriverVersions,
    FabricInfo,
    FaultEvent,
    FieldRequest,
    FieldResult,
    GpuTopologyInfo,
    LinkRemoteEndpoint,
    NicAdjacency,
    TopologySnapshot,
)

__all__ = [
    "DeviceDetails",
    "DriverVersions",
    "ExporterBaseModel",
    "FabricInfo",
    "FaultEvent",
    "FieldRequest",
    "FieldResult",
    "GpuTopologyInfo",
    "LinkRemoteEndpoint",
    "NicAdjacency",
    "TopologySnapshot",
]
