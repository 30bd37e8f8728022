# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from nvgpu_exporter.common.enums.base_enums import CaseInsensitiveStrEnum
from nvgpu_exporter.common.enums.telemetry_enums import (
    FabricHealthSummary,
    FieldGroup,
    FieldStatus,
    FieldValueType,
    LinkState,
    MaskFlag,
    MetricKind,
    NvLinkEndpointType,
    SchedulerState,
    TopologyLevel,
    TopologyMode,
)

__all__ = [
    "CaseInsensitiveStrEnum",
    "FabricHealthSummary",
    "FieldGroup",
    "FieldStatus",
    "FieldValueType",
    "LinkState",
    "MaskFlag",
    "MetricKind",
    "NvLinkEndpointType",
    "SchedulerState",
    "TopologyLevel",
    "TopologyMode",
]
