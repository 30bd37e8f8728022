# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""NVML field ids and the descriptor tables the collectors request."""

from nvgpu_exporter.common.enums import FieldGroup, NvLinkEndpointType
from nvgpu_exporter.telemetry.field_index import FieldDescriptor

# NVML_FI_DEV_NVLINK_COUNT_* error counters (per link, scope = link index)
NVLINK_COUNT_MALFORMED_PACKET_ERRORS = 206
NVLINK_COUNT_BUFFER_OVERRUN_ERRORS = 207
NVLINK_COUNT_LOCAL_LINK_INTEGRITY_ERRORS = 211
NVLINK_COUNT_LINK_RECOVERY_SUCCESSFUL_EVENTS = 213
NVLINK_COUNT_LINK_RECOVERY_FAILED_EVENTS = 214
NVLINK_COUNT_LINK_RECOVERY_EVENTS = 215
NVLINK_COUNT_EFFECTIVE_ERRORS = 219
NVLINK_COUNT_EFFECTIVE_BER = 220

# NVML_FI_DEV_NVLINK_COUNT_FEC_HISTORY_0 .. _15
NVLINK_COUNT_FEC_HISTORY_0 = 235
NVLINK_FEC_HISTORY_BINS = 16

# NVML_FI_DEV_CLOCKS_EVENT_REASON_* accumulated durations, in nanoseconds
CLOCKS_EVENT_REASON_SW_POWER_CAP = 131
CLOCKS_EVENT_REASON_SYNC_BOOST = 133
CLOCKS_EVENT_REASON_SW_THERM_SLOWDOWN = 251
CLOCKS_EVENT_REASON_HW_THERM_SLOWDOWN = 252
CLOCKS_EVENT_REASON_HW_POWER_BRAKE_SLOWDOWN = 253

NVLINK_ERROR_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor(
        NVLINK_COUNT_MALFORMED_PACKET_ERRORS,
        "malformed_packet_errors",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_BUFFER_OVERRUN_ERRORS,
        "buffer_overrun_errors",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_LOCAL_LINK_INTEGRITY_ERRORS,
        "local_link_integrity_errors",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_LINK_RECOVERY_SUCCESSFUL_EVENTS,
        "recovery_successful_events",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_LINK_RECOVERY_FAILED_EVENTS,
        "recovery_failed_events",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_LINK_RECOVERY_EVENTS,
        "recovery_events",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_EFFECTIVE_ERRORS,
        "effective_errors",
        FieldGroup.ERROR_COUNTER,
    ),
    FieldDescriptor(
        NVLINK_COUNT_EFFECTIVE_BER, "effective_ber_errors", FieldGroup.BER
    ),
)

NVLINK_FEC_HISTORY_FIELDS: tuple[FieldDescriptor, ...] = tuple(
    FieldDescriptor(
        NVLINK_COUNT_FEC_HISTORY_0 + bin_index,
        f"fec_errors_{bin_index}",
        FieldGroup.FEC_HISTORY,
    )
    for bin_index in range(NVLINK_FEC_HISTORY_BINS)
)

NVLINK_FIELDS: tuple[FieldDescriptor, ...] = (
    NVLINK_ERROR_FIELDS + NVLINK_FEC_HISTORY_FIELDS
)

CLOCK_EVENT_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor(
        CLOCKS_EVENT_REASON_SW_POWER_CAP, "sw_power_capping", FieldGroup.CLOCK_EVENT
    ),
    FieldDescriptor(
        CLOCKS_EVENT_REASON_SYNC_BOOST, "sync_boost", FieldGroup.CLOCK_EVENT
    ),
    FieldDescriptor(
        CLOCKS_EVENT_REASON_SW_THERM_SLOWDOWN,
        "sw_thermal_slowdown",
        FieldGroup.CLOCK_EVENT,
    ),
    FieldDescriptor(
        CLOCKS_EVENT_REASON_HW_THERM_SLOWDOWN,
        "hw_thermal_slowdown",
        FieldGroup.CLOCK_EVENT,
    ),
    FieldDescriptor(
        CLOCKS_EVENT_REASON_HW_POWER_BRAKE_SLOWDOWN,
        "hw_power_braking",
        FieldGroup.CLOCK_EVENT,
    ),
)

NIC_ENDPOINT_TYPES: frozenset[NvLinkEndpointType] = frozenset(
    {NvLinkEndpointType.SWITCH, NvLinkEndpointType.IBMNPU}
)
"""Remote NVLink endpoint types reported as NIC/switch adjacency."""

EVENT_TYPE_XID_CRITICAL_ERROR = 0x0000000000000008
"""nvmlEventTypeXidCriticalError"""
