# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Decoding of packed health/status bitmasks.

A health mask packs several sub-fields into one integer. Two-bit sub-fields are
tri-state flags (not supported / true / false); wider sub-fields carry an
enumeration ordinal. Every sub-field reserves a "not supported" value which is
never treated as false or healthy.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from nvgpu_exporter.common.enums import FabricHealthSummary, MaskFlag

__all__ = [
    "ACCESS_TIMEOUT_RECOVERY",
    "DEGRADED_BANDWIDTH",
    "FABRIC_HEALTH_MASK_FIELDS",
    "INCORRECT_CONFIGURATION",
    "INCORRECT_CONFIGURATION_NONE",
    "ROUTE_RECOVERY",
    "ROUTE_UNHEALTHY",
    "DecodedMaskField",
    "MaskField",
    "decode_mask",
    "summarize_fabric_health",
]


@dataclass(frozen=True, slots=True)
class MaskField:
    """Location and sentinel values of one sub-field of a packed mask.

    ``true_value`` is None for enumeration sub-fields, which are reported as
    raw ordinals instead of flags.
    """

    name: str
    bit_offset: int
    bit_width: int
    not_supported: int
    true_value: int | None = None

    @property
    def is_flag(self) -> bool:
        return self.true_value is not None

    def extract(self, mask: int) -> int:
        return (mask >> self.bit_offset) & ((1 << self.bit_width) - 1)


@dataclass(frozen=True, slots=True)
class DecodedMaskField:
    """A sub-field value with its classification."""

    field: MaskField
    raw: int
    flag: MaskFlag | None = None

    @property
    def is_not_supported(self) -> bool:
        return self.raw == self.field.not_supported

    @property
    def is_true(self) -> bool:
        return self.flag == MaskFlag.TRUE


def decode_mask(
    mask: int, fields: Sequence[MaskField]
) -> dict[str, DecodedMaskField]:
    """Extract and classify every sub-field of ``mask``.

    Flags whose raw value is neither the not-supported nor the true sentinel
    are classified as false.
    """
    decoded = {}
    for mask_field in fields:
        raw = mask_field.extract(mask)
        flag = None
        if mask_field.is_flag:
            if raw == mask_field.not_supported:
                flag = MaskFlag.NOT_SUPPORTED
            elif raw == mask_field.true_value:
                flag = MaskFlag.TRUE
            else:
                flag = MaskFlag.FALSE
        decoded[mask_field.name] = DecodedMaskField(mask_field, raw, flag)
    return decoded


# NVML GPU fabric health mask layout (NVML_GPU_FABRIC_HEALTH_MASK_*).
# Flags use 0 = not supported, 1 = true, 2 = false.
DEGRADED_BANDWIDTH = "degraded_bandwidth"
ROUTE_RECOVERY = "route_recovery"
ROUTE_UNHEALTHY = "route_unhealthy"
ACCESS_TIMEOUT_RECOVERY = "access_timeout_recovery"
INCORRECT_CONFIGURATION = "incorrect_configuration"

INCORRECT_CONFIGURATION_NONE = 1

FABRIC_HEALTH_MASK_FIELDS: tuple[MaskField, ...] = (
    MaskField(DEGRADED_BANDWIDTH, 0, 2, not_supported=0, true_value=1),
    MaskField(ROUTE_RECOVERY, 2, 2, not_supported=0, true_value=1),
    MaskField(ROUTE_UNHEALTHY, 4, 2, not_supported=0, true_value=1),
    MaskField(ACCESS_TIMEOUT_RECOVERY, 6, 2, not_supported=0, true_value=1),
    MaskField(INCORRECT_CONFIGURATION, 8, 14, not_supported=0),
)

_UNHEALTHY_FLAGS = (ROUTE_RECOVERY, ROUTE_UNHEALTHY, ACCESS_TIMEOUT_RECOVERY)


def summarize_fabric_health(
    decoded: Mapping[str, DecodedMaskField],
) -> FabricHealthSummary:
    """Classify overall fabric health from decoded mask sub-fields.

    Priority, first match wins:

    1. every sub-field is not supported: NOT_SUPPORTED
    2. route recovery, route unhealthy or access timeout recovery is true, or
       the incorrect configuration code is set to anything other than
       not-supported or none: UNHEALTHY
    3. degraded bandwidth is true: LIMITED_CAPACITY
    4. otherwise: HEALTHY
    """
    if all(value.is_not_supported for value in decoded.values()):
        return FabricHealthSummary.NOT_SUPPORTED

    if any(decoded[name].is_true for name in _UNHEALTHY_FLAGS if name in decoded):
        return FabricHealthSummary.UNHEALTHY

    config = decoded.get(INCORRECT_CONFIGURATION)
    if (
        config is not None
        and not config.is_not_supported
        and config.raw != INCORRECT_CONFIGURATION_NONE
    ):
        return FabricHealthSummary.UNHEALTHY

    degraded = decoded.get(DEGRADED_BANDWIDTH)
    if degraded is not None and degraded.is_true:
        return FabricHealthSummary.LIMITED_CAPACITY

    return FabricHealthSummary.HEALTHY
