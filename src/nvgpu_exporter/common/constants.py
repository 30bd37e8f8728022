# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

NANOS_PER_SECOND = 1_000_000_000
MILLIS_PER_SECOND = 1000

FIELD_VALUE_BUFFER_SIZE = 8
"""Size in bytes of the NVML field value union."""

AFFINITY_UNKNOWN = "unknown"
"""Rendered affinity when no bits are set or the query is unavailable."""

TOPOLOGY_SELF = "X"

TOPOLOGY_UNKNOWN = "UNKNOWN"
"""Connection label when the common ancestor query is not supported."""

NVLINK_LABEL_PREFIX = "NV"
