# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Conversions of raw NVML identity fields to label strings."""

import ctypes
import uuid

__all__ = [
    "cuda_version_to_string",
    "pci_bus_id_to_string",
    "struct_field_bytes",
    "text",
    "uuid_bytes_to_string",
]

_PCI_BUS_ID_MIN_LENGTH = 12
_PCI_BUS_ID_MAX_LENGTH = 13
_UUID_SIZE = 16


def text(value: bytes | str) -> str:
    """NVML strings arrive as bytes or str depending on the binding version."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").rstrip("\x00")
    return value


def pci_bus_id_to_string(bus_id: bytes | str) -> str:
    """Trim a fixed-size PCI bus id buffer to its ``DDDD:BB:DD.F`` address.

    The address is 12 or 13 characters long. The buffer is cut at the first
    non-printable byte at position 12 or 13, and at 13 characters otherwise.
    """
    if isinstance(bus_id, str):
        raw = bus_id.encode("ascii", errors="replace")
    else:
        raw = bytes(bus_id)
    end = min(len(raw), _PCI_BUS_ID_MAX_LENGTH + 1)
    for i in range(_PCI_BUS_ID_MIN_LENGTH, end):
        if not 32 <= raw[i] <= 126:
            return raw[:i].decode("ascii", errors="replace")
    return raw[:_PCI_BUS_ID_MAX_LENGTH].decode("ascii", errors="replace")


def uuid_bytes_to_string(raw: bytes) -> str:
    """Format 16 raw bytes as a lowercase ``8-4-4-4-12`` UUID string.

    Shorter buffers are zero padded.
    """
    return str(uuid.UUID(bytes=bytes(raw[:_UUID_SIZE]).ljust(_UUID_SIZE, b"\x00")))


def struct_field_bytes(struct: ctypes.Structure, name: str) -> bytes:
    """Raw bytes of a fixed-size array field.

    Reading a ``c_char`` array attribute stops at the first NUL byte, which
    loses data for binary fields such as a cluster UUID.
    """
    descriptor = getattr(type(struct), name)
    return ctypes.string_at(
        ctypes.addressof(struct) + descriptor.offset, descriptor.size
    )


def cuda_version_to_string(version: int) -> str:
    """Format an encoded CUDA driver version (``1000 * major + 10 * minor``).

    >>> cuda_version_to_string(12040)
    '12.4'
    """
    return f"{version // 1000}.{(version % 1000) // 10}"
