# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Decoding of NVML field values.

NVML returns each field value as an 8-byte union tagged with a value type.
This module turns that union into a float, and specializes the decode for
bit-error-rate fields whose integer value packs a mantissa and an exponent.
"""

import struct

from nvgpu_exporter.common.constants import FIELD_VALUE_BUFFER_SIZE
from nvgpu_exporter.common.enums import FieldGroup, FieldStatus, FieldValueType
from nvgpu_exporter.common.exceptions import (
    TransientQueryError,
    TruncatedBufferError,
    UnsupportedValueTypeError,
)
from nvgpu_exporter.common.models import FieldResult

__all__ = [
    "BER_EXPONENT_MASK",
    "BER_MANTISSA_MASK",
    "BER_MANTISSA_SHIFT",
    "decode_ber",
    "decode_field_result",
    "decode_field_value",
    "encode_field_value",
]

# Little-endian struct formats for each supported value type.
_VALUE_FORMATS: dict[int, struct.Struct] = {
    FieldValueType.DOUBLE: struct.Struct("<d"),
    FieldValueType.UNSIGNED_INT: struct.Struct("<I"),
    FieldValueType.UNSIGNED_LONG: struct.Struct("<Q"),
    FieldValueType.UNSIGNED_LONG_LONG: struct.Struct("<Q"),
    FieldValueType.SIGNED_INT: struct.Struct("<i"),
}

BER_EXPONENT_MASK = 0xFF
BER_MANTISSA_SHIFT = 8
BER_MANTISSA_MASK = 0xF


def _value_format(value_type: int) -> struct.Struct:
    try:
        return _VALUE_FORMATS[value_type]
    except KeyError:
        raise UnsupportedValueTypeError(value_type) from None


def decode_field_value(value_type: int, raw: bytes) -> float:
    """Decode a tagged field value buffer into a float.

    Args:
        value_type: The NVML value type tag (see :class:`FieldValueType`)
        raw: The value union bytes. Only the leading bytes the type needs are read.

    Returns:
        The numeric value as a float.

    Raises:
        UnsupportedValueTypeError: If the tag is not one of double, unsigned
            int, unsigned long, unsigned long long or signed int.
        TruncatedBufferError: If ``raw`` is shorter than the type's width.
    """
    return float(_unpack_field_value(value_type, raw))


def _unpack_field_value(value_type: int, raw: bytes) -> int | float:
    fmt = _value_format(value_type)
    if len(raw) < fmt.size:
        raise TruncatedBufferError(fmt.size, len(raw))
    (value,) = fmt.unpack_from(raw)
    return value


def encode_field_value(value_type: int, value: float | int) -> bytes:
    """Encode a value into the 8-byte union layout for ``value_type``.

    The inverse of :func:`decode_field_value`, zero padded to the union size.
    """
    fmt = _value_format(value_type)
    if value_type != FieldValueType.DOUBLE:
        value = int(value)
    return fmt.pack(value).ljust(FIELD_VALUE_BUFFER_SIZE, b"\x00")


def decode_ber(raw_value: int) -> float:
    """Decode a packed bit-error-rate value.

    Bits 0-7 hold the exponent and bits 8-11 the mantissa; the rate is
    ``mantissa * 10 ** -exponent``. A zero mantissa with a zero exponent means
    no errors and decodes to exactly 0.0.
    """
    raw_value = int(raw_value)
    exponent = raw_value & BER_EXPONENT_MASK
    mantissa = (raw_value >> BER_MANTISSA_SHIFT) & BER_MANTISSA_MASK
    if mantissa == 0 and exponent == 0:
        return 0.0
    return mantissa / 10**exponent


def decode_field_result(result: FieldResult, group: FieldGroup) -> float | None:
    """Decode one batched field result according to its descriptor group.

    Returns None when the field is not supported on this device or link, which
    is distinct from a zero reading.

    Raises:
        TransientQueryError: The per-request status reports any other failure.
        DecodeError: The buffer could not be interpreted.
    """
    if result.status == FieldStatus.NOT_SUPPORTED:
        return None
    if result.status != FieldStatus.SUCCESS:
        raise TransientQueryError(f"Field query returned status {result.status}")

    value = _unpack_field_value(result.value_type, result.raw)
    if group == FieldGroup.BER:
        # integer types are unpacked exactly, bits above 2**53 included
        return decode_ber(int(value))
    return float(value)
