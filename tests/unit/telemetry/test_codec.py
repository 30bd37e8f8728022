# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
import struct

import pytest

from nvgpu_exporter.common.enums import FieldGroup, FieldStatus, FieldValueType
from nvgpu_exporter.common.exceptions import (
    DecodeError,
    TransientQueryError,
    TruncatedBufferError,
    UnsupportedValueTypeError,
)
from nvgpu_exporter.common.models import FieldResult
from nvgpu_exporter.telemetry.codec import (
    decode_ber,
    decode_field_result,
    decode_field_value,
    encode_field_value,
)
from tests.unit.conftest import ber_raw, ok_result, status_result


class TestDecodeFieldValue:
    """Tests for decoding the tagged 8-byte value union."""

    @pytest.mark.parametrize(
        "value_type,raw,expected",
        [
            pytest.param(FieldValueType.DOUBLE, struct.pack("<d", 1.5), 1.5, id="double"),
            pytest.param(
                FieldValueType.UNSIGNED_INT,
                struct.pack("<I", 4_000_000_000) + bytes(4),
                4_000_000_000.0,
                id="unsigned-int",
            ),
            pytest.param(
                FieldValueType.UNSIGNED_LONG,
                struct.pack("<Q", 2**40),
                float(2**40),
                id="unsigned-long",
            ),
            pytest.param(
                FieldValueType.UNSIGNED_LONG_LONG,
                struct.pack("<Q", 123456789),
                123456789.0,
                id="unsigned-long-long",
            ),
            pytest.param(
                FieldValueType.SIGNED_INT,
                struct.pack("<i", -5) + bytes(4),
                -5.0,
                id="signed-int",
            ),
        ],
    )  # fmt: skip
    def test_decodes_each_supported_type(self, value_type, raw, expected):
        assert decode_field_value(value_type, raw) == expected

    def test_unsigned_int_ignores_upper_bytes(self):
        """A 4-byte type only reads the leading 4 bytes of the union."""
        raw = struct.pack("<I", 7) + b"\xff\xff\xff\xff"
        assert decode_field_value(FieldValueType.UNSIGNED_INT, raw) == 7.0

    @pytest.mark.parametrize(
        "value_type",
        [
            pytest.param(FieldValueType.SIGNED_LONG_LONG, id="signed-long-long"),
            pytest.param(42, id="unknown-tag"),
        ],
    )
    def test_unsupported_type_raises(self, value_type):
        with pytest.raises(UnsupportedValueTypeError) as exc_info:
            decode_field_value(value_type, bytes(8))
        assert exc_info.value.value_type == value_type

    def test_truncated_buffer_raises(self):
        with pytest.raises(TruncatedBufferError) as exc_info:
            decode_field_value(FieldValueType.UNSIGNED_LONG_LONG, b"\x01\x02\x03")
        assert exc_info.value.expected == 8
        assert exc_info.value.actual == 3

    def test_decode_errors_share_a_base(self):
        assert issubclass(UnsupportedValueTypeError, DecodeError)
        assert issubclass(TruncatedBufferError, DecodeError)


class TestEncodeFieldValue:
    """Tests for the inverse encoder used by fakes and dry runs."""

    @pytest.mark.parametrize(
        "value_type,value",
        [
            pytest.param(FieldValueType.DOUBLE, 0.125, id="double"),
            pytest.param(FieldValueType.UNSIGNED_INT, 2**32 - 1, id="unsigned-int"),
            pytest.param(FieldValueType.UNSIGNED_LONG, 17, id="unsigned-long"),
            pytest.param(FieldValueType.UNSIGNED_LONG_LONG, 2**53, id="unsigned-long-long"),
            pytest.param(FieldValueType.SIGNED_INT, -2**31, id="signed-int"),
        ],
    )  # fmt: skip
    def test_round_trip(self, value_type, value):
        raw = encode_field_value(value_type, value)
        assert len(raw) == 8
        assert decode_field_value(value_type, raw) == float(value)

    def test_unsupported_type_raises(self):
        with pytest.raises(UnsupportedValueTypeError):
            encode_field_value(FieldValueType.SIGNED_LONG_LONG, 1)


class TestDecodeBer:
    """Tests for the packed mantissa/exponent bit error rate."""

    @pytest.mark.parametrize(
        "mantissa,exponent,expected",
        [
            pytest.param(0, 0, 0.0, id="no-errors"),
            pytest.param(5, 2, 0.05, id="5e-2"),
            pytest.param(15, 0, 15.0, id="max-mantissa-zero-exponent"),
            pytest.param(5, 3, 0.005, id="5e-3"),
            pytest.param(0, 7, 0.0, id="zero-mantissa"),
            pytest.param(1, 15, 1e-15, id="1e-15"),
        ],
    )  # fmt: skip
    def test_decode(self, mantissa, exponent, expected):
        assert decode_ber(ber_raw(mantissa, exponent)) == pytest.approx(expected)

    def test_zero_is_exactly_zero(self):
        result = decode_ber(0)
        assert result == 0.0
        assert isinstance(result, float)

    def test_bits_above_mantissa_are_ignored(self):
        assert decode_ber(0xF000 | ber_raw(1, 1)) == pytest.approx(0.1)


class TestDecodeFieldResult:
    """Tests for decoding one batched result by descriptor group."""

    def test_error_counter_returns_value(self):
        assert decode_field_result(ok_result(42), FieldGroup.ERROR_COUNTER) == 42.0

    def test_ber_group_unpacks_rate(self):
        result = ok_result(ber_raw(5, 2))
        assert decode_field_result(result, FieldGroup.BER) == pytest.approx(0.05)

    def test_ber_with_high_bits_set_keeps_low_bits(self):
        """Values above 2**53 must not lose their mantissa and exponent bits."""
        result = ok_result((1 << 60) | ber_raw(5, 3))
        assert decode_field_result(result, FieldGroup.BER) == pytest.approx(0.005)

    def test_large_counter_is_float(self):
        value = decode_field_result(ok_result(1 << 60), FieldGroup.ERROR_COUNTER)
        assert value == float(1 << 60)
        assert isinstance(value, float)

    def test_not_supported_returns_none(self):
        """Not supported is reported as absent, never as zero."""
        result = status_result(FieldStatus.NOT_SUPPORTED)
        assert decode_field_result(result, FieldGroup.ERROR_COUNTER) is None

    @pytest.mark.parametrize(
        "status",
        [
            pytest.param(FieldStatus.GPU_IS_LOST, id="gpu-lost"),
            pytest.param(FieldStatus.NO_PERMISSION, id="no-permission"),
            pytest.param(FieldStatus.TIMEOUT, id="timeout"),
        ],
    )
    def test_failed_status_raises_transient(self, status):
        with pytest.raises(TransientQueryError):
            decode_field_result(status_result(status), FieldGroup.ERROR_COUNTER)

    def test_bad_buffer_raises_decode_error(self):
        result = FieldResult(
            status=FieldStatus.SUCCESS,
            value_type=FieldValueType.UNSIGNED_LONG_LONG,
            raw=b"\x00",
        )
        with pytest.raises(DecodeError):
            decode_field_result(result, FieldGroup.ERROR_COUNTER)
