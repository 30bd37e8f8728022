# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0


class NvGpuExporterError(Exception):
    """Base class for all exceptions raised by the exporter."""

    def __str__(self) -> str:
        """Return the string representation of the exception with the class name."""
        return super().__str__()


class NotSupportedError(NvGpuExporterError):
    """Raised when a field or capability is absent on this hardware generation.

    Callers skip the sample without logging above debug level.
    """


class TransientQueryError(NvGpuExporterError):
    """Raised when a device query fails in a way that may succeed on the next cycle."""


class DecodeError(NvGpuExporterError):
    """Raised when a raw field value buffer cannot be interpreted."""


class UnsupportedValueTypeError(DecodeError):
    """Raised when a field value carries a type tag the codec does not handle."""

    def __init__(self, value_type: int) -> None:
        self.value_type = value_type
        super().__init__(f"Unsupported field value type: {value_type}")


class TruncatedBufferError(DecodeError):
    """Raised when a field value buffer is shorter than its type requires."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Field value buffer too short: expected {expected} bytes, got {actual}"
        )


class FatalInitError(NvGpuExporterError):
    """Raised when device setup or event subscription fails at startup."""


class InvalidStateError(NvGpuExporterError):
    """Exception raised when something is in an invalid state."""


class MetricRegistrationError(NvGpuExporterError):
    """Raised when an observation names a metric that is not in the catalog or uses the wrong labels."""
