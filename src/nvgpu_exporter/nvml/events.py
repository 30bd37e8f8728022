# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""pynvml event set implementation of :class:`FaultEventSourceProtocol`."""

import ctypes
from collections.abc import Sequence

import pynvml

from nvgpu_exporter.common.constants import MILLIS_PER_SECOND
from nvgpu_exporter.common.exceptions import FatalInitError, TransientQueryError
from nvgpu_exporter.common.exporter_logger import ExporterLogger
from nvgpu_exporter.common.models import FaultEvent
from nvgpu_exporter.nvml.device import NvmlDevice

__all__ = ["NvmlFaultEventSource", "subscribe_fault_events"]

_logger = ExporterLogger(__name__)


class NvmlFaultEventSource:
    """An NVML event set registered for critical Xid errors on a set of devices.

    Registration failures for individual devices are logged and skipped; the
    subscription still covers the remaining devices.

    Raises:
        FatalInitError: If the event set cannot be created.
    """

    def __init__(
        self,
        devices: Sequence[NvmlDevice],
        event_types: int = pynvml.nvmlEventTypeXidCriticalError,
    ) -> None:
        try:
            self._event_set = pynvml.nvmlEventSetCreate()
        except pynvml.NVMLError as e:
            raise FatalInitError(f"Failed to create event set: {e}") from e

        self._devices = {device.address: device for device in devices}
        for device in devices:
            try:
                pynvml.nvmlDeviceRegisterEvents(
                    device.handle, event_types, self._event_set
                )
            except pynvml.NVMLError as e:
                _logger.warning(f"Failed to register events for device {device}: {e}")

    def wait_next(self, timeout: float) -> FaultEvent | None:
        try:
            data = pynvml.nvmlEventSetWait(
                self._event_set, int(timeout * MILLIS_PER_SECOND)
            )
        except pynvml.NVMLError_Timeout:
            return None
        except pynvml.NVMLError as e:
            raise TransientQueryError(f"Error waiting for events: {e}") from e

        address = ctypes.cast(data.device, ctypes.c_void_p).value or 0
        device = self._devices.get(address)
        if device is None:
            device = NvmlDevice(data.device)
        return FaultEvent(
            device=device, event_type=data.eventType, fault_code=data.eventData
        )

    def close(self) -> None:
        try:
            pynvml.nvmlEventSetFree(self._event_set)
        except pynvml.NVMLError as e:
            _logger.warning(f"Failed to free event set: {e}")


def subscribe_fault_events(devices: Sequence[NvmlDevice]) -> NvmlFaultEventSource:
    """Subscribe ``devices`` to critical Xid error events."""
    return NvmlFaultEventSource(devices)
