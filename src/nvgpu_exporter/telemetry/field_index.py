# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Batched field requests with a (field, link) lookup index.

NVML's field-value API takes a list of (field id, scope id) requests and
returns results positionally. Building one request per active link and field
lets a collector fetch every counter of a device in a single call, and the
index recovers which result belongs to which (field, link) pair.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from nvgpu_exporter.common.enums import FieldGroup, LinkState
from nvgpu_exporter.common.exceptions import NotSupportedError, TransientQueryError
from nvgpu_exporter.common.exporter_logger import ExporterLogger
from nvgpu_exporter.common.models import FieldRequest, FieldResult
from nvgpu_exporter.common.protocols import DeviceProtocol

__all__ = [
    "DeviceFieldBatch",
    "FieldDescriptor",
    "LinkFieldBatch",
    "build_device_field_batch",
    "build_link_field_batch",
]

_logger = ExporterLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """A telemetry field to request, with the label it is exported under."""

    field_id: int
    name: str
    group: FieldGroup


@dataclass(slots=True)
class LinkFieldBatch:
    """Requests for every (active link, descriptor) pair of one device."""

    requests: list[FieldRequest] = field(default_factory=list)
    index: dict[tuple[int, int], int] = field(default_factory=dict)
    active_links: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.requests)

    @property
    def is_empty(self) -> bool:
        return not self.requests

    def result_for(
        self, results: Sequence[FieldResult], field_id: int, link: int
    ) -> FieldResult:
        """Return the result for ``(field_id, link)``.

        Raises:
            KeyError: If the pair was not part of this batch.
        """
        return results[self.index[(field_id, link)]]


@dataclass(slots=True)
class DeviceFieldBatch:
    """Requests for device-scoped fields, indexed by field id."""

    requests: list[FieldRequest] = field(default_factory=list)
    index: dict[int, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.requests)

    def result_for(
        self, results: Sequence[FieldResult], field_id: int
    ) -> FieldResult:
        return results[self.index[field_id]]


def _unique_descriptors(
    descriptors: Iterable[FieldDescriptor],
) -> list[FieldDescriptor]:
    descriptors = list(descriptors)
    seen: set[int] = set()
    for descriptor in descriptors:
        if descriptor.field_id in seen:
            raise ValueError(
                f"Duplicate field id in descriptors: {descriptor.field_id}"
            )
        seen.add(descriptor.field_id)
    return descriptors


def _is_link_active(device: DeviceProtocol, link: int) -> bool:
    try:
        return device.get_link_state(link) == LinkState.ENABLED
    except NotSupportedError:
        return False
    except TransientQueryError as e:
        _logger.warning(
            f"Failed to get NVLink state for device {device.uuid} link {link}: {e}"
        )
        return False


def build_link_field_batch(
    device: DeviceProtocol,
    descriptors: Iterable[FieldDescriptor],
    max_links: int,
) -> LinkFieldBatch:
    """Build one request per (active link, descriptor) for ``device``.

    Links ``0 .. max_links - 1`` are checked with ``device.get_link_state``.
    Links that are not enabled, or whose state cannot be read, get no
    requests at all. Requests are ordered link-major, descriptors in the order
    given. The returned batch is empty when no link is active; callers must
    skip the device rather than issue an empty query.

    A new index is built on every call, so batches are never shared between
    devices.
    """
    descriptors = _unique_descriptors(descriptors)
    batch = LinkFieldBatch()

    for link in range(max_links):
        if not _is_link_active(device, link):
            continue
        batch.active_links.append(link)
        for descriptor in descriptors:
            batch.index[(descriptor.field_id, link)] = len(batch.requests)
            batch.requests.append(FieldRequest(descriptor.field_id, link))

    _logger.debug(
        lambda: f"Built {len(batch.requests)} field requests for device {device.uuid} "
        f"across {len(batch.active_links)} active links"
    )
    return batch


def build_device_field_batch(
    descriptors: Iterable[FieldDescriptor],
) -> DeviceFieldBatch:
    """Build one scope-less request per descriptor."""
    batch = DeviceFieldBatch()
    for descriptor in _unique_descriptors(descriptors):
        batch.index[descriptor.field_id] = len(batch.requests)
        batch.requests.append(FieldRequest(descriptor.field_id))
    return batch
