# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GPU-to-GPU and GPU-to-NIC topology reconstruction.

Produces the same connection matrix as ``nvidia-smi topo -m``: ``X`` on the
diagonal, ``NV<k>`` when two GPUs share ``k`` direct NVLinks, otherwise the
PCIe common ancestor level. NVLink endpoints of a NIC class (NVSwitch, IBM NPU)
are collected separately, one entry per remote PCI device.
"""

from collections.abc import Collection, Iterable, Sequence

from nvgpu_exporter.common.constants import (
    AFFINITY_UNKNOWN,
    NVLINK_LABEL_PREFIX,
    TOPOLOGY_SELF,
    TOPOLOGY_UNKNOWN,
)
from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.exceptions import (
    NotSupportedError,
    NvGpuExporterError,
    TransientQueryError,
)
from nvgpu_exporter.common.mixins import ExporterLoggerMixin
from nvgpu_exporter.common.models import (
    GpuTopologyInfo,
    LinkRemoteEndpoint,
    NicAdjacency,
    TopologySnapshot,
)
from nvgpu_exporter.common.protocols import DeviceProtocol
from nvgpu_exporter.telemetry.constants import NIC_ENDPOINT_TYPES

__all__ = [
    "TopologyGraphBuilder",
    "format_affinity",
    "pci_device_key",
]


def format_affinity(words: Iterable[int], word_bits: int = 64) -> str:
    """Render an affinity bitmask as a compact range list.

    Set bits are scanned in ascending order across ``words`` (word 0 holds bits
    ``0 .. word_bits - 1``). Consecutive bits merge into ``a-b`` ranges and
    singletons stay bare, e.g. bits {0, 1, 2, 5, 7, 8} render as ``0-2,5,7-8``.
    A mask with no bits set renders as ``unknown``, never an empty string.
    """
    bits = _set_bits(words, word_bits)
    if not bits:
        return AFFINITY_UNKNOWN

    ranges = []
    start = prev = bits[0]
    for bit in bits[1:]:
        if bit != prev + 1:
            ranges.append(_format_range(start, prev))
            start = bit
        prev = bit
    ranges.append(_format_range(start, prev))
    return ",".join(ranges)


def _set_bits(words: Iterable[int], word_bits: int) -> list[int]:
    return [
        word_index * word_bits + bit
        for word_index, word in enumerate(words)
        for bit in range(word_bits)
        if (word >> bit) & 1
    ]


def _format_range(start: int, end: int) -> str:
    return str(start) if start == end else f"{start}-{end}"


def pci_device_key(pci_bus_id: str) -> tuple[int, int, int]:
    """Return ``(domain, bus, device)`` of a ``DDDD:BB:DD.F`` bus id.

    The function number is ignored, so every function of one physical device
    maps to the same key. A missing domain defaults to 0.
    """
    address = pci_bus_id.strip().split(".", 1)[0]
    parts = address.split(":")
    if len(parts) == 2:
        parts.insert(0, "0")
    if len(parts) != 3:
        raise ValueError(f"Invalid PCI bus id: {pci_bus_id!r}")
    domain, bus, device = (int(part, 16) for part in parts)
    return domain, bus, device


class TopologyGraphBuilder(ExporterLoggerMixin):
    """Reconstructs the connection matrix and NIC adjacency of a device set.

    Each device's NVLinks are scanned once per builder. Pairwise PCIe ancestor
    queries are cached by unordered pair ``(min(i, j), max(i, j))``, so each
    pair is queried at most once for the lifetime of the builder no matter how
    many times either orientation is requested. A pair whose query fails is
    labeled ``UNKNOWN`` in both orientations until the next :meth:`build`,
    which retries it.

    A GPU whose UUID or PCI bus id cannot be read is left out of
    :attr:`TopologySnapshot.gpus`; the rest of the snapshot is still built.

    Args:
        devices: Ordered device list; positions become ``GPU<i>`` ids
        max_links: Number of NVLinks scanned per device (default: from Environment)
        nic_endpoint_types: Remote endpoint types reported as NIC adjacency
    """

    def __init__(
        self,
        devices: Sequence[DeviceProtocol],
        max_links: int | None = None,
        nic_endpoint_types: Collection[int] = NIC_ENDPOINT_TYPES,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.devices = list(devices)
        self.max_links = (
            max_links
            if max_links is not None
            else Environment.COLLECTOR.MAX_NVLINK_LINKS
        )
        self.nic_endpoint_types = frozenset(nic_endpoint_types)
        self._pair_cache: dict[tuple[int, int], str] = {}
        self._failed_pairs: set[tuple[int, int]] = set()
        self._remote_endpoints: dict[int, list[LinkRemoteEndpoint]] = {}
        self._pci_keys: dict[int, tuple[int, int, int] | None] = {}

    def build(self) -> TopologySnapshot:
        """Reconstruct the full topology of the device set."""
        self._failed_pairs.clear()
        count = len(self.devices)
        matrix = [
            [self.connection(i, j) for j in range(count)] for i in range(count)
        ]

        gpus = []
        for index in range(count):
            try:
                gpus.append(self.gpu_info(index))
            except NvGpuExporterError as e:
                self.warning(f"Skipping GPU{index} in topology: {e}")

        return TopologySnapshot(
            gpus=gpus,
            matrix=matrix,
            nic_adjacency=self.nic_adjacency(),
        )

    def connection(self, i: int, j: int) -> str:
        """Connection label between devices ``i`` and ``j``. Symmetric."""
        if i == j:
            return TOPOLOGY_SELF

        key = (min(i, j), max(i, j))
        label = self._pair_cache.get(key)
        if label is not None:
            return label
        if key in self._failed_pairs:
            return TOPOLOGY_UNKNOWN

        try:
            label = self._pair_label(*key)
        except TransientQueryError as e:
            self.warning(
                f"Failed to get topology between {self._describe(key[0])} "
                f"and {self._describe(key[1])}: {e}"
            )
            self._failed_pairs.add(key)
            return TOPOLOGY_UNKNOWN

        self._pair_cache[key] = label
        return label

    def nvlink_count(self, i: int, j: int) -> int:
        """Number of ``i``'s NVLinks whose remote end is device ``j``.

        Raises:
            TransientQueryError: If ``j``'s PCI bus id cannot be read.
        """
        target = self._pci_key(j)
        if target is None:
            return 0
        return sum(
            1
            for endpoint in self._links_of(i)
            if _safe_pci_key(endpoint.pci_bus_id) == target
        )

    def _pair_label(self, low: int, high: int) -> str:
        links = self.nvlink_count(low, high)
        if links > 0:
            return f"{NVLINK_LABEL_PREFIX}{links}"

        try:
            return self.devices[low].get_common_ancestor(self.devices[high]).label
        except NotSupportedError:
            return TOPOLOGY_UNKNOWN

    def _describe(self, index: int) -> str:
        """The device UUID for log messages, or its position when that is unreadable."""
        try:
            return f"GPU {self.devices[index].uuid}"
        except NvGpuExporterError:
            return f"GPU{index}"

    def _links_of(self, index: int) -> list[LinkRemoteEndpoint]:
        endpoints = self._remote_endpoints.get(index)
        if endpoints is not None:
            return endpoints

        device = self.devices[index]
        endpoints = []
        for link in range(self.max_links):
            try:
                endpoints.append(device.get_link_remote_endpoint(link))
            except NotSupportedError:
                continue
            except TransientQueryError as e:
                self.debug(
                    lambda: f"No remote endpoint for GPU{index} link {link}: {e}"
                )
                continue
        self._remote_endpoints[index] = endpoints
        return endpoints

    def _pci_key(self, index: int) -> tuple[int, int, int] | None:
        if index not in self._pci_keys:
            try:
                pci_bus_id = self.devices[index].pci_bus_id
            except NotSupportedError:
                pci_bus_id = ""
            self._pci_keys[index] = _safe_pci_key(pci_bus_id)
        return self._pci_keys[index]

    def nic_adjacency(self) -> dict[int, list[NicAdjacency]]:
        """NIC/switch endpoints reachable over NVLink, per GPU index.

        Links to the same remote PCI device collapse into one entry carrying
        the number of links. Entries keep the order of first discovery. GPUs
        with no such endpoint are omitted.
        """
        adjacency: dict[int, list[NicAdjacency]] = {}
        for index in range(len(self.devices)):
            grouped: dict[tuple[int, int, int], list[LinkRemoteEndpoint]] = {}
            for endpoint in self._links_of(index):
                if endpoint.endpoint_type not in self.nic_endpoint_types:
                    continue
                key = _safe_pci_key(endpoint.pci_bus_id)
                if key is None:
                    continue
                grouped.setdefault(key, []).append(endpoint)

            if grouped:
                adjacency[index] = [
                    NicAdjacency(
                        pci_bus_id=endpoints[0].pci_bus_id,
                        endpoint_type=endpoints[0].endpoint_type,
                        link_count=len(endpoints),
                    )
                    for endpoints in grouped.values()
                ]
        return adjacency

    def gpu_info(self, index: int) -> GpuTopologyInfo:
        """Identity and affinity labels for device ``index``.

        Raises:
            NvGpuExporterError: If the UUID or PCI bus id cannot be read.
        """
        device = self.devices[index]
        uuid = device.uuid
        pci_bus_id = device.pci_bus_id
        memory_words = self._affinity(uuid, "memory", device.get_memory_affinity)
        return GpuTopologyInfo(
            index=index,
            uuid=uuid,
            pci_bus_id=pci_bus_id,
            cpu_affinity=format_affinity(
                self._affinity(uuid, "CPU", device.get_cpu_affinity)
            ),
            numa_affinity=format_affinity(memory_words),
            gpu_numa_id=_single_node(memory_words),
        )

    def _affinity(self, uuid: str, kind: str, query) -> list[int]:
        try:
            return list(query())
        except NotSupportedError:
            return []
        except TransientQueryError as e:
            self.warning(f"Failed to get {kind} affinity for GPU {uuid}: {e}")
            return []


def _safe_pci_key(pci_bus_id: str) -> tuple[int, int, int] | None:
    try:
        return pci_device_key(pci_bus_id)
    except ValueError:
        return None


def _single_node(words: Sequence[int], word_bits: int = 64) -> str:
    """The NUMA node id when exactly one node bit is set, else ``unknown``."""
    nodes = _set_bits(words, word_bits)
    return str(nodes[0]) if len(nodes) == 1 else AFFINITY_UNKNOWN
