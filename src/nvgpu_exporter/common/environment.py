# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Environment-driven settings for the exporter.

Each concern has its own ``*Settings`` class with a dedicated environment
variable prefix. Settings are read once at import time and exposed through the
``Environment`` singleton, e.g. ``Environment.COLLECTOR.COLLECTION_INTERVAL``
is read from ``NVGPU_COLLECTOR_COLLECTION_INTERVAL``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nvgpu_exporter.common.enums import TopologyMode


class _CollectorSettings(BaseSettings):
    """Periodic collection settings."""

    model_config = SettingsConfigDict(env_prefix="NVGPU_COLLECTOR_")

    COLLECTION_INTERVAL: float = Field(
        default=60.0,
        gt=0.0,
        description="Interval in seconds between polling passes",
    )
    SKIP_IF_RUNNING: bool = Field(
        default=False,
        description="Skip a tick when the previous polling pass is still running",
    )
    MAX_NVLINK_LINKS: int = Field(
        default=18,
        ge=0,
        le=64,
        description="Number of NVLink links scanned per device (NVML_NVLINK_MAX_LINKS)",
    )
    TOPOLOGY_MODE: TopologyMode = Field(
        default=TopologyMode.ONCE,
        description="When to collect GPU/NIC topology: once, every_tick or disabled",
    )


class _EventsSettings(BaseSettings):
    """Fault event subscription settings."""

    model_config = SettingsConfigDict(env_prefix="NVGPU_EVENTS_")

    ENABLED: bool = Field(
        default=True,
        description="Subscribe to critical Xid fault events",
    )
    WAIT_TIMEOUT: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds to block waiting for the next event before re-entering the wait",
    )
    ERROR_BACKOFF: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds to pause after a failed wait before waiting again",
    )


class _LoggingSettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="NVGPU_LOGGING_")

    LEVEL: str = Field(
        default="INFO",
        description="Root log level",
    )
    SUPPRESSION_WINDOW: float = Field(
        default=300.0,
        ge=0.0,
        description="Seconds during which repeated per-field failures are logged only once (0 disables suppression)",
    )
    MAX_CONSOLE_MESSAGE_LENGTH: int = Field(
        default=10_000,
        ge=1,
        description="Messages longer than this are truncated on the console",
    )
    DEFAULT_CONSOLE_WIDTH: int = Field(
        default=120,
        ge=40,
        description="Console width used when the terminal size is unknown",
    )
    MIN_CONSOLE_INDENT_WRAP_WIDTH: int = Field(
        default=90,
        ge=40,
        description="Minimum console width at which wrapped lines are indented",
    )


class _MetricsSettings(BaseSettings):
    """Exported metric settings."""

    model_config = SettingsConfigDict(env_prefix="NVGPU_METRICS_")

    NAMESPACE: str = Field(
        default="nvgpu",
        description="Prefix applied to every exported metric name",
    )


class _Environment(BaseSettings):
    """Aggregates all settings groups."""

    COLLECTOR: _CollectorSettings = Field(default_factory=_CollectorSettings)
    EVENTS: _EventsSettings = Field(default_factory=_EventsSettings)
    LOGGING: _LoggingSettings = Field(default_factory=_LoggingSettings)
    METRICS: _MetricsSettings = Field(default_factory=_MetricsSettings)


Environment = _Environment()
