# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from nvgpu_exporter.common.mixins.logger_mixin import ExporterLoggerMixin

__all__ = ["ExporterLoggerMixin"]
