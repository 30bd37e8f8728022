# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
from pydantic import BaseModel, ConfigDict


class ExporterBaseModel(BaseModel):
    """Base model for all exporter pydantic models."""

    model_config = ConfigDict(extra="forbid", frozen=True)
