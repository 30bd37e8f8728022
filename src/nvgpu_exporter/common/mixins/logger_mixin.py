# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from collections.abc import Callable

from nvgpu_exporter.common.exporter_logger import _TRACE, ExporterLogger


class ExporterLoggerMixin:
    """Mixin that gives a class ``self.debug(...)``/``self.info(...)``/etc.

    The logger name defaults to the class name so log lines read
    ``(NVLinkErrorCollector:123)`` on the console.
    """

    def __init__(self, logger_name: str | None = None, **kwargs) -> None:
        self.logger = ExporterLogger(logger_name or self.__class__.__name__)
        super().__init__(**kwargs)

    @property
    def is_debug_enabled(self) -> bool:
        return self.logger.is_debug_enabled

    def trace(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.logger.log(_TRACE, message, *args, **kwargs)

    def debug(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.logger.log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.logger.log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.logger.log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.logger.log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self.logger.log(logging.ERROR, message, *args, **kwargs)
