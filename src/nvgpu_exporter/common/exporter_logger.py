# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Thin wrapper around :class:`logging.Logger` with lazy message evaluation.

Messages may be passed as a zero-argument callable, which is only invoked when
the level is enabled. This keeps f-string formatting out of the hot collection
path when debug logging is off::

    _logger.debug(lambda: f"Built {len(requests)} requests for {uuid}")
"""

import logging
from collections.abc import Callable

_TRACE = 5
_DEBUG = logging.DEBUG

logging.addLevelName(_TRACE, "TRACE")


class ExporterLogger:
    """Logger that accepts either a string or a callable returning a string."""

    def __init__(self, logger_name: str) -> None:
        self._logger = logging.getLogger(logger_name)

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def is_trace_enabled(self) -> bool:
        return self._logger.isEnabledFor(_TRACE)

    @property
    def is_debug_enabled(self) -> bool:
        return self._logger.isEnabledFor(_DEBUG)

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def log(
        self, level: int, message: str | Callable[..., str], *args, **kwargs
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if callable(message):
            message = message()
        # stacklevel=3 attributes the record to the caller of debug()/info()/...
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, message, *args, **kwargs)

    def trace(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.log(_TRACE, message, *args, **kwargs)

    def debug(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, message, *args, **kwargs)

    def critical(self, message: str | Callable[..., str], *args, **kwargs) -> None:
        self.log(logging.CRITICAL, message, *args, **kwargs)
