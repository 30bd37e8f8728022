# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Rate limiting for repeated per-field failure log lines."""

import threading
import time
from collections import defaultdict
from collections.abc import Callable, Hashable

from nvgpu_exporter.common.environment import Environment


class LogSuppressor:
    """Allow one log line per key per time window.

    A polling pass can hit the same failing (field, device, link) every tick.
    The first occurrence is logged; repeats within ``window`` seconds are
    counted instead. The next allowed log line reports how many were dropped.

    A window of 0 disables suppression. Safe to share between threads.

    Args:
        window: Suppression window in seconds (default: from Environment)
        clock: Monotonic clock in seconds, injectable for tests
    """

    def __init__(
        self,
        window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = (
            window if window is not None else Environment.LOGGING.SUPPRESSION_WINDOW
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._last_logged: dict[Hashable, float] = {}
        self._suppressed: dict[Hashable, int] = defaultdict(int)

    @property
    def window(self) -> float:
        return self._window

    def should_log(self, key: Hashable) -> tuple[bool, int]:
        """Decide whether to log an occurrence of ``key``.

        Returns:
            (allowed, suppressed_count): ``suppressed_count`` is the number of
            occurrences dropped since the last allowed one, reset to 0 when
            ``allowed`` is True.
        """
        if self._window <= 0:
            return True, 0

        now = self._clock()
        with self._lock:
            last = self._last_logged.get(key)
            if last is not None and now - last < self._window:
                self._suppressed[key] += 1
                return False, self._suppressed[key]

            self._last_logged[key] = now
            return True, self._suppressed.pop(key, 0)

    def reset(self) -> None:
        with self._lock:
            self._last_logged.clear()
            self._suppressed.clear()
