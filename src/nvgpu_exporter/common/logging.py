# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Rich console logging for the exporter.

Log lines render as::

    12:26:52.092 INFO     Xid error detected uuid=GPU-ef6e... xid=79 (EventCollector:141)

Usage::

    from nvgpu_exporter.common.logging import setup_logging

    setup_logging()  # level from NVGPU_LOGGING_LEVEL
"""

import logging
import re
from datetime import datetime

from rich.console import Console, ConsoleRenderable, Group
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.text import Span, Text
from rich.traceback import Traceback

from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.exporter_logger import ExporterLogger

_logger = ExporterLogger(__name__)


def setup_logging(
    level: str | int | None = None, console: Console | None = None
) -> None:
    """Install a :class:`CustomRichHandler` on the root logger.

    Existing handlers are removed so repeated calls do not duplicate output.

    Args:
        level: Root log level. Defaults to ``Environment.LOGGING.LEVEL``.
        console: Rich console to render to. Defaults to a new stderr console.
    """
    if level is None:
        level = Environment.LOGGING.LEVEL
    if isinstance(level, str):
        level = level.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    rich_handler = CustomRichHandler(
        rich_tracebacks=True,
        show_path=False,
        console=console or Console(stderr=True),
        show_time=False,
        show_level=False,
        tracebacks_show_locals=False,
    )
    rich_handler.setLevel(level)
    root_logger.addHandler(rich_handler)

    _logger.debug(lambda: f"Logging initialized with level: {level}")


class LogHighlighter(RegexHighlighter):
    """Highlighter for exporter log messages.

    Highlights GPU UUIDs, PCI bus ids, numbers, quoted strings, booleans and
    key=value pairs using a single combined regex.
    """

    base_style = "repr."

    _MEGA_PATTERN = re.compile(
        r"(?P<uuid>(?:GPU-)?[a-fA-F0-9]{8}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{12})"  # GPU and cluster UUIDs
        r"|(?P<pci>\b[0-9a-fA-F]{4,8}:[0-9a-fA-F]{2}:[0-9a-fA-F]{2}\.[0-7]\b)"  # PCI bus ids
        r"|(?P<number>(?<![.\w])-?\d+\.?\d*(?:(?:e[+-]?\d+)|(?:ns|us|ms|s))?\b)"  # Numbers
        r"|(?P<str>\"[^\"]*\"|'[^']*')"  # Quoted strings
        r"|\b(?P<bool_true>True)\b|\b(?P<bool_false>False)\b|\b(?P<none>None)\b"
        r"|(?P<brace>[\[\](){}])"
        r"|\b(?P<attrib_name>\w+)=(?P<attrib_value>[^\s,=\[\](){}]+)?"
    )  # fmt: skip

    highlights = [_MEGA_PATTERN]

    def highlight(self, text: Text) -> None:
        """Apply highlighting in-place using one ``finditer`` pass."""
        plain = text.plain
        append_span = text._spans.append
        prefix = self.base_style

        for match in self._MEGA_PATTERN.finditer(plain):
            for name, value in match.groupdict().items():
                if value is not None:
                    start, end = match.span(name)
                    if start != -1:
                        append_span(Span(start, end, f"{prefix}{name}"))


class CustomRichHandler(RichHandler):
    """Rich logging handler with a compact ``HH:MM:SS.mmm LEVEL message (logger:lineno)`` format.

    Messages longer than ``Environment.LOGGING.MAX_CONSOLE_MESSAGE_LENGTH`` are
    truncated. On consoles at least ``MIN_CONSOLE_INDENT_WRAP_WIDTH`` wide,
    continuation lines of multi-line messages are indented to align with the
    first line's message.
    """

    LOG_LEVEL_STYLES = {
        "TRACE": "dim",
        "DEBUG": "dim",
        "INFO": "cyan",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red",
    }

    PREFIX_LENGTH = 22  # "HH:MM:SS.mmm LEVEL    " is fixed at 22 chars

    _INDENT = " " * PREFIX_LENGTH

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.highlighter = LogHighlighter()

    def render(
        self,
        *,
        record: logging.LogRecord,
        traceback: Traceback | None,
        message_renderable: ConsoleRenderable,
    ) -> ConsoleRenderable:
        """Render a log record into a styled Rich renderable.

        Args:
            record: The log record containing message, level, logger name, etc.
            traceback: Optional Rich Traceback to append after the log message.
            message_renderable: Pre-rendered message (unused; re-rendered from record).

        Returns:
            A Text, or a Group of the Text and the traceback when one is given.
        """
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level_style = self.LOG_LEVEL_STYLES.get(record.levelname, "white")
        message = record.getMessage()[: Environment.LOGGING.MAX_CONSOLE_MESSAGE_LENGTH]

        console_width = (
            self.console.size.width
            if self.console
            else Environment.LOGGING.DEFAULT_CONSOLE_WIDTH
        )
        indent = console_width >= Environment.LOGGING.MIN_CONSOLE_INDENT_WRAP_WIDTH
        separator = f"\n{self._INDENT}" if indent else "\n"
        body = Text(separator.join(line for line in message.split("\n") if line))
        self.highlighter.highlight(body)

        formatted_log = Text.assemble(
            Text(f"{timestamp} ", style="log.time"),
            Text(f"{record.levelname:<8} ", style=level_style),
            body,
            Text(f" ({record.name}:{record.lineno})", style="dim italic"),
        )
        return Group(formatted_log, traceback) if traceback else formatted_log

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record to the console with the custom format."""
        traceback = None
        if (
            self.rich_tracebacks
            and record.exc_info
            and record.exc_info != (None, None, None)
        ):
            traceback = Traceback.from_exception(*record.exc_info)

        log_renderable = self.render(
            record=record, traceback=traceback, message_renderable=Text("")
        )
        self.console.print(log_renderable)
