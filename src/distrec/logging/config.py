# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Logging setup for the command line.

Library code only obtains loggers with :func:`~distrec.logging.get_logger`;
handlers and renderers are installed here, by the CLI, so that applications
embedding DistRec keep control of their own logging.
"""

from __future__ import annotations

import logging
import os
import re
import sys
import warnings
from logging import Handler, LogRecord
from pathlib import Path
from typing import Any, Literal

import structlog
from rich.ansi import AnsiDecoder
from rich.console import Console
from structlog.dev import RichTracebackFormatter
from structlog.typing import EventDict

from .tracing import activate_tracing, filtering_logger

LVL_TRACE = 5
"Numeric level for per-record trace messages, below ``DEBUG``."

SHARED_PROCESSORS = [
    structlog.processors.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.MaybeTimeStamper(fmt="iso"),
]

console = Console(stderr=True)


class RichLineHandler(Handler):
    """
    Handler printing pre-rendered structlog lines through the shared Rich
    console, so log output interleaves cleanly with other console output.
    """

    _decoder = AnsiDecoder()

    @property
    def colorize(self) -> bool:
        return console.is_terminal and not console.no_color

    def emit(self, record: LogRecord) -> None:
        try:
            line = self.format(record)
            console.print(self._decoder.decode_line(line))
        except Exception:
            self.handleError(record)


def drop_private_keys(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    "Remove keys starting with ``_`` before rendering."
    for key in [k for k in event_dict if k.startswith("_")]:
        del event_dict[key]
    return event_dict


def _route_warning(message, category, filename, lineno, file=None, line=None):
    structlog.stdlib.get_logger("distrec").warning(
        str(message), category=category.__name__, file=filename, lineno=lineno
    )


class LoggingConfig:  # pragma: nocover
    """
    Logging configuration for the ``distrec`` command.

    Messages go to the terminal (rendered with Rich, or as JSON lines) and,
    optionally, to a JSON log file.  The ``DR_LOG_LEVEL`` and ``DR_LOG_FILE``
    environment variables set the initial terminal level and log file.
    """

    level: int = logging.INFO
    stream: Literal["rich", "json"] = "rich"
    file: Path | None = None
    file_level: int | None = None

    def __init__(self):
        if env_level := _parse_level(os.environ.get("DR_LOG_LEVEL")):
            self.level = env_level
        if env_file := os.environ.get("DR_LOG_FILE"):
            self.file = Path(env_file)

    @property
    def effective_level(self) -> int:
        "The lowest level any handler will accept."
        if self.file_level is not None:
            return min(self.level, self.file_level)
        return self.level

    def set_verbose(self, verbose: bool | int = True):
        """
        Lower the terminal level: one ``-v`` shows ``DEBUG`` messages, two or
        more show per-record trace messages too.
        """
        if isinstance(verbose, int) and verbose > 1:
            self.level = LVL_TRACE
        elif verbose:
            self.level = logging.DEBUG
        else:
            self.level = logging.INFO

    def set_log_file(self, path: os.PathLike[str], level: int | None = None):
        "Also write JSON log lines to ``path``."
        self.file = Path(path)
        self.file_level = level

    def apply(self):
        """
        Install the handlers and configure :mod:`structlog`.
        """
        level = self.effective_level
        structlog.configure(
            processors=SHARED_PROCESSORS + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            wrapper_class=filtering_logger(level),
            logger_factory=structlog.stdlib.LoggerFactory(),
        )

        root = logging.getLogger()
        root.addHandler(self._terminal_handler())
        if self.file is not None:
            root.addHandler(self._file_handler(self.file))
        root.setLevel(level)

        if level <= LVL_TRACE:
            activate_tracing(True)
        warnings.showwarning = _route_warning

    def _terminal_handler(self) -> Handler:
        handler: Handler
        if self.stream == "json":
            handler = logging.StreamHandler(sys.stderr)
            renderer = structlog.processors.JSONRenderer()
        else:
            import click

            handler = RichLineHandler()
            renderer = structlog.dev.ConsoleRenderer(
                colors=handler.colorize,
                exception_formatter=RichTracebackFormatter(
                    show_locals=self.level < logging.INFO, suppress=[click]
                ),
            )

        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[drop_private_keys, renderer], foreign_pre_chain=SHARED_PROCESSORS
            )
        )
        handler.setLevel(self.level)
        return handler

    def _file_handler(self, path: Path) -> Handler:
        handler = logging.FileHandler(path, mode="w")
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    drop_private_keys,
                    structlog.processors.dict_tracebacks,
                    structlog.processors.JSONRenderer(),
                ],
                foreign_pre_chain=SHARED_PROCESSORS,
            )
        )
        handler.setLevel(self.file_level if self.file_level is not None else self.level)
        return handler


def _parse_level(text: str | None) -> int | None:
    if not text:
        return None

    text = text.strip().upper()
    if re.fullmatch(r"\d+", text):
        return int(text)
    elif text == "TRACE":
        return LVL_TRACE

    level = logging.getLevelNamesMapping().get(text)
    if level is None:
        warnings.warn(f"invalid log level {text}")
    return level
