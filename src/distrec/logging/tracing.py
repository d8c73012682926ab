# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Trace-level logging for per-record messages in map and reduce tasks.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Literal

import structlog
from structlog.stdlib import BoundLogger

TraceMode = bool | Literal["debug"]

# DR_TRACE=debug routes trace messages to DEBUG without any logging config
_trace_mode: TraceMode = "debug" if os.environ.get("DR_TRACE", "").lower() == "debug" else False


def activate_tracing(mode: TraceMode = True) -> None:
    """
    Turn tracing on or off.  With ``"debug"``, trace messages are emitted at
    ``DEBUG`` level.
    """
    global _trace_mode
    _trace_mode = mode


def trace(logger: BoundLogger, *args: Any, **kwargs: Any):
    """
    Emit a trace message if tracing is on.  This is cheap when tracing is
    off, so tasks can call it per record.  It needs a bound logger, not the
    lazy proxy from :func:`~distrec.logging.get_logger`.
    """
    if not _trace_mode:
        return
    elif _trace_mode == "debug":
        logger.debug(*args, **kwargs)
    else:
        method = getattr(logger, "trace", None)
        if method is not None:
            method(*args, **kwargs)


class TracingLogger(structlog.stdlib.BoundLogger):
    "Bound logger with a ``trace`` method, used when the level is below DEBUG."

    def trace(self, event: str | None, *args: Any, **kw: Any):
        if args:
            kw["positional_args"] = args
        try:
            args, kwargs = self._process_event("trace", event, kw)  # type: ignore
        except structlog.DropEvent:
            return None
        self._logger.debug(*args, **kwargs)


def filtering_logger(level: int) -> type:
    """
    Get the bound logger class for a level.  Below DEBUG it traces; otherwise
    ``trace`` is a no-op on a structlog filtering logger.
    """
    if level < logging.DEBUG:
        return TracingLogger

    def trace(self, event: str | None, *args: Any, **kw: Any):
        pass

    base = structlog.make_filtering_bound_logger(level)
    return type(f"DistRecLogger{level}", (base,), {"trace": trace})
