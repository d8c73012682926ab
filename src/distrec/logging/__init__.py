# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Logging and timing support.
"""

from ._proxy import get_logger
from .config import LoggingConfig, console
from .stopwatch import Stopwatch, friendly_duration
from .tracing import trace

__all__ = [
    "LoggingConfig",
    "console",
    "get_logger",
    "trace",
    "friendly_duration",
    "Stopwatch",
]
