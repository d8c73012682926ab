# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Wall-clock timing for jobs and phases.
"""

from __future__ import annotations

import time


def friendly_duration(elapsed: float) -> str:
    """
    Format a duration in seconds as a short human-readable string.
    """
    if elapsed < 1:
        return "{:0.0f}ms".format(elapsed * 1000)
    elif elapsed < 60:
        return "{:0.2f}s".format(elapsed)

    m, s = divmod(elapsed, 60)
    if m < 60:
        return "{:0.0f}m{:0.2f}s".format(m, s)

    h, m = divmod(m, 60)
    return "{:0.0f}h{:0.0f}m{:0.2f}s".format(h, m, s)


class Stopwatch:
    """
    Timer recording elapsed wall time, usually interpolated into log messages
    as ``"[%s] ..."``.
    """

    start_time: float
    stop_time: float | None = None

    def __init__(self):
        self.start_time = time.perf_counter()

    def stop(self) -> float:
        """
        Stop the timer and return the elapsed time.
        """
        self.stop_time = time.perf_counter()
        return self.elapsed()

    def elapsed(self) -> float:
        "Get the elapsed time in seconds."
        stop = self.stop_time if self.stop_time is not None else time.perf_counter()
        return stop - self.start_time

    def __str__(self):
        return friendly_duration(self.elapsed())

    def __repr__(self):
        state = "stopped" if self.stop_time is not None else "running"
        return "<Stopwatch {} at {:.3f}s>".format(state, self.elapsed())
