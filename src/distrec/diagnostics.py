# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Warning and error classes for DistRec jobs.
"""

from __future__ import annotations


class DataWarning(UserWarning):
    """
    Warning raised for detectable problems with input data.
    """

    pass


class ConfigurationError(Exception):
    """
    A required job parameter is missing or cannot be parsed.

    Raised at stage or job setup time, before any data is processed.
    """

    pass


class DataShapeViolation(Exception):
    """
    Input data or configuration violates a structural assumption of the
    pipeline, such as an index outside the supported range or statistics
    produced by a different similarity measure.
    """

    pass


class PhaseFailure(Exception):
    """
    A pipeline phase did not complete successfully.

    Args:
        phase:
            The name of the phase that failed.
        job:
            The name of the substrate job that reported failure, if known.
    """

    phase: str
    job: str | None

    def __init__(self, phase: str, job: str | None = None, message: str | None = None):
        self.phase = phase
        self.job = job
        if message is None:
            message = f"phase {phase} failed"
            if job is not None:
                message += f" (job {job})"
        super().__init__(message)
