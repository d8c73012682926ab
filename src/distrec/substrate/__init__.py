# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
The execution substrate: the interface pipeline stages are written against,
and an in-process implementation of it.
"""

from ._base import (
    Counters,
    IdentityMapper,
    IdentityReducer,
    JobResult,
    JobSpec,
    Mapper,
    Reducer,
    Substrate,
    TaskContext,
)
from .chunking import WorkChunks
from .local import LocalSubstrate

__all__ = [
    "Counters",
    "IdentityMapper",
    "IdentityReducer",
    "JobResult",
    "JobSpec",
    "Mapper",
    "Reducer",
    "Substrate",
    "TaskContext",
    "WorkChunks",
    "LocalSubstrate",
]
