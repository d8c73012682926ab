# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Distributed item- and user-based collaborative filtering.
"""

import lazy_loader as lazy

from ._version import distrec_version

__version__ = distrec_version()


# IMPORTANT: this must be kept in sync with __init__.pyi
__getattr__, __dir__, __all__ = lazy.attach(
    __name__,
    submodules=[
        "config",
        "data",
        "diagnostics",
        "logging",
        "orchestrator",
        "random",
        "similarity",
        "stages",
        "substrate",
    ],
    submod_attrs={
        "config": ["configure", "RecommenderConfig"],
        "orchestrator": ["Phase", "PipelineOrchestrator"],
        "similarity": ["SimilarityMeasure"],
    },
)
