# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Data model: sparse vectors, stage records, ID indices, and artifact storage.
"""

from .records import (
    ColumnStat,
    ColumnStatistics,
    PartialScores,
    Preference,
    RecommendedItems,
    ScoresOrPrefs,
    StatKey,
    StatKind,
    VectorAndPrefs,
    VectorOrPref,
    is_stat_key,
)
from .store import ArtifactStore, ParquetStore
from .vectors import MAX_INDEX, SparseVector, check_index_range
from .vocab import Vocabulary

__all__ = [
    "SparseVector",
    "MAX_INDEX",
    "check_index_range",
    "Vocabulary",
    "ArtifactStore",
    "ParquetStore",
    "ColumnStat",
    "ColumnStatistics",
    "PartialScores",
    "Preference",
    "RecommendedItems",
    "ScoresOrPrefs",
    "StatKey",
    "StatKind",
    "VectorAndPrefs",
    "VectorOrPref",
    "is_stat_key",
]
