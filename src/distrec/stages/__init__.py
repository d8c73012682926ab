# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Map and reduce tasks for the recommender pipeline phases.
"""

from .multiply import (
    PartialMultiplyMapper,
    ScoreAggregationCombiner,
    ScoreAggregationReducer,
    SimilarityRowWrapper,
    ToVectorAndPrefsReducer,
    UserVectorSplitter,
)
from .prepare import load_preferences
from .recommend import (
    KnownItemsMapper,
    RecommendationReducer,
    TransposeScoresMapper,
    recommendations_frame,
    save_recommendations,
    write_recommendations_text,
)
from .rowsim import (
    MergeColumnsReducer,
    RowNormalizationStage,
    RowSimilarityJob,
    SimilarityReducer,
    TopKReducer,
)

__all__ = [
    "load_preferences",
    "RowSimilarityJob",
    "RowNormalizationStage",
    "MergeColumnsReducer",
    "SimilarityReducer",
    "TopKReducer",
    "SimilarityRowWrapper",
    "UserVectorSplitter",
    "ToVectorAndPrefsReducer",
    "PartialMultiplyMapper",
    "ScoreAggregationReducer",
    "ScoreAggregationCombiner",
    "TransposeScoresMapper",
    "KnownItemsMapper",
    "RecommendationReducer",
    "recommendations_frame",
    "save_recommendations",
    "write_recommendations_text",
]
