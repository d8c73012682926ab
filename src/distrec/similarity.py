# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Vector similarity measures for the row-similarity stage.

A measure is split into four pieces so it can be computed in a partitioned
job: a per-row ``normalize`` applied before anything is emitted, a per-row
``norm`` collected as a column statistic, a per-column ``aggregate`` of the
two values a pair of rows shares, and a final ``similarity`` computed from the
summed aggregates and the two norms.
"""

# pyright: basic
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from enum import Enum

import numpy as np
from scipy.special import xlogy
from typing_extensions import override

from distrec.data.vectors import SparseVector
from distrec.diagnostics import ConfigurationError


class VectorSimilarity(ABC):
    """
    Base class for similarity measure implementations.
    """

    name: str

    def normalize(self, vector: SparseVector) -> SparseVector:
        """
        Normalize a row before its entries are emitted.
        """
        return vector

    @abstractmethod
    def norm(self, vector: SparseVector) -> float:
        """
        Compute the norm of a (normalized) row, to be recorded as a column
        statistic.
        """
        raise NotImplementedError()

    @abstractmethod
    def aggregate(self, value_a: float, value_b: float) -> float:
        """
        Compute the contribution of one column in which both rows are non-zero.
        """
        raise NotImplementedError()

    @abstractmethod
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        """
        Compute the final similarity from summed aggregates and row norms.
        """
        raise NotImplementedError()

    def consider(
        self, count_a: int, count_b: int, max_a: float, max_b: float, threshold: float
    ) -> bool:
        """
        Decide whether a pair could possibly reach ``threshold``.  Returning
        ``False`` must only happen when the pair's score is certainly below it.
        """
        return True

    def __repr__(self):
        return f"<{self.__class__.__name__}>"


class CooccurrenceCountSimilarity(VectorSimilarity):
    name = "cooccurrence"

    @override
    def norm(self, vector: SparseVector) -> float:
        return 0.0

    @override
    def aggregate(self, value_a: float, value_b: float) -> float:
        return 1.0

    @override
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        return dots


class CosineSimilarity(VectorSimilarity):
    """
    Cosine similarity.  Rows are unit-normalized up front, so the summed
    aggregates are already the cosine; dividing by the recorded norms only
    matters for rows that were zero.
    """

    name = "cosine"

    @override
    def normalize(self, vector: SparseVector) -> SparseVector:
        length = vector.norm(2)
        if length == 0:
            return vector
        return vector / length

    @override
    def norm(self, vector: SparseVector) -> float:
        return vector.norm(2)

    @override
    def aggregate(self, value_a: float, value_b: float) -> float:
        return value_a * value_b

    @override
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        denom = norm_a * norm_b
        if denom <= 0:
            return 0.0
        return dots / denom

    @override
    def consider(
        self, count_a: int, count_b: int, max_a: float, max_b: float, threshold: float
    ) -> bool:
        # entries of unit vectors are at most 1 in magnitude
        return count_b * max_a >= threshold and count_a * max_b >= threshold


class PearsonCorrelationSimilarity(CosineSimilarity):
    """
    Pearson correlation, computed as the cosine of mean-centered rows.  The
    mean is over each row's non-zero entries.
    """

    name = "pearson"

    @override
    def normalize(self, vector: SparseVector) -> SparseVector:
        if not vector:
            return vector
        centered = vector.map_values(lambda vs: vs - np.mean(vs))
        return super().normalize(centered)

    @override
    def consider(
        self, count_a: int, count_b: int, max_a: float, max_b: float, threshold: float
    ) -> bool:
        return True


class EuclideanDistanceSimilarity(VectorSimilarity):
    name = "euclidean"

    @override
    def norm(self, vector: SparseVector) -> float:
        return vector.length_squared()

    @override
    def aggregate(self, value_a: float, value_b: float) -> float:
        return value_a * value_b

    @override
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        dist = math.sqrt(max(norm_a - 2 * dots + norm_b, 0.0))
        return 1.0 / (1.0 + dist)


class CountBasedSimilarity(VectorSimilarity):
    "Base class for measures that only look at which entries are non-zero."

    @override
    def norm(self, vector: SparseVector) -> float:
        return float(vector.nnz)

    @override
    def aggregate(self, value_a: float, value_b: float) -> float:
        return 1.0


class TanimotoCoefficientSimilarity(CountBasedSimilarity):
    name = "tanimoto"

    @override
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        union = norm_a + norm_b - dots
        if union <= 0:
            return 0.0
        return dots / union


class CityBlockSimilarity(CountBasedSimilarity):
    name = "cityblock"

    @override
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        return 1.0 / (1.0 + norm_a + norm_b - 2 * dots)


class LoglikelihoodSimilarity(CountBasedSimilarity):
    """
    Similarity from Dunning's log-likelihood ratio of the co-occurrence
    contingency table.
    """

    name = "loglikelihood"

    @override
    def similarity(self, dots: float, norm_a: float, norm_b: float, n_columns: int) -> float:
        llr = log_likelihood_ratio(
            dots, norm_b - dots, norm_a - dots, n_columns - norm_a - norm_b + dots
        )
        return 1.0 - 1.0 / (1.0 + llr)


def _entropy(*counts: float) -> float:
    total = sum(counts)
    return float(xlogy(total, total) - sum(xlogy(k, k) for k in counts))


def log_likelihood_ratio(k11: float, k12: float, k21: float, k22: float) -> float:
    """
    Compute the log-likelihood ratio of a 2x2 contingency table.
    """
    row = _entropy(k11 + k12, k21 + k22)
    col = _entropy(k11 + k21, k12 + k22)
    mat = _entropy(k11, k12, k21, k22)
    if row + col < mat:
        # round-off error
        return 0.0
    return 2.0 * (row + col - mat)


class SimilarityMeasure(str, Enum):
    """
    The available similarity measures.  Exactly one is chosen per pipeline
    run, and the same implementation is used by every stage.
    """

    COOCCURRENCE = "cooccurrence"
    COSINE = "cosine"
    PEARSON = "pearson"
    EUCLIDEAN = "euclidean"
    TANIMOTO = "tanimoto"
    LOGLIKELIHOOD = "loglikelihood"
    CITYBLOCK = "cityblock"

    @property
    def implementation(self) -> VectorSimilarity:
        return _IMPLEMENTATIONS[self]


_IMPLEMENTATIONS: dict[SimilarityMeasure, VectorSimilarity] = {
    SimilarityMeasure.COOCCURRENCE: CooccurrenceCountSimilarity(),
    SimilarityMeasure.COSINE: CosineSimilarity(),
    SimilarityMeasure.PEARSON: PearsonCorrelationSimilarity(),
    SimilarityMeasure.EUCLIDEAN: EuclideanDistanceSimilarity(),
    SimilarityMeasure.TANIMOTO: TanimotoCoefficientSimilarity(),
    SimilarityMeasure.LOGLIKELIHOOD: LoglikelihoodSimilarity(),
    SimilarityMeasure.CITYBLOCK: CityBlockSimilarity(),
}

_ALIASES = {
    "cooccurrence_count": SimilarityMeasure.COOCCURRENCE,
    "log_likelihood": SimilarityMeasure.LOGLIKELIHOOD,
    "tanimoto_coefficient": SimilarityMeasure.TANIMOTO,
    "city_block": SimilarityMeasure.CITYBLOCK,
    "pearson_correlation": SimilarityMeasure.PEARSON,
    "euclidean_distance": SimilarityMeasure.EUCLIDEAN,
}


def resolve_measure(name: str | SimilarityMeasure) -> SimilarityMeasure:
    """
    Resolve a similarity measure name.  Accepts the enumeration values and the
    older ``SIMILARITY_*`` constant names (e.g. ``SIMILARITY_CITY_BLOCK``).

    Raises:
        ConfigurationError: if the name is not a known measure.
    """
    if isinstance(name, SimilarityMeasure):
        return name

    key = name.strip().lower().replace("-", "_")
    if key.startswith("similarity_"):
        key = key[len("similarity_") :]

    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return SimilarityMeasure(key)
    except ValueError:
        valid = ", ".join(m.value for m in SimilarityMeasure)
        raise ConfigurationError(f"unknown similarity measure {name!r} (valid: {valid})") from None
