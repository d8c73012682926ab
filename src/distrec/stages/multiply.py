# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Multiplication of the similarity matrix with the user preference vectors.

The similarity rows and the user preferences are tagged as
:class:`~distrec.data.VectorOrPref` and joined on the index they share (the
item in item-based mode, the user in user-based mode).  Each joined group
yields one partial score vector per preference, and partial scores are added
up per target entity.
"""

# pyright: basic
from __future__ import annotations

from typing import Hashable, Iterator

import numpy as np
from typing_extensions import override

from distrec.data import (
    PartialScores,
    SparseVector,
    VectorAndPrefs,
    VectorOrPref,
)
from distrec.diagnostics import DataShapeViolation
from distrec.logging import get_logger, trace
from distrec.random import derived_rng
from distrec.substrate import JobSpec, Mapper, Reducer, TaskContext

from .params import BOOLEAN_DATA, ITEM_BASED, MAX_PREFS_CONSIDERED, SAMPLED, SEED, as_bool

_log = get_logger(__name__)


def sample_vector(vector: SparseVector, limit: int, seed: int | None, *keys: int | str) -> SparseVector:
    """
    Sample a vector down to at most ``limit`` entries, uniformly without
    replacement.  The sample depends only on the seed and the keys, so the
    same vector is sampled the same way regardless of partitioning.
    """
    if vector.nnz <= limit:
        return vector

    rng = derived_rng(seed, *keys)
    keep = np.sort(rng.choice(vector.nnz, limit, replace=False))
    return vector.select(keep)


class SimilarityRowWrapper(Mapper):
    """
    Tag similarity matrix rows for the join.
    """

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        ctx.emit(key, VectorOrPref.of_vector(value))


class UserVectorSplitter(Mapper):
    """
    Split user vectors into individual preferences keyed by the index they
    share with the similarity matrix.  In item-based mode, preference
    ``(u, i, x)`` is keyed by ``i`` and refers to ``u``; in user-based mode,
    it is keyed by ``u`` and refers to ``i``.

    User vectors with more preferences than the configured limit are sampled
    down first.
    """

    item_based: bool
    max_prefs: int | None
    seed: int | None

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.item_based = ctx.param(ITEM_BASED, as_bool, True)
        self.max_prefs = ctx.param(MAX_PREFS_CONSIDERED, int, None)
        self.seed = ctx.param(SEED, int, None)

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        user = int(key)  # type: ignore
        if self.max_prefs is not None and value.nnz > self.max_prefs:
            value = sample_vector(value, self.max_prefs, self.seed, "multiply", user)
            ctx.counters.increment(SAMPLED)

        for item, pref in value:
            if self.item_based:
                ctx.emit(item, VectorOrPref.of_pref(user, pref))
            else:
                ctx.emit(user, VectorOrPref.of_pref(item, pref))


class ToVectorAndPrefsReducer(Reducer):
    """
    Join a similarity row with all preferences for its index.  Groups that
    lack a similarity row or preferences produce nothing.
    """

    @override
    def reduce(self, key: Hashable, values: Iterator[VectorOrPref], ctx: TaskContext) -> None:
        vector = None
        entities = []
        prefs = []
        for v in values:
            if v.is_vector:
                if vector is not None:
                    raise DataShapeViolation(f"multiple similarity rows for index {key}")
                vector = v.vector
            else:
                entities.append(v.entity)
                prefs.append(v.value)

        if vector is None or not entities:
            trace(_log.bind(index=key), "no join partner")
            return

        ctx.emit(
            key,
            VectorAndPrefs(
                vector,
                np.asarray(entities, dtype=np.int64),
                np.asarray(prefs, dtype=np.float64),
            ),
        )


class PartialMultiplyMapper(Mapper):
    """
    Scale the similarity row by each preference value, keyed by the entity
    that holds the preference.  For valued data, the similarity magnitudes
    are carried along as denominators so the final score is a weighted
    average.
    """

    boolean_data: bool

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.boolean_data = ctx.param(BOOLEAN_DATA, as_bool, False)

    @override
    def map(self, key: Hashable, value: VectorAndPrefs, ctx: TaskContext) -> None:
        sims = value.vector
        weights = None if self.boolean_data else abs(sims)
        for entity, pref in zip(value.entities.tolist(), value.values.tolist()):
            if self.boolean_data:
                ctx.emit(entity, PartialScores(sims))
            else:
                ctx.emit(entity, PartialScores(sims * pref, weights))


class ScoreAggregationReducer(Reducer):
    """
    Add up partial scores and emit the finished score vector.
    """

    finish: bool = True

    @override
    def reduce(self, key: Hashable, values: Iterator[PartialScores], ctx: TaskContext) -> None:
        total = PartialScores.sum(list(values))
        if self.finish:
            scores = total.scores()
            if scores:
                ctx.emit(key, scores)
        else:
            ctx.emit(key, total)


class ScoreAggregationCombiner(ScoreAggregationReducer):
    """
    Add up partial scores without finishing them, for use as a combiner.
    """

    finish = False


def partial_multiply_job(similarity: str, user_vectors: str, output: str, conf: dict) -> JobSpec:
    """
    Job that joins the similarity matrix with the split user vectors.
    """
    return JobSpec(
        "partial-multiply",
        [similarity, user_vectors],
        output,
        input_mappers={similarity: SimilarityRowWrapper, user_vectors: UserVectorSplitter},
        reducer=ToVectorAndPrefsReducer,
        conf=conf,
    )


def aggregate_job(input: str, output: str, conf: dict) -> JobSpec:
    """
    Job that multiplies the joined rows and aggregates the scores.
    """
    return JobSpec(
        "aggregate",
        [input],
        output,
        mapper=PartialMultiplyMapper,
        combiner=ScoreAggregationCombiner,
        reducer=ScoreAggregationReducer,
        conf=conf,
    )
