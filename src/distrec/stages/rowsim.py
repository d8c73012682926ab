# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Pairwise row similarity over a sparse matrix.

The computation runs as a chain of substrate jobs:

1. ``normalize`` normalizes each row and splits it into singleton partial
   column contributions, which the reducer merges back into full columns.
   Column statistics (row norms, and non-zero counts and maximum magnitudes
   when thresholding) ride along in the same output under
   :class:`~distrec.data.StatKey` keys.  Contributions are keyed by column,
   and the statistics are indexed by the compared row, not by column.
2. ``cooccurrence`` emits aggregated contributions for every pair of rows
   that share a column, and sums them into dot-product rows.
3. ``similarity`` finishes each pair's score with the global statistics,
   applies the threshold, and emits each score in both directions.
4. ``topk`` merges each row's candidates, drops self-similarity, and caps the
   row to the best scores.
5. ``transpose`` (optional) flips the capped matrix.
"""

# pyright: basic
from __future__ import annotations

from typing import Hashable, Iterable, Iterator

from typing_extensions import override

from distrec.config import NO_THRESHOLD
from distrec.data import (
    ColumnStat,
    ColumnStatistics,
    SparseVector,
    StatKey,
    StatKind,
    is_stat_key,
)
from distrec.data.store import Record
from distrec.diagnostics import ConfigurationError, DataShapeViolation
from distrec.logging import get_logger, trace
from distrec.similarity import SimilarityMeasure, VectorSimilarity, resolve_measure
from distrec.substrate import (
    IdentityMapper,
    JobResult,
    JobSpec,
    Mapper,
    Reducer,
    Substrate,
    TaskContext,
)

from .params import (
    EXCLUDE_SELF,
    MAX_SIMILARITIES,
    N_COLUMNS,
    PRUNED,
    ROWS,
    SIMILARITY,
    STATS_INPUT,
    THRESHOLD,
    as_bool,
)

_log = get_logger(__name__)


class RowNormalizationStage(Mapper):
    """
    Normalize rows and emit their entries as partial column contributions.

    Each non-zero entry ``(c, x)`` of row ``r`` is emitted as the singleton
    ``{r: x}`` keyed by ``c``.  The row's norm (and, when thresholding, its
    non-zero count and largest magnitude) is recorded in partition-local
    statistics keyed by ``r``, and flushed once per statistic kind when the
    partition finishes.
    """

    measure: SimilarityMeasure
    similarity: VectorSimilarity
    threshold: float | None
    _norms: dict[int, float]
    _non_zero: dict[int, float]
    _max_values: dict[int, float]

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.measure = ctx.param(SIMILARITY, resolve_measure)
        self.similarity = self.measure.implementation
        self.threshold = ctx.param(THRESHOLD, float, NO_THRESHOLD)
        self._norms = {}
        self._non_zero = {}
        self._max_values = {}

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        row = int(key)  # type: ignore
        vec = self.similarity.normalize(value)

        for col, x in vec:
            ctx.emit(col, SparseVector.singleton(row, x))

        self._norms[row] = self.similarity.norm(vec)
        if self.threshold is not NO_THRESHOLD:
            self._non_zero[row] = vec.nnz
            self._max_values[row] = vec.max_abs()

        ctx.counters.increment(ROWS)

    @override
    def cleanup(self, ctx: TaskContext) -> None:
        for kind, stats in [
            (StatKind.NORM, self._norms),
            (StatKind.NON_ZERO, self._non_zero),
            (StatKind.MAX_VALUE, self._max_values),
        ]:
            ctx.emit(StatKey(kind), ColumnStat(self.measure.value, SparseVector.from_dict(stats)))


class MergeColumnsReducer(Reducer):
    """
    Merge partial column contributions into column vectors, and partial
    statistics into global statistics.  Also usable as a combiner.
    """

    @override
    def reduce(self, key: Hashable, values: Iterator, ctx: TaskContext) -> None:
        if isinstance(key, StatKey):
            stats: list[ColumnStat] = list(values)
            measures = {s.measure for s in stats}
            if len(measures) > 1:
                raise DataShapeViolation(f"column statistics from multiple measures: {measures}")
            merged = ColumnStatistics.merge(key.kind, (s.vector for s in stats))
            ctx.emit(key, ColumnStat(stats[0].measure, merged))
        else:
            ctx.emit(key, SparseVector.sum(values))


class CooccurrenceMapper(Mapper):
    """
    For each column, emit the aggregated contribution of every pair of rows
    non-zero in that column.  Pairs ``(a, b)`` with ``a <= b`` are keyed by
    ``a``, so each pair is produced exactly once.
    """

    similarity: VectorSimilarity

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.similarity = ctx.param(SIMILARITY, resolve_measure).implementation

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        if is_stat_key(key):
            return

        rows = value.indices
        vals = value.values.tolist()
        agg = self.similarity.aggregate
        for a in range(len(rows)):
            contrib = [agg(vals[a], vals[b]) for b in range(a, len(rows))]
            ctx.emit(int(rows[a]), SparseVector(rows[a:], contrib))


class SumVectorsReducer(Reducer):
    """
    Add up all vectors with the same key.  Also usable as a combiner.
    """

    @override
    def reduce(self, key: Hashable, values: Iterator[SparseVector], ctx: TaskContext) -> None:
        ctx.emit(key, SparseVector.sum(values))


def load_column_statistics(
    records: Iterable[Record], measure: SimilarityMeasure
) -> ColumnStatistics:
    """
    Collect the global column statistics from the output of the normalization
    job.

    Raises:
        DataShapeViolation:
            if the statistics were computed by a different similarity measure.
    """
    stats = ColumnStatistics(measure.value)
    for key, value in records:
        if not isinstance(key, StatKey):
            continue
        if value.measure != measure.value:
            raise DataShapeViolation(
                f"column statistics computed by {value.measure}, but scoring with {measure.value}"
            )
        stats.set(key.kind, value.vector)
    return stats


class SimilarityReducer(Reducer):
    """
    Finish similarity scores from summed pair aggregates and the global
    column statistics, drop scores below the threshold, and emit each score
    under both of its rows.
    """

    measure: SimilarityMeasure
    similarity: VectorSimilarity
    threshold: float | None
    n_columns: int
    stats: ColumnStatistics

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.measure = ctx.param(SIMILARITY, resolve_measure)
        self.similarity = self.measure.implementation
        self.threshold = ctx.param(THRESHOLD, float, NO_THRESHOLD)
        self.n_columns = ctx.param(N_COLUMNS, int)
        self.stats = load_column_statistics(ctx.read(ctx.param(STATS_INPUT)), self.measure)

    @override
    def reduce(self, key: Hashable, values: Iterator[SparseVector], ctx: TaskContext) -> None:
        a = int(key)  # type: ignore
        dots = SparseVector.sum(values)
        norm_a = self.stats.norms.get(a)
        norms_b = self.stats.norms.lookup(dots.indices)

        if self.threshold is not NO_THRESHOLD:
            count_a = self.stats.non_zero.get(a)
            max_a = self.stats.max_values.get(a)
            counts_b = self.stats.non_zero.lookup(dots.indices)
            maxes_b = self.stats.max_values.lookup(dots.indices)

        cols = []
        scores = []
        for i, (b, d) in enumerate(dots):
            if self.threshold is not NO_THRESHOLD:
                if not self.similarity.consider(
                    count_a, counts_b[i], max_a, maxes_b[i], self.threshold
                ):
                    ctx.counters.increment(PRUNED)
                    continue

            score = self.similarity.similarity(d, norm_a, norms_b[i], self.n_columns)
            if self.threshold is not NO_THRESHOLD and score < self.threshold:
                continue

            cols.append(b)
            scores.append(score)
            if b != a:
                ctx.emit(b, SparseVector.singleton(a, score))

        ctx.emit(a, SparseVector(cols, scores))


class TopKReducer(Reducer):
    """
    Merge a row's candidate similarities and keep the highest-scoring
    entries, breaking ties by ascending index.
    """

    k: int
    exclude_self: bool

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.k = ctx.param(MAX_SIMILARITIES, int)
        self.exclude_self = ctx.param(EXCLUDE_SELF, as_bool, True)
        if self.k <= 0:
            raise ConfigurationError("maximum similarities per row must be positive")

    @override
    def reduce(self, key: Hashable, values: Iterator[SparseVector], ctx: TaskContext) -> None:
        row = SparseVector.sum(values)
        if self.exclude_self:
            row = row.without([key])
        row = row.top_k(self.k)
        if row:
            ctx.emit(key, row)


class TransposeMapper(Mapper):
    """
    Emit each entry ``(c, x)`` of row ``r`` as ``{r: x}`` keyed by ``c``.
    """

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        row = int(key)  # type: ignore
        for col, x in value:
            ctx.emit(col, SparseVector.singleton(row, x))


class RowSimilarityJob:
    """
    Compute the capped pairwise similarities between the rows of a sparse
    matrix stored as ``(row, vector)`` records.

    Args:
        measure:
            The similarity measure (or its name).
        n_columns:
            The number of columns of the input matrix.
        max_similarities_per_row:
            The maximum number of similarities to keep for each row.
        threshold:
            Drop similarities below this value (``None`` to keep all).
        exclude_self_similarity:
            Whether to drop each row's similarity with itself.
        transpose:
            Whether to transpose the capped similarity matrix.
        prefix:
            Prefix for the names of the intermediate artifacts.
    """

    measure: SimilarityMeasure
    n_columns: int
    max_similarities_per_row: int
    threshold: float | None
    exclude_self_similarity: bool
    transpose: bool
    prefix: str

    def __init__(
        self,
        measure: SimilarityMeasure | str,
        *,
        n_columns: int,
        max_similarities_per_row: int = 100,
        threshold: float | None = NO_THRESHOLD,
        exclude_self_similarity: bool = True,
        transpose: bool = False,
        prefix: str = "similarity",
    ):
        self.measure = resolve_measure(measure)
        self.n_columns = n_columns
        self.max_similarities_per_row = max_similarities_per_row
        self.threshold = threshold
        self.exclude_self_similarity = exclude_self_similarity
        self.transpose = transpose
        self.prefix = prefix

    def _artifact(self, name: str) -> str:
        return f"{self.prefix}/{name}"

    def jobs(self, input: str, output: str) -> list[JobSpec]:
        """
        Get the job specifications that read the matrix from ``input`` and
        write the similarity matrix to ``output``.
        """
        conf = {
            SIMILARITY: self.measure.value,
            THRESHOLD: self.threshold,
            N_COLUMNS: self.n_columns,
            STATS_INPUT: self._artifact("columns"),
            MAX_SIMILARITIES: self.max_similarities_per_row,
            EXCLUDE_SELF: self.exclude_self_similarity,
        }
        capped = self._artifact("capped") if self.transpose else output

        jobs = [
            JobSpec(
                "normalize",
                [input],
                self._artifact("columns"),
                mapper=RowNormalizationStage,
                combiner=MergeColumnsReducer,
                reducer=MergeColumnsReducer,
                conf=conf,
            ),
            JobSpec(
                "cooccurrence",
                [self._artifact("columns")],
                self._artifact("dots"),
                mapper=CooccurrenceMapper,
                combiner=SumVectorsReducer,
                reducer=SumVectorsReducer,
                conf=conf,
            ),
            JobSpec(
                "similarity",
                [self._artifact("dots")],
                self._artifact("pairs"),
                mapper=IdentityMapper,
                reducer=SimilarityReducer,
                conf=conf,
            ),
            JobSpec(
                "topk",
                [self._artifact("pairs")],
                capped,
                mapper=IdentityMapper,
                reducer=TopKReducer,
                conf=conf,
            ),
        ]
        if self.transpose:
            jobs.append(
                JobSpec(
                    "transpose",
                    [capped],
                    output,
                    mapper=TransposeMapper,
                    reducer=SumVectorsReducer,
                    conf=conf,
                )
            )
        return jobs

    def run(self, substrate: Substrate, input: str, output: str) -> list[JobResult]:
        """
        Run the row similarity jobs, stopping at the first failure.
        """
        log = _log.bind(measure=self.measure.value, threshold=self.threshold)
        log.info("computing row similarities", input=input, n_columns=self.n_columns)
        results = substrate.run_all(self.jobs(input, output))
        if results and results[-1].succeeded:
            rows = results[0].counters.get(ROWS)
            trace(log, "normalized %d rows", rows)
        return results


__all__ = [
    "RowNormalizationStage",
    "MergeColumnsReducer",
    "CooccurrenceMapper",
    "SumVectorsReducer",
    "SimilarityReducer",
    "TopKReducer",
    "TransposeMapper",
    "RowSimilarityJob",
    "load_column_statistics",
]
