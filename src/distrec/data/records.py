# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Record types exchanged between pipeline stages.

Most stages emit plain :class:`~distrec.data.vectors.SparseVector` values
keyed by an integer row code.  The types here cover the rest: the tagged
column-statistic side channel and the tagged unions used to join two streams
on a shared key.
"""

# pyright: basic
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Iterable, NamedTuple, Sequence

import numpy as np
from numpy.typing import NDArray

from .vectors import SparseVector


class StatKind(str, Enum):
    """
    The kinds of column statistics collected while normalizing rows.
    """

    NORM = "norm"
    NON_ZERO = "non_zero"
    MAX_VALUE = "max_value"


class StatKey(NamedTuple):
    """
    Key for a column-statistic record.  These keys share an output channel
    with integer row keys but can never be equal to one, so consumers must
    check for them explicitly.
    """

    kind: StatKind

    def __str__(self):
        return f"<stat:{self.kind.value}>"


def is_stat_key(key: Hashable) -> bool:
    return isinstance(key, StatKey)


def key_order(key: Hashable) -> tuple[int, Any]:
    """
    Sort key for a mixed key space: statistic keys first (in declaration
    order), then everything else in natural order.
    """
    if isinstance(key, StatKey):
        return (0, list(StatKind).index(key.kind))
    else:
        return (1, key)


@dataclass(frozen=True)
class ColumnStat:
    """
    One partition's (or the merged) vector of a single column statistic.

    Attributes:
        measure:
            The name of the similarity measure that computed the statistic.
        vector:
            The statistic values, keyed by row code.
    """

    measure: str
    vector: SparseVector


@dataclass
class ColumnStatistics:
    """
    The merged per-row norms, non-zero counts, and maximum magnitudes used to
    finish similarity scores.  Counts and maxima are only collected when a
    threshold is set.
    """

    measure: str
    norms: SparseVector = field(default_factory=SparseVector)
    non_zero: SparseVector = field(default_factory=SparseVector)
    max_values: SparseVector = field(default_factory=SparseVector)

    def set(self, kind: StatKind, vector: SparseVector):
        match kind:
            case StatKind.NORM:
                self.norms = vector
            case StatKind.NON_ZERO:
                self.non_zero = vector
            case StatKind.MAX_VALUE:
                self.max_values = vector

    @staticmethod
    def merge(kind: StatKind, vectors: Iterable[SparseVector]) -> SparseVector:
        """
        Merge per-partition statistic vectors.  Norms and counts add; maxima
        take the maximum.
        """
        if kind == StatKind.MAX_VALUE:
            return SparseVector.maximum(vectors)
        else:
            return SparseVector.sum(vectors)


@dataclass(frozen=True)
class VectorOrPref:
    """
    Tagged union of a similarity row and a single preference, both keyed by
    the index they share.
    """

    vector: SparseVector | None = None
    entity: int | None = None
    value: float | None = None

    @classmethod
    def of_vector(cls, vector: SparseVector) -> VectorOrPref:
        return cls(vector=vector)

    @classmethod
    def of_pref(cls, entity: int, value: float) -> VectorOrPref:
        return cls(entity=entity, value=value)

    @property
    def is_vector(self) -> bool:
        return self.vector is not None


@dataclass(frozen=True)
class VectorAndPrefs:
    """
    A similarity row joined with every preference for its index.

    Attributes:
        vector:
            The similarity row.
        entities:
            The entities (users in item-based mode, items in user-based mode)
            holding the preferences.
        values:
            The preference values.
    """

    vector: SparseVector
    entities: NDArray[np.int64]
    values: NDArray[np.float64]

    def __post_init__(self):
        if len(self.entities) != len(self.values):
            raise ValueError("entity and value arrays must have the same length")


@dataclass(frozen=True)
class PartialScores:
    """
    Partial recommendation scores for one target entity.

    The score numerators are always present.  For valued (non-boolean) data,
    the denominators hold the summed similarity magnitudes so the final score
    is a weighted average.
    """

    numerators: SparseVector
    denominators: SparseVector | None = None

    @classmethod
    def sum(cls, parts: Sequence[PartialScores]) -> PartialScores:
        "Add partial scores; the result does not depend on their order."
        nums = SparseVector.sum(p.numerators for p in parts)
        dens = [p.denominators for p in parts if p.denominators is not None]
        if dens:
            return cls(nums, SparseVector.sum(dens))
        else:
            return cls(nums)

    def scores(self) -> SparseVector:
        """
        Finish the scores.  Entries with a zero denominator are dropped.
        """
        if self.denominators is None:
            return self.numerators

        dens = self.denominators.lookup(self.numerators.indices)
        ok = dens > 0
        return SparseVector(
            self.numerators.indices[ok], self.numerators.values[ok] / dens[ok]
        )


@dataclass(frozen=True)
class ScoresOrPrefs:
    """
    Tagged union of a (fragment of a) user's score vector and the user's own
    preference vector, joined to exclude already-known items.
    """

    scores: SparseVector | None = None
    known: SparseVector | None = None


@dataclass(frozen=True)
class RecommendedItems:
    """
    A user's final ranked recommendation list.

    Attributes:
        items:
            The recommended item identifiers, best first.
        scores:
            The scores, in the same order.
    """

    items: list[Any]
    scores: NDArray[np.float64]

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return zip(self.items, self.scores.tolist())

    def format(self) -> str:
        "Format as ``[item:score,...]``."
        return "[" + ",".join(f"{i}:{s:.6g}" for i, s in self) + "]"


class Preference(NamedTuple):
    """
    A single raw preference, as read by the preparation phase.
    """

    user: int
    item: int
    value: float
