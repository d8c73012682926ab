# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Sparse vectors keyed by integer index.
"""

# pyright: basic
from __future__ import annotations

from typing import Iterable, Iterator, Literal, Mapping

import numpy as np
from numpy.typing import ArrayLike, NDArray

from distrec.diagnostics import DataShapeViolation

MAX_INDEX = np.iinfo(np.int32).max
"""
Exclusive upper bound on vector indices.  Row and column codes are 32-bit
integers; anything at or above this bound is rejected.
"""


def check_index_range(count: int, what: str = "index space"):
    """
    Check that an index space of ``count`` entries fits below :data:`MAX_INDEX`.

    Raises:
        DataShapeViolation: if the space is too large.
    """
    if count < 0 or count > MAX_INDEX:
        raise DataShapeViolation(f"{what} has {count} entries, limit is {MAX_INDEX}")


class SparseVector:
    """
    An immutable sparse vector of unbounded dimension.

    Indices absent from the vector are implicitly zero; stored indices are
    sorted, unique, and non-zero.  Constructing a vector with duplicate
    indices sums their values.

    Args:
        indices:
            The indices of the entries.
        values:
            The entry values.  If a scalar, it is broadcast to every index.
    """

    __slots__ = ("indices", "values")

    indices: NDArray[np.int64]
    "The indices of the non-zero entries, in ascending order."
    values: NDArray[np.float64]
    "The values of the non-zero entries."

    def __init__(self, indices: ArrayLike = (), values: ArrayLike | float = 1.0):
        idx = np.asarray(indices, dtype=np.int64).reshape(-1)
        vals = np.asarray(values, dtype=np.float64)
        if vals.ndim == 0:
            vals = np.full(idx.shape, vals.item())
        vals = vals.reshape(-1)
        if idx.shape != vals.shape:
            raise ValueError(f"index shape {idx.shape} != value shape {vals.shape}")

        if len(idx):
            if idx.min() < 0 or idx.max() >= MAX_INDEX:
                raise DataShapeViolation(f"vector index out of range [0, {MAX_INDEX})")
            if np.any(np.diff(idx) <= 0):
                idx, inv = np.unique(idx, return_inverse=True)
                vals = np.bincount(inv, weights=vals, minlength=len(idx))

            nz = vals != 0
            if not np.all(nz):
                idx = idx[nz]
                vals = vals[nz]

        self.indices = idx
        self.values = vals

    @classmethod
    def singleton(cls, index: int, value: float) -> SparseVector:
        "Create a vector with a single entry."
        return cls([index], [value])

    @classmethod
    def from_dict(cls, data: Mapping[int, float]) -> SparseVector:
        return cls(list(data.keys()), list(data.values()))

    @classmethod
    def sum(cls, vectors: Iterable[SparseVector]) -> SparseVector:
        """
        Add any number of vectors.  Addition is commutative and associative, so
        the result does not depend on the order of the inputs.
        """
        vectors = list(vectors)
        if not vectors:
            return cls()
        elif len(vectors) == 1:
            return vectors[0]
        return cls(
            np.concatenate([v.indices for v in vectors]),
            np.concatenate([v.values for v in vectors]),
        )

    @classmethod
    def maximum(cls, vectors: Iterable[SparseVector]) -> SparseVector:
        """
        Element-wise maximum over the stored entries of several vectors.
        """
        vectors = list(vectors)
        if not vectors:
            return cls()
        idx = np.concatenate([v.indices for v in vectors])
        vals = np.concatenate([v.values for v in vectors])
        uidx, inv = np.unique(idx, return_inverse=True)
        out = np.full(len(uidx), -np.inf)
        np.maximum.at(out, inv, vals)
        return cls(uidx, out)

    @property
    def nnz(self) -> int:
        "The number of non-zero entries."
        return len(self.indices)

    def __len__(self):
        return len(self.indices)

    def __bool__(self):
        return len(self.indices) > 0

    def __iter__(self) -> Iterator[tuple[int, float]]:
        "Iterate over the non-zero ``(index, value)`` pairs."
        return zip(self.indices.tolist(), self.values.tolist())

    def __contains__(self, index: int) -> bool:
        pos = np.searchsorted(self.indices, index)
        return bool(pos < len(self.indices) and self.indices[pos] == index)

    def get(self, index: int, default: float = 0.0) -> float:
        "Get the value at an index."
        pos = np.searchsorted(self.indices, index)
        if pos < len(self.indices) and self.indices[pos] == index:
            return float(self.values[pos])
        return default

    def lookup(self, indices: ArrayLike) -> NDArray[np.float64]:
        "Get the values at several indices, with zeros for missing entries."
        indices = np.asarray(indices, dtype=np.int64)
        pos = np.searchsorted(self.indices, indices)
        pos = np.minimum(pos, max(len(self.indices) - 1, 0))
        out = np.zeros(len(indices))
        if len(self.indices):
            found = self.indices[pos] == indices
            out[found] = self.values[pos[found]]
        return out

    def to_dict(self) -> dict[int, float]:
        return dict(self)

    def __add__(self, other: SparseVector) -> SparseVector:
        if not isinstance(other, SparseVector):
            return NotImplemented
        return SparseVector.sum([self, other])

    def __mul__(self, scale: float) -> SparseVector:
        return SparseVector(self.indices, self.values * scale)

    __rmul__ = __mul__

    def __truediv__(self, scale: float) -> SparseVector:
        return SparseVector(self.indices, self.values / scale)

    def __abs__(self) -> SparseVector:
        return SparseVector(self.indices, np.abs(self.values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseVector):
            return NotImplemented
        return np.array_equal(self.indices, other.indices) and np.array_equal(
            self.values, other.values
        )

    def isclose(self, other: SparseVector, *, rtol: float = 1.0e-9, atol: float = 1.0e-12) -> bool:
        "Check whether two vectors have the same indices and close values."
        return np.array_equal(self.indices, other.indices) and np.allclose(
            self.values, other.values, rtol=rtol, atol=atol
        )

    def map_values(self, func) -> SparseVector:
        "Apply a vectorized function to the stored values."
        return SparseVector(self.indices, func(self.values))

    def norm(self, ord: Literal[1, 2] = 2) -> float:
        if ord == 1:
            return float(np.sum(np.abs(self.values)))
        elif ord == 2:
            return float(np.sqrt(np.dot(self.values, self.values)))
        else:
            raise ValueError(f"unsupported norm {ord}")

    def length_squared(self) -> float:
        return float(np.dot(self.values, self.values))

    def dot(self, other: SparseVector) -> float:
        common, ai, bi = np.intersect1d(
            self.indices, other.indices, assume_unique=True, return_indices=True
        )
        return float(np.dot(self.values[ai], other.values[bi]))

    def mean(self) -> float:
        "Mean of the non-zero values (0 for an empty vector)."
        if len(self.values) == 0:
            return 0.0
        return float(np.mean(self.values))

    def max_value(self) -> float:
        if len(self.values) == 0:
            return 0.0
        return float(np.max(self.values))

    def max_abs(self) -> float:
        if len(self.values) == 0:
            return 0.0
        return float(np.max(np.abs(self.values)))

    def without(self, indices: ArrayLike) -> SparseVector:
        "Remove the given indices."
        mask = np.isin(self.indices, np.asarray(indices, dtype=np.int64), invert=True)
        return SparseVector(self.indices[mask], self.values[mask])

    def restrict(self, indices: ArrayLike) -> SparseVector:
        "Keep only the given indices."
        mask = np.isin(self.indices, np.asarray(indices, dtype=np.int64))
        return SparseVector(self.indices[mask], self.values[mask])

    def select(self, positions: ArrayLike) -> SparseVector:
        "Keep the entries at the given positions (not indices)."
        positions = np.asarray(positions, dtype=np.int64)
        return SparseVector(self.indices[positions], self.values[positions])

    def ranked(self) -> NDArray[np.int64]:
        """
        Get the positions of the entries ordered by descending value, with
        ties broken by ascending index.
        """
        # lexsort sorts by the last key first
        return np.lexsort((self.indices, -self.values))

    def top_k(self, k: int) -> SparseVector:
        """
        Keep the ``k`` highest-valued entries, breaking ties by ascending index.
        """
        if k >= len(self.indices):
            return self
        return self.select(self.ranked()[:k])

    def __repr__(self):
        entries = ", ".join(f"{i}: {v:.4g}" for i, v in self)
        return f"SparseVector({{{entries}}})"
