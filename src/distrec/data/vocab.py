# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
ID indices mapping external user and item identifiers to row codes.
"""

# pyright: basic
from __future__ import annotations

from typing import Hashable, Iterable, Literal, Sequence

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray

from distrec.logging import get_logger, trace

from .vectors import check_index_range

_log = get_logger(__name__)


class Vocabulary:
    """
    Bidirectional mapping between external IDs (which may be 64-bit integers
    or strings) and contiguous non-negative integer codes.

    This is the ID index written by the preparation phase and read back by
    the recommendation extractor to report original item IDs.  It is a
    wrapper around :class:`pandas.Index`.

    Args:
        keys:
            The IDs to put in the vocabulary.
        name:
            The vocabulary name (i.e. the entity class it stores IDs for).
        reorder:
            If ``True`` (the default), sort and deduplicate the IDs.  If
            ``False``, use the IDs as-is, assigning each its position.
    """

    name: str | None
    _index: pd.Index

    def __init__(
        self,
        keys: Sequence[Hashable] | pd.Index | Iterable[Hashable] | None = None,
        name: str | None = None,
        *,
        reorder: bool = True,
    ):
        self.name = name
        if keys is None:
            index = pd.Index([], dtype=np.int64)
        elif isinstance(keys, pd.Index):
            index = keys
        elif isinstance(keys, (np.ndarray, pd.Series, list)):
            index = pd.Index(keys)
        else:
            index = pd.Index(list(keys))

        if reorder:
            index = pd.Index(index.dropna().unique()).sort_values()
        elif not index.is_unique:
            raise ValueError("vocabulary keys are not unique")

        check_index_range(len(index), f"{name or 'ID'} vocabulary")
        index = index.rename(f"{name}_id" if name else None)
        self._index = index

    @property
    def index(self) -> pd.Index:
        "The vocabulary as a Pandas index."
        return self._index

    @property
    def size(self) -> int:
        "Current vocabulary size."
        return len(self._index)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def number(self, term: object, missing: Literal["error", "none"] = "error") -> int | None:
        "Look up the code for an ID."
        try:
            return int(self._index.get_loc(term))  # type: ignore
        except KeyError:
            if missing == "error":
                raise KeyError(f"{self.name} ID {term}") from None
            return None

    def numbers(
        self, terms: Sequence[Hashable] | ArrayLike, missing: Literal["error", "negative"] = "error"
    ) -> NDArray[np.int32]:
        "Look up the codes for an array of IDs."
        nums = np.asarray(self._index.get_indexer(terms), dtype=np.int32)  # type: ignore
        n_bad = int(np.sum(nums < 0))
        trace(_log.bind(entity=self.name), "resolved %d IDs, %d invalid", len(nums), n_bad)
        if missing == "error" and n_bad:
            raise KeyError(f"{n_bad} invalid {self.name} keys")
        return nums

    def term(self, num: int) -> object:
        """
        Look up the ID with a particular code.  Negative codes are **not**
        supported.
        """
        if num < 0:
            raise IndexError("negative numbers not supported")
        term = self._index[num]
        if isinstance(term, np.generic):
            term = term.item()
        return term

    def terms(self, nums: ArrayLike) -> np.ndarray:
        "Look up the IDs for an array of codes."
        nums = np.asarray(nums, dtype=np.int64)
        return self._index.values[nums]

    def ids(self) -> np.ndarray:
        "Get all IDs, in code order."
        return self._index.values

    def to_frame(self) -> pd.DataFrame:
        """
        Get the vocabulary as a data frame with ``code`` and ``id`` columns,
        for persistence.
        """
        return pd.DataFrame({"code": np.arange(self.size, dtype=np.int32), "id": self._index.values})

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, name: str | None = None) -> Vocabulary:
        "Reconstruct a vocabulary saved with :meth:`to_frame`."
        frame = frame.sort_values("code")
        return cls(pd.Index(frame["id"].values), name, reorder=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vocabulary):
            return False
        return self._index.equals(other._index)

    def __repr__(self):
        return f"<Vocabulary {self.name}: {self.size} IDs>"
