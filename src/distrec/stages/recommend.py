# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Extraction of the final top-N recommendation lists.
"""

# pyright: basic
from __future__ import annotations

from os import PathLike
from pathlib import Path
from typing import Hashable, Iterable, Iterator, TextIO

import numpy as np
import pandas as pd
from typing_extensions import override

from distrec.data import RecommendedItems, ScoresOrPrefs, SparseVector, Vocabulary
from distrec.data.store import ArtifactStore, Record
from distrec.logging import get_logger
from distrec.substrate import JobSpec, Mapper, Reducer, TaskContext

from .params import ALLOWED_ITEMS, ITEM_BASED, ITEM_INDEX, NUM_RECOMMENDATIONS, as_bool

_log = get_logger(__name__)


class TransposeScoresMapper(Mapper):
    """
    Key aggregated score vectors by user.  Item-based scores are already
    keyed by user; user-based scores are keyed by item and are split into
    single-entry fragments keyed by user.
    """

    item_based: bool

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.item_based = ctx.param(ITEM_BASED, as_bool, True)

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        if self.item_based:
            ctx.emit(key, ScoresOrPrefs(scores=value))
        else:
            item = int(key)  # type: ignore
            for user, score in value:
                ctx.emit(user, ScoresOrPrefs(scores=SparseVector.singleton(item, score)))


class KnownItemsMapper(Mapper):
    """
    Tag user vectors so the recommendation reducer can exclude known items.
    """

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        ctx.emit(key, ScoresOrPrefs(known=value))


class RecommendationReducer(Reducer):
    """
    Assemble a user's scores, remove known and disallowed items, and emit the
    top-N items with their original IDs.
    """

    n: int
    allowed: np.ndarray | None
    items: Vocabulary | None

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.n = ctx.param(NUM_RECOMMENDATIONS, int, 10)
        allowed = ctx.param(ALLOWED_ITEMS, np.asarray, None)
        self.allowed = None if allowed is None else allowed.astype(np.int64)
        index = ctx.param(ITEM_INDEX, str, None)
        self.items = ctx.vocab(index) if index is not None else None

    @override
    def reduce(self, key: Hashable, values: Iterator[ScoresOrPrefs], ctx: TaskContext) -> None:
        fragments = []
        known = []
        for v in values:
            if v.scores is not None:
                fragments.append(v.scores)
            if v.known is not None:
                known.append(v.known)

        scores = SparseVector.sum(fragments)
        for k in known:
            scores = scores.without(k.indices)
        if self.allowed is not None:
            scores = scores.restrict(self.allowed)
        if not scores:
            return

        best = scores.top_k(self.n)
        order = best.ranked()
        codes = best.indices[order]
        if self.items is not None:
            ids = self.items.terms(codes).tolist()
        else:
            ids = codes.tolist()

        ctx.emit(key, RecommendedItems(ids, best.values[order]))


def recommend_job(scores: str, user_vectors: str, output: str, conf: dict) -> JobSpec:
    """
    Job that turns aggregated scores into recommendation lists.
    """
    return JobSpec(
        "recommend",
        [scores, user_vectors],
        output,
        input_mappers={scores: TransposeScoresMapper, user_vectors: KnownItemsMapper},
        reducer=RecommendationReducer,
        conf=conf,
    )


def write_recommendations_text(
    records: Iterable[Record], out: TextIO, users: Vocabulary | None = None
) -> int:
    """
    Write recommendation records as ``user<TAB>[item:score,...]`` lines.

    Returns:
        The number of users written.
    """
    n = 0
    for user, recs in sorted(records, key=lambda r: r[0]):
        uid = users.term(user) if users is not None else user
        out.write(f"{uid}\t{recs.format()}\n")
        n += 1
    return n


def recommendations_frame(
    records: Iterable[Record], users: Vocabulary | None = None
) -> pd.DataFrame:
    """
    Convert recommendation records to a data frame with columns ``user``,
    ``item``, ``score``, and ``rank`` (starting at 1).
    """
    parts = []
    for user, recs in records:
        uid = users.term(user) if users is not None else user
        parts.append(
            pd.DataFrame(
                {
                    "user": [uid] * len(recs),
                    "item": recs.items,
                    "score": recs.scores,
                    "rank": np.arange(1, len(recs) + 1, dtype=np.int32),
                }
            )
        )

    if not parts:
        return pd.DataFrame(
            {
                "user": pd.Series([], dtype=object),
                "item": pd.Series([], dtype=object),
                "score": pd.Series([], dtype=np.float64),
                "rank": pd.Series([], dtype=np.int32),
            }
        )
    return pd.concat(parts, ignore_index=True).sort_values(["user", "rank"], ignore_index=True)


def save_recommendations(
    store: ArtifactStore,
    artifact: str,
    path: str | PathLike[str],
    users: Vocabulary | None = None,
) -> int:
    """
    Save recommendations to a file.  Paths ending in ``.parquet`` are written
    as Parquet frames; anything else as text lines.

    Returns:
        The number of users with recommendations.
    """
    path = Path(path)
    if path.suffix == ".parquet":
        frame = recommendations_frame(store.read(artifact), users)
        frame.to_parquet(path, index=False)
        n = frame["user"].nunique()
    else:
        with path.open("w") as f:
            n = write_recommendations_text(store.read(artifact), f, users)

    _log.info("saved recommendations", path=str(path), n_users=n)
    return n
