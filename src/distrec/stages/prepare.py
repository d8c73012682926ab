# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Preparation of the preference matrices from raw preference data.

Preferences are loaded into a data frame, external user and item IDs are
mapped to dense codes (or validated as codes), and two substrate jobs build
the per-user preference vectors and the rating matrix whose rows are the
entities to compare.
"""

# pyright: basic
from __future__ import annotations

import warnings
from os import PathLike
from pathlib import Path
from typing import Hashable, Iterator

import numpy as np
import pandas as pd
from typing_extensions import override

from distrec.data import MAX_INDEX, Preference, SparseVector, Vocabulary
from distrec.data.store import ArtifactStore
from distrec.diagnostics import DataShapeViolation, DataWarning
from distrec.logging import get_logger
from distrec.substrate import JobSpec, Mapper, Reducer, TaskContext

from .multiply import sample_vector
from .params import ITEM_BASED, MAX_PREFS, MIN_PREFS, SAMPLED, SEED, USERS, as_bool
from .rowsim import SumVectorsReducer

_log = get_logger(__name__)

USER_COLUMNS = ["user", "user_id"]
ITEM_COLUMNS = ["item", "item_id"]
RATING_COLUMNS = ["rating", "value", "pref"]


def load_preferences(source: pd.DataFrame | str | PathLike[str]) -> pd.DataFrame:
    """
    Load preference data as a frame with ``user``, ``item``, and ``rating``
    columns.

    Args:
        source:
            A data frame (with ``user``/``user_id``, ``item``/``item_id``, and
            optionally ``rating`` columns), a Parquet file, or a delimited
            text file of ``user,item[,rating]`` lines without a header.
            Missing ratings are 1.
    """
    if isinstance(source, pd.DataFrame):
        df = source
    else:
        path = Path(source)
        if path.suffix == ".parquet":
            df = pd.read_parquet(path)
        else:
            df = pd.read_csv(path, header=None, sep=r"[,\t]", engine="python")
            if df.shape[1] < 2:
                raise DataShapeViolation(f"{path}: expected at least 2 columns, found {df.shape[1]}")
            df = df.iloc[:, :3]
            df.columns = ["user", "item", "rating"][: df.shape[1]]

    df = pd.DataFrame(
        {
            "user": _column(df, USER_COLUMNS),
            "item": _column(df, ITEM_COLUMNS),
            "rating": _column(df, RATING_COLUMNS, 1.0),
        }
    )
    df["rating"] = df["rating"].fillna(1.0).astype(np.float64)
    return df


def _column(df: pd.DataFrame, names: list[str], default=None) -> pd.Series:
    for name in names:
        if name in df.columns:
            return df[name].reset_index(drop=True)
    if default is None:
        raise DataShapeViolation(f"no {names[0]} column found in {list(df.columns)}")
    return pd.Series(np.full(len(df), default))


def validate_codes(ids: pd.Series, what: str) -> np.ndarray:
    """
    Check that raw IDs can be used directly as codes: non-negative integers
    below :data:`~distrec.data.MAX_INDEX`.
    """
    if not pd.api.types.is_integer_dtype(ids.dtype):
        raise DataShapeViolation(f"{what} IDs are not integers; enable ID encoding")
    codes = ids.to_numpy(dtype=np.int64)
    if len(codes) and (codes.min() < 0 or codes.max() >= MAX_INDEX):
        raise DataShapeViolation(f"{what} IDs out of range [0, {MAX_INDEX}); enable ID encoding")
    return codes


def encode_preferences(
    prefs: pd.DataFrame, encode_ids: bool, boolean_data: bool
) -> tuple[pd.DataFrame, Vocabulary | None, Vocabulary | None]:
    """
    Map preference IDs to codes.

    Returns:
        A frame of ``user``/``item`` codes and ``rating`` values (one row per
        user-item pair, keeping the last value for duplicates), and the user
        and item vocabularies (``None`` if IDs are not encoded).
    """
    if encode_ids:
        users = Vocabulary(prefs["user"], "user")
        items = Vocabulary(prefs["item"], "item")
        ucodes = users.numbers(prefs["user"])
        icodes = items.numbers(prefs["item"])
    else:
        users = items = None
        ucodes = validate_codes(prefs["user"], "user")
        icodes = validate_codes(prefs["item"], "item")

    ratings = np.ones(len(prefs)) if boolean_data else prefs["rating"].to_numpy()
    coded = pd.DataFrame({"user": ucodes, "item": icodes, "rating": ratings})
    n = len(coded)
    coded = coded.drop_duplicates(["user", "item"], keep="last")
    if len(coded) < n:
        warnings.warn(f"{n - len(coded)} duplicate preferences, keeping the last", DataWarning, stacklevel=2)
    return coded, users, items


def store_preferences(store: ArtifactStore, name: str, coded: pd.DataFrame) -> int:
    "Write coded preferences as :class:`~distrec.data.Preference` records."
    return store.write(
        name,
        (
            (u, Preference(u, i, r))
            for u, i, r in zip(
                coded["user"].tolist(), coded["item"].tolist(), coded["rating"].tolist()
            )
        ),
    )


class ToUserVectorMapper(Mapper):
    """
    Emit each preference as a single-entry user vector.
    """

    @override
    def map(self, key: Hashable, value: Preference, ctx: TaskContext) -> None:
        ctx.emit(value.user, SparseVector.singleton(value.item, value.value))


class ToUserVectorReducer(Reducer):
    """
    Assemble user vectors, dropping users with too few preferences.
    """

    min_prefs: int

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.min_prefs = ctx.param(MIN_PREFS, int, 1)

    @override
    def reduce(self, key: Hashable, values: Iterator[SparseVector], ctx: TaskContext) -> None:
        vec = SparseVector.sum(values)
        if vec.nnz >= self.min_prefs:
            ctx.counters.increment(USERS)
            ctx.emit(key, vec)


class RatingMatrixMapper(Mapper):
    """
    Produce the rows of the rating matrix from (possibly sampled) user
    vectors.  In item-based mode rows are items and each user vector is
    split into single-entry item rows; in user-based mode the user vectors
    are the rows.
    """

    item_based: bool
    max_prefs: int
    seed: int | None

    @override
    def setup(self, ctx: TaskContext) -> None:
        self.item_based = ctx.param(ITEM_BASED, as_bool, True)
        self.max_prefs = ctx.param(MAX_PREFS, int, 1000)
        self.seed = ctx.param(SEED, int, None)

    @override
    def map(self, key: Hashable, value: SparseVector, ctx: TaskContext) -> None:
        user = int(key)  # type: ignore
        if value.nnz > self.max_prefs:
            value = sample_vector(value, self.max_prefs, self.seed, "prepare", user)
            ctx.counters.increment(SAMPLED)

        if self.item_based:
            for item, pref in value:
                ctx.emit(item, SparseVector.singleton(user, pref))
        else:
            ctx.emit(user, value)


def user_vectors_job(input: str, output: str, conf: dict) -> JobSpec:
    return JobSpec(
        "user-vectors",
        [input],
        output,
        mapper=ToUserVectorMapper,
        reducer=ToUserVectorReducer,
        conf=conf,
    )


def rating_matrix_job(input: str, output: str, conf: dict) -> JobSpec:
    return JobSpec(
        "rating-matrix",
        [input],
        output,
        mapper=RatingMatrixMapper,
        reducer=SumVectorsReducer,
        conf=conf,
    )


def load_item_ids(path: str | PathLike[str], items: Vocabulary | None) -> np.ndarray:
    """
    Read an item allow-list (one ID per line) and map it to item codes.
    Unknown IDs are ignored.
    """
    with open(path, "r") as f:
        ids = [line.strip() for line in f]
    ids = [i for i in ids if i]

    if items is None:
        try:
            return np.unique(np.asarray([int(i) for i in ids], dtype=np.int64))
        except ValueError as e:
            raise DataShapeViolation(f"{path}: item IDs are not integer codes") from e

    if pd.api.types.is_integer_dtype(items.index.dtype):
        try:
            keys: list = [int(i) for i in ids]
        except ValueError as e:
            raise DataShapeViolation(f"{path}: item IDs are not integers") from e
    else:
        keys = ids

    codes = items.numbers(keys, missing="negative")
    n_bad = int(np.sum(codes < 0))
    if n_bad:
        _log.warning("ignoring %d unknown items in allow-list", n_bad, file=str(path))
    return np.unique(codes[codes >= 0]).astype(np.int64)
